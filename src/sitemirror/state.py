"""Application state container.

AppState is created once at server startup (inside the FastMCP lifespan
context manager) and injected into every tool handler via the MCP Context
object.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from sitemirror.config import Settings
    from sitemirror.orchestrator import CacheOrchestrator
    from sitemirror.protocols import DocumentStoreProtocol, SiteStoreProtocol
    from sitemirror.session import SiteSession


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every tool handler."""

    settings: Settings
    session: SiteSession
    orchestrator: CacheOrchestrator
    documents: DocumentStoreProtocol
    site_store: SiteStoreProtocol
    http_client: httpx.AsyncClient | None = None
