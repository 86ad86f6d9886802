"""Integration test fixtures.

Provides a fully wired AppState: real in-memory SQLite stores, the shared
StubFetcher for network I/O and a session loaded with one Ghost site whose
posts sitemap lists two pages.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

from sitemirror.config import Settings
from sitemirror.models.site import SiteDescriptor
from sitemirror.state import AppState

if TYPE_CHECKING:
    from pathlib import Path

    from sitemirror.orchestrator import CacheOrchestrator
    from sitemirror.session import SiteSession
    from sitemirror.store import DocumentStore, SiteStore

GHOST = "https://ghost.example.com"


@pytest.fixture()
def subprocess_env(tmp_path: Path) -> dict[str, str]:
    """Env for subprocess MCP tests: stdio, isolated database, offline, no sites."""
    env = os.environ.copy()
    env["SITEMIRROR__SERVER__TRANSPORT"] = "stdio"
    env["SITEMIRROR__STORE__DB_PATH"] = str(tmp_path / "mirror.db")
    env["SITEMIRROR__NETWORK__FORCE_OFFLINE"] = "true"
    env["SITEMIRROR__SYNC__RECHECK_ON_STARTUP"] = "false"
    return env


@pytest.fixture()
async def app_state(
    session: SiteSession,
    orchestrator: CacheOrchestrator,
    document_store: DocumentStore,
    site_store: SiteStore,
    stub_fetcher,
) -> AppState:
    stub_fetcher.pages[f"{GHOST}/sitemap-posts.xml"] = (
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">'
        f"<url><loc>{GHOST}/first-post/</loc><lastmod>2024-02-01T00:00:00Z</lastmod></url>"
        f"<url><loc>{GHOST}/second-post/</loc></url>"
        "</urlset>"
    )
    stub_fetcher.pages[f"{GHOST}/sitemap-pages.xml"] = (
        f"<urlset><url><loc>{GHOST}/about/</loc></url></urlset>"
    )
    await session.load_defaults(
        [
            SiteDescriptor(base_url=GHOST, type="ghost", name="Ghost Blog"),
            SiteDescriptor(base_url="https://wp.example.com", type="wordpress"),
        ]
    )
    stub_fetcher.calls.clear()
    return AppState(
        settings=Settings(),
        session=session,
        orchestrator=orchestrator,
        documents=document_store,
        site_store=site_store,
    )
