"""Protocol interfaces for swappable components.

The orchestrator, the session and the tool handlers reference these
protocols, not the concrete implementations. This allows:
- Tests to use lightweight in-memory fetchers and probes
- Other persistent backends to replace SQLite without touching the core
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from sitemirror.models.document import Document
    from sitemirror.models.site import Site


class DocumentStoreProtocol(Protocol):
    """Persistent document records, keyed by uuid with a unique URL."""

    async def put(self, document: Document) -> Document | None: ...

    async def get(self, uuid: str) -> Document | None: ...

    async def get_by_url(self, url: str) -> Document | None: ...

    async def scan_by_path_prefix(self, prefix: str) -> list[Document]: ...

    async def list_folder(self, category: str, site_id: str | None = None) -> list[Document]: ...

    async def delete_for_site(self, site_id: str) -> int: ...


class SiteStoreProtocol(Protocol):
    """Persistent site records, one per site id."""

    async def put(self, site: Site) -> bool: ...

    async def get(self, site_id: str) -> Site | None: ...

    async def delete(self, site_id: str) -> bool: ...


class FetcherProtocol(Protocol):
    """Remote fetch collaborator: URL in, raw response text out."""

    async def fetch(self, url: str, action: str) -> str: ...


class ConnectivityProtocol(Protocol):
    """Answers whether network access is currently available."""

    async def is_online(self) -> bool: ...
