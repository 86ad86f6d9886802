"""Site session: the known sites, the selected one, and their sync lifecycle.

The session is created once at startup and handed to every tool handler
through AppState. Loading is offline-first: a sitemap tree persisted by an
earlier run is reused without touching the network.
"""

from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Literal

import structlog

from sitemirror.errors import ErrorCode, SiteMirrorError
from sitemirror.models.site import Site, SiteDescriptor
from sitemirror.sitemap import resolve_sitemap

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from pathlib import Path

    from sitemirror.orchestrator import CacheOrchestrator
    from sitemirror.protocols import (
        ConnectivityProtocol,
        DocumentStoreProtocol,
        FetcherProtocol,
        SiteStoreProtocol,
    )

log = structlog.get_logger()

# "offline": skipped, no network. "busy": a batch for the site is running.
# "failed": the sitemap could not be resolved at all.
ResyncOutcome = Literal["offline", "busy", "success", "failed"]


def load_site_descriptors(path: Path) -> list[SiteDescriptor]:
    """Read a default-sites file.

    Accepts a JSON list of descriptors or an object with a ``defaultSites``
    list. Raises ValueError for any other shape.
    """
    data = json.loads(path.read_text(encoding="utf-8"))
    raw_sites = data.get("defaultSites") if isinstance(data, dict) else data
    if not isinstance(raw_sites, list):
        raise ValueError(f"{path} must contain a list of sites or a 'defaultSites' list")
    return [SiteDescriptor.model_validate(item) for item in raw_sites]


class SiteSession:
    """Owns the in-memory site list and the selected site index."""

    def __init__(
        self,
        site_store: SiteStoreProtocol,
        documents: DocumentStoreProtocol,
        orchestrator: CacheOrchestrator,
        fetcher: FetcherProtocol,
        connectivity: ConnectivityProtocol,
        *,
        endpoints: Mapping[str, Mapping[str, str]] | None = None,
    ) -> None:
        self._site_store = site_store
        self._documents = documents
        self._orchestrator = orchestrator
        self._fetcher = fetcher
        self._connectivity = connectivity
        self._endpoints = endpoints
        self.sites: list[Site] = []
        self.selected_index = 0
        self.last_update: datetime | None = None

    @property
    def selected_site(self) -> Site | None:
        if 0 <= self.selected_index < len(self.sites):
            return self.sites[self.selected_index]
        return None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load_defaults(self, descriptors: Iterable[SiteDescriptor]) -> None:
        """Load every descriptor concurrently; ready once all have resolved or degraded."""
        sites = await asyncio.gather(*(self._load_site(d) for d in descriptors))
        self.sites = list(sites)
        self.selected_index = 0
        log.info(
            "sites_loaded",
            sites=len(self.sites),
            with_sitemap=sum(1 for site in self.sites if site.sitemap_tree is not None),
        )

    async def _load_site(self, descriptor: SiteDescriptor) -> Site:
        site = Site.from_descriptor(descriptor)
        site_log = log.bind(site_id=site.id, base_url=site.base_url)

        stored = await self._site_store.get(site.id)
        if stored is not None:
            site.create_date = stored.create_date
            site.update_date = stored.update_date
            if stored.sitemap_tree is not None:
                site.sitemap_tree = stored.sitemap_tree
                site_log.info("site_sitemap_reused")
                return site

        if not await self._connectivity.is_online():
            site_log.info("site_sitemap_unavailable", reason="offline")
            return site

        try:
            tree = await resolve_sitemap(site, self._fetcher, endpoints=self._endpoints)
        except SiteMirrorError as exc:
            site_log.warning("site_load_failed", code=exc.code, message=exc.message)
            return site

        site.sitemap_tree = tree
        if not any(tree.values()):
            # Not persisted so the next startup tries the network again
            site_log.warning("site_sitemap_empty", categories=len(tree))
            return site
        site.update_date = datetime.now(UTC)
        await self._site_store.put(site)
        return site

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def select_site(self, index: int) -> Site:
        """Make the site at *index* current. Status entries of other sites are kept."""
        if not 0 <= index < len(self.sites):
            raise SiteMirrorError(
                code=ErrorCode.INVALID_INPUT,
                message=f"Site index {index} out of range (0..{len(self.sites) - 1})",
                suggestion="Call list_sites to see the available sites.",
                recoverable=False,
            )
        self.selected_index = index
        return self.sites[index]

    def site_for_url(self, url: str) -> Site | None:
        """Loaded site whose base URL prefixes *url*."""
        for site in self.sites:
            if url == site.base_url or url.startswith(site.base_url + "/"):
                return site
        return None

    def find_site(self, site_id: str | None = None) -> Site:
        """Site with *site_id*, or the selected site when no id is given."""
        if site_id is None:
            site = self.selected_site
        else:
            site = next((s for s in self.sites if s.id == site_id), None)
        if site is None:
            raise SiteMirrorError(
                code=ErrorCode.NOT_FOUND,
                message=f"Site {site_id!r} not found" if site_id else "No site is loaded",
                suggestion="Call list_sites to see the available sites.",
                recoverable=False,
            )
        return site

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def resync(self, site: Site) -> ResyncOutcome:
        """Re-resolve the sitemap of *site*, persist it and cache its documents.

        A no-op returning ``"offline"`` when the network is unavailable.
        """
        if not await self._connectivity.is_online():
            log.info("resync_skipped", site_id=site.id, reason="offline")
            return "offline"

        async with self._orchestrator.syncing(site.id) as acquired:
            if not acquired:
                log.info("resync_skipped", site_id=site.id, reason="already_syncing")
                return "busy"

            try:
                tree = await resolve_sitemap(site, self._fetcher, endpoints=self._endpoints)
            except SiteMirrorError as exc:
                log.warning("resync_failed", site_id=site.id, code=exc.code, message=exc.message)
                return "failed"

            now = datetime.now(UTC)
            site.sitemap_tree = tree
            site.update_date = now
            await self._site_store.put(site)
            self.last_update = now

            await self._orchestrator.cache_all(site, guard=False)

        log.info("resync_complete", site_id=site.id)
        return "success"

    async def delete_site(self, site_id: str) -> int:
        """Remove a site, its persisted record and its documents.

        Returns the number of documents deleted.
        """
        site = self.find_site(site_id)
        deleted = await self._documents.delete_for_site(site.id)
        await self._site_store.delete(site.id)
        self._orchestrator.forget(site.urls())

        selected = self.selected_site
        self.sites = [s for s in self.sites if s.id != site.id]
        if selected is not None and selected.id != site.id:
            self.selected_index = self.sites.index(selected)
        else:
            self.selected_index = 0
        log.info("site_deleted", site_id=site.id, documents=deleted)
        return deleted
