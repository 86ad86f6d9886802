"""Cache orchestration: the per-URL status state machine.

    unknown ──► loading ──► success
       │           ▲  └───► failed
       │           └──────── (re-fetch from success or failed)
       └──► not_found        (recheck found nothing stored)

The status map is transient and never persisted; ``recheck_statuses``
rebuilds it from the document store after a restart. It is shared with
readers that may observe it mid-batch.

Every operation takes the target site explicitly. A per-site in-flight set
keeps two batches for the same site from overlapping, and concurrent fetches
of one URL share a single task.
"""

from __future__ import annotations

import asyncio
import uuid
from collections import Counter
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

import structlog

from sitemirror.errors import SiteMirrorError
from sitemirror.fetcher import ACTION_FETCH_DOCUMENT
from sitemirror.models.document import CacheStatus, Document
from sitemirror.sanitizer import extract_title, sanitize

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

    from sitemirror.models.site import Site
    from sitemirror.protocols import DocumentStoreProtocol, FetcherProtocol

log = structlog.get_logger()

DEFAULT_CATEGORY = "unknown"


def url_path_depth(url: str) -> tuple[str, int]:
    """Path of *url* and its number of non-empty segments."""
    try:
        path = urlsplit(url).path
    except ValueError:
        return "", 0
    return path, len([segment for segment in path.split("/") if segment])


def category_for(site: Site, url: str) -> str | None:
    """Sitemap category listing *url*, if any."""
    for category, entries in (site.sitemap_tree or {}).items():
        if any(entry.url == url for entry in entries):
            return category
    return None


class CacheOrchestrator:
    """Drives fetch → sanitize → store for the documents of a site."""

    def __init__(self, fetcher: FetcherProtocol, documents: DocumentStoreProtocol) -> None:
        self._fetcher = fetcher
        self._documents = documents
        self._statuses: dict[str, CacheStatus] = {}
        self._in_flight: dict[str, asyncio.Task[Document | None]] = {}
        self._syncing: set[str] = set()

    # ------------------------------------------------------------------
    # Status map
    # ------------------------------------------------------------------

    @property
    def statuses(self) -> dict[str, CacheStatus]:
        """Snapshot of the status map."""
        return dict(self._statuses)

    def status_of(self, url: str) -> CacheStatus:
        return self._statuses.get(url, CacheStatus.UNKNOWN)

    def summarize(self, urls: Iterable[str]) -> dict[str, int]:
        """Count statuses over *urls*."""
        return dict(Counter(self.status_of(url).value for url in urls))

    def forget(self, urls: Iterable[str]) -> None:
        for url in urls:
            self._statuses.pop(url, None)

    # ------------------------------------------------------------------
    # Re-entrancy guard
    # ------------------------------------------------------------------

    @property
    def caching_in_progress(self) -> bool:
        return bool(self._syncing)

    def is_syncing(self, site_id: str) -> bool:
        return site_id in self._syncing

    @asynccontextmanager
    async def syncing(self, site_id: str) -> AsyncIterator[bool]:
        """Hold the batch guard for *site_id*; yields False if another batch holds it."""
        if site_id in self._syncing:
            yield False
            return
        self._syncing.add(site_id)
        try:
            yield True
        finally:
            self._syncing.discard(site_id)

    # ------------------------------------------------------------------
    # Single document
    # ------------------------------------------------------------------

    async def cache_one(self, site: Site, url: str, category: str | None = None) -> Document | None:
        """Fetch, sanitize and store one document.

        Returns the stored document, or None after marking the URL failed.
        Never raises for fetch, parse or store failures: callers inspect the
        status instead. A second call for a URL that is already being fetched
        waits for the running fetch.
        """
        task = self._in_flight.get(url)
        if task is None:
            self._statuses[url] = CacheStatus.LOADING
            task = asyncio.create_task(self._cache_one(site, url, category))
            self._in_flight[url] = task
            task.add_done_callback(lambda done: self._release(url, done))
        return await task

    def _release(self, url: str, task: asyncio.Task[Document | None]) -> None:
        if self._in_flight.get(url) is task:
            del self._in_flight[url]

    async def _cache_one(self, site: Site, url: str, category: str | None) -> Document | None:
        doc_log = log.bind(site_id=site.id, url=url)
        self._statuses[url] = CacheStatus.LOADING
        try:
            raw_html = await self._fetcher.fetch(url, ACTION_FETCH_DOCUMENT)
            content = sanitize(raw_html, site.base_url)
            title = extract_title(raw_html, url)
        except SiteMirrorError as exc:
            doc_log.warning("document_fetch_failed", code=exc.code, message=exc.message)
            self._statuses[url] = CacheStatus.FAILED
            return None
        except Exception:
            doc_log.warning("document_fetch_failed", exc_info=True)
            self._statuses[url] = CacheStatus.FAILED
            return None

        path, depth = url_path_depth(url)
        existing = await self._documents.get_by_url(url)
        now = datetime.now(UTC)
        document = Document(
            uuid=existing.uuid if existing is not None else str(uuid.uuid4()),
            original_url=url,
            content=content,
            title=title,
            path=path,
            depth=depth,
            category=category
            or (existing.category if existing is not None else None)
            or DEFAULT_CATEGORY,
            site_id=site.id,
            create_date=existing.create_date if existing is not None else now,
            update_date=now,
        )

        stored = await self._documents.put(document)
        if stored is None:
            doc_log.warning("document_store_failed")
            self._statuses[url] = CacheStatus.FAILED
            return None

        self._statuses[url] = CacheStatus.SUCCESS
        doc_log.info(
            "document_cached",
            uuid=stored.uuid,
            category=stored.category,
            content_length=len(stored.content),
            updated=existing is not None,
        )
        return stored

    async def load_document(self, site: Site, url: str, *, force: bool = False) -> Document | None:
        """Return the stored document for *url*, fetching it when missing or forced."""
        if not force:
            cached = await self._documents.get_by_url(url)
            if cached is not None and cached.content:
                self._statuses[url] = CacheStatus.SUCCESS
                return cached
        return await self.cache_one(site, url, category_for(site, url))

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    async def cache_all(self, site: Site, *, guard: bool = True) -> bool:
        """Cache every sitemap URL of *site* not already at ``success``.

        All eligible fetches run concurrently, one attempt each. Returns
        False without doing anything when a batch for the same site is
        already running. ``guard=False`` is for callers already holding
        ``syncing(site.id)``.
        """
        if not guard:
            await self._cache_tree(site)
            return True

        async with self.syncing(site.id) as acquired:
            if not acquired:
                log.info("cache_all_skipped", site_id=site.id, reason="already_syncing")
                return False
            await self._cache_tree(site)
        return True

    async def _cache_tree(self, site: Site) -> None:
        if not site.sitemap_tree:
            log.info("cache_all_skipped", site_id=site.id, reason="no_sitemap_tree")
            return

        pending: dict[str, str] = {}
        for category, entries in site.sitemap_tree.items():
            for entry in entries:
                if entry.url in pending or self.status_of(entry.url) == CacheStatus.SUCCESS:
                    continue
                pending[entry.url] = category

        log.info("cache_all_started", site_id=site.id, pending=len(pending))
        await asyncio.gather(
            *(self.cache_one(site, url, category) for url, category in pending.items())
        )
        log.info("cache_all_complete", site_id=site.id, counts=self.summarize(pending))

    async def recheck_statuses(self, urls: Iterable[str]) -> None:
        """Rebuild statuses from the store: ``success`` if content is stored, else ``not_found``.

        URLs with a fetch in flight keep their ``loading`` status.
        """
        targets = [url for url in dict.fromkeys(urls) if url not in self._in_flight]
        documents = await asyncio.gather(*(self._documents.get_by_url(url) for url in targets))
        for url, document in zip(targets, documents, strict=True):
            if document is not None and document.content:
                self._statuses[url] = CacheStatus.SUCCESS
            else:
                self._statuses[url] = CacheStatus.NOT_FOUND
        log.info("cache_statuses_rechecked", urls=len(targets))
