"""Shared test fixtures for the sitemirror test suite."""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiosqlite
import pytest

from sitemirror.errors import ErrorCode, SiteMirrorError
from sitemirror.models.site import Site, SiteDescriptor, SitemapEntry
from sitemirror.orchestrator import CacheOrchestrator
from sitemirror.session import SiteSession
from sitemirror.store import DocumentStore, SiteStore, init_db

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


class StubFetcher:
    """In-memory fetcher: URL -> response text.

    URLs in ``failing`` (or missing from ``pages``) raise NETWORK_ERROR.
    Every call is recorded in ``calls`` as ``(url, action)``.
    """

    def __init__(self, pages: dict[str, str] | None = None, failing: set[str] | None = None):
        self.pages = dict(pages or {})
        self.failing = set(failing or ())
        self.calls: list[tuple[str, str]] = []

    async def fetch(self, url: str, action: str) -> str:
        self.calls.append((url, action))
        if url in self.failing or url not in self.pages:
            raise SiteMirrorError(
                code=ErrorCode.NETWORK_ERROR,
                message=f"HTTP 404 fetching {url}",
                suggestion="",
                recoverable=True,
            )
        return self.pages[url]

    def urls_called(self) -> list[str]:
        return [url for url, _action in self.calls]


class StubConnectivity:
    def __init__(self, online: bool = True) -> None:
        self.online = online

    async def is_online(self) -> bool:
        return self.online


def page(title: str, body: str) -> str:
    return f"<html><head><title>{title}</title></head><body>{body}</body></html>"


@pytest.fixture()
def ghost_site() -> Site:
    return Site.from_descriptor(
        SiteDescriptor(base_url="https://ghost.example.com", type="ghost", name="Ghost Blog")
    )


@pytest.fixture()
def wordpress_site() -> Site:
    return Site.from_descriptor(
        SiteDescriptor(base_url="https://wp.example.com", type="wordpress")
    )


@pytest.fixture()
def synced_site(ghost_site: Site) -> Site:
    """Ghost site with a resolved three-URL tree."""
    ghost_site.sitemap_tree = {
        "pages": [SitemapEntry(url="https://ghost.example.com/about/")],
        "posts": [
            SitemapEntry(url="https://ghost.example.com/first-post/"),
            SitemapEntry(url="https://ghost.example.com/second-post/"),
        ],
        "authors": [],
        "tags": [],
    }
    return ghost_site


@pytest.fixture()
def stub_fetcher() -> StubFetcher:
    return StubFetcher(
        pages={
            "https://ghost.example.com/about/": page(
                "About", '<p>About us <a href="https://ghost.example.com/first-post/">x</a></p>'
            ),
            "https://ghost.example.com/first-post/": page(
                "First", '<p>Hello</p><img src="https://ghost.example.com/content/a.png" alt="A">'
            ),
            "https://ghost.example.com/second-post/": page("Second", "<p>World</p>"),
        }
    )


@pytest.fixture()
async def db() -> AsyncGenerator[aiosqlite.Connection, None]:
    async with aiosqlite.connect(":memory:") as connection:
        await init_db(connection)
        yield connection


@pytest.fixture()
def document_store(db: aiosqlite.Connection) -> DocumentStore:
    return DocumentStore(db)


@pytest.fixture()
def site_store(db: aiosqlite.Connection) -> SiteStore:
    return SiteStore(db)


@pytest.fixture()
def orchestrator(stub_fetcher: StubFetcher, document_store: DocumentStore) -> CacheOrchestrator:
    return CacheOrchestrator(stub_fetcher, document_store)


@pytest.fixture()
def connectivity() -> StubConnectivity:
    return StubConnectivity(online=True)


@pytest.fixture()
def session(
    site_store: SiteStore,
    document_store: DocumentStore,
    orchestrator: CacheOrchestrator,
    stub_fetcher: StubFetcher,
    connectivity: StubConnectivity,
) -> SiteSession:
    return SiteSession(site_store, document_store, orchestrator, stub_fetcher, connectivity)
