"""Remote fetch collaborator.

All network I/O for sitemaps and pages goes through one fetcher instance.
Two implementations share FetcherProtocol:

- ``ProxyFetcher`` POSTs ``{"url": ..., "action": ...}`` to a reverse proxy
  that fetches the page on our behalf and returns its raw text.
- ``DirectFetcher`` GETs the URL itself.

Both receive an httpx.AsyncClient via constructor injection; the lifespan
owns the client lifecycle.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog

from sitemirror.errors import ErrorCode, SiteMirrorError

if TYPE_CHECKING:
    from sitemirror.config import FetcherSettings
    from sitemirror.protocols import FetcherProtocol

log = structlog.get_logger()

ACTION_FETCH_DOCUMENT = "FETCH_DOCUMENT"
ACTION_FETCH_SITEMAP = "FETCH_SITEMAP"


def build_http_client(settings: FetcherSettings | None = None) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    timeout = settings.timeout_seconds if settings is not None else 30.0
    user_agent = settings.user_agent if settings is not None else "sitemirror/1.0"
    max_connections = settings.max_connections if settings is not None else 10
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(timeout),
        headers={"User-Agent": user_agent},
        limits=httpx.Limits(
            max_connections=max_connections,
            max_keepalive_connections=max(1, max_connections // 2),
        ),
    )


def _raise_for_status(response: httpx.Response, url: str) -> None:
    if response.is_success:
        return
    raise SiteMirrorError(
        code=ErrorCode.NETWORK_ERROR,
        message=f"HTTP {response.status_code} fetching {url}",
        suggestion="The source site or proxy may be temporarily unavailable.",
        recoverable=True,
    )


def _network_error(url: str, exc: httpx.HTTPError) -> SiteMirrorError:
    return SiteMirrorError(
        code=ErrorCode.NETWORK_ERROR,
        message=f"Network error fetching {url}: {exc}",
        suggestion="Check the network connection and try again.",
        recoverable=True,
    )


class DirectFetcher:
    """Fetches URLs straight from the source site."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def fetch(self, url: str, action: str) -> str:
        """Return the response text. Raises SiteMirrorError on any failure."""
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            raise _network_error(url, exc) from exc

        _raise_for_status(response, url)
        log.info(
            "fetch_complete",
            url=url,
            action=action,
            status_code=response.status_code,
            content_length=len(response.text),
        )
        return response.text


class ProxyFetcher:
    """Fetches URLs through the remote reverse proxy."""

    def __init__(self, client: httpx.AsyncClient, proxy_url: str) -> None:
        self._client = client
        self._proxy_url = proxy_url

    async def fetch(self, url: str, action: str) -> str:
        """Return the proxied response text. Raises SiteMirrorError on any failure."""
        try:
            response = await self._client.post(
                self._proxy_url,
                json={"url": url, "action": action},
            )
        except httpx.HTTPError as exc:
            raise _network_error(url, exc) from exc

        _raise_for_status(response, url)
        log.info(
            "fetch_complete",
            url=url,
            action=action,
            via="proxy",
            status_code=response.status_code,
            content_length=len(response.text),
        )
        return response.text


def build_fetcher(client: httpx.AsyncClient, settings: FetcherSettings) -> FetcherProtocol:
    """Pick the fetcher implementation named by the configuration."""
    if settings.mode == "proxy":
        if not settings.proxy_url:
            raise ValueError("fetcher.mode is 'proxy' but fetcher.proxy_url is not set")
        return ProxyFetcher(client, settings.proxy_url)
    return DirectFetcher(client)
