"""Unit tests for sitemirror.fetcher."""

from __future__ import annotations

import json

import httpx
import pytest
import respx

from sitemirror.config import FetcherSettings
from sitemirror.errors import ErrorCode, SiteMirrorError
from sitemirror.fetcher import (
    ACTION_FETCH_DOCUMENT,
    ACTION_FETCH_SITEMAP,
    DirectFetcher,
    ProxyFetcher,
    build_fetcher,
    build_http_client,
)

PROXY = "https://proxy.example.net/fetch"
PAGE = "https://ex.com/posts/hello/"


# ---------------------------------------------------------------------------
# DirectFetcher
# ---------------------------------------------------------------------------


class TestDirectFetcher:
    @respx.mock
    async def test_returns_body(self) -> None:
        respx.get(PAGE).mock(return_value=httpx.Response(200, text="<p>hi</p>"))
        async with httpx.AsyncClient() as client:
            text = await DirectFetcher(client).fetch(PAGE, ACTION_FETCH_DOCUMENT)
        assert text == "<p>hi</p>"

    @respx.mock
    async def test_follows_redirects(self) -> None:
        respx.get(PAGE).mock(
            return_value=httpx.Response(301, headers={"Location": "https://ex.com/new/"})
        )
        respx.get("https://ex.com/new/").mock(return_value=httpx.Response(200, text="moved"))
        async with build_http_client() as client:
            text = await DirectFetcher(client).fetch(PAGE, ACTION_FETCH_DOCUMENT)
        assert text == "moved"

    @respx.mock
    async def test_non_2xx_raises_network_error(self) -> None:
        respx.get(PAGE).mock(return_value=httpx.Response(404))
        async with httpx.AsyncClient() as client:
            with pytest.raises(SiteMirrorError) as exc_info:
                await DirectFetcher(client).fetch(PAGE, ACTION_FETCH_DOCUMENT)
        assert exc_info.value.code == ErrorCode.NETWORK_ERROR
        assert exc_info.value.recoverable is True
        assert "404" in exc_info.value.message

    @respx.mock
    async def test_transport_error_raises_network_error(self) -> None:
        respx.get(PAGE).mock(side_effect=httpx.ConnectError("refused"))
        async with httpx.AsyncClient() as client:
            with pytest.raises(SiteMirrorError) as exc_info:
                await DirectFetcher(client).fetch(PAGE, ACTION_FETCH_DOCUMENT)
        assert exc_info.value.code == ErrorCode.NETWORK_ERROR


# ---------------------------------------------------------------------------
# ProxyFetcher
# ---------------------------------------------------------------------------


class TestProxyFetcher:
    @respx.mock
    async def test_posts_url_and_action(self) -> None:
        route = respx.post(PROXY).mock(return_value=httpx.Response(200, text="<urlset/>"))
        async with httpx.AsyncClient() as client:
            text = await ProxyFetcher(client, PROXY).fetch(
                "https://ex.com/sitemap-posts.xml", ACTION_FETCH_SITEMAP
            )

        assert text == "<urlset/>"
        assert route.call_count == 1
        body = json.loads(route.calls.last.request.content)
        assert body == {"url": "https://ex.com/sitemap-posts.xml", "action": "FETCH_SITEMAP"}

    @respx.mock
    async def test_proxy_error_raises_network_error(self) -> None:
        respx.post(PROXY).mock(return_value=httpx.Response(502))
        async with httpx.AsyncClient() as client:
            with pytest.raises(SiteMirrorError) as exc_info:
                await ProxyFetcher(client, PROXY).fetch(PAGE, ACTION_FETCH_DOCUMENT)
        assert exc_info.value.code == ErrorCode.NETWORK_ERROR


# ---------------------------------------------------------------------------
# build_fetcher / build_http_client
# ---------------------------------------------------------------------------


class TestBuildFetcher:
    async def test_direct_mode(self) -> None:
        async with httpx.AsyncClient() as client:
            assert isinstance(build_fetcher(client, FetcherSettings()), DirectFetcher)

    async def test_proxy_mode(self) -> None:
        settings = FetcherSettings(mode="proxy", proxy_url=PROXY)
        async with httpx.AsyncClient() as client:
            assert isinstance(build_fetcher(client, settings), ProxyFetcher)

    async def test_proxy_mode_requires_url(self) -> None:
        async with httpx.AsyncClient() as client:
            with pytest.raises(ValueError, match="proxy_url"):
                build_fetcher(client, FetcherSettings(mode="proxy"))

    async def test_http_client_uses_settings(self) -> None:
        settings = FetcherSettings(user_agent="mirror-test/2", timeout_seconds=5)
        async with build_http_client(settings) as client:
            assert client.headers["User-Agent"] == "mirror-test/2"
            assert client.timeout.read == 5
            assert client.follow_redirects is True
