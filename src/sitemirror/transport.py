"""Streamable HTTP transport for long-running mirror servers."""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog
import uvicorn
from starlette.datastructures import Headers
from starlette.responses import Response

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP
    from starlette.types import ASGIApp, Receive, Scope, Send

    from sitemirror.config import Settings

log = structlog.get_logger()

SUPPORTED_PROTOCOL_VERSIONS: frozenset[str] = frozenset({"2025-11-25", "2025-06-18", "2025-03-26"})
_LOCAL_ORIGIN = re.compile(r"^https?://(localhost|127\.0\.0\.1|\[::1\])(:\d+)?$")


class LocalOriginMiddleware:
    """Pure ASGI middleware that keeps the HTTP endpoint local.

    Requests carrying a non-local ``Origin`` header get 403, which blocks
    DNS rebinding from a browser. Requests announcing an MCP protocol
    version this server does not speak get 400.

    Pure ASGI rather than BaseHTTPMiddleware so streamed responses are
    passed through unbuffered.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "http":
            headers = Headers(scope=scope)

            origin = headers.get("origin", "")
            if origin and not _LOCAL_ORIGIN.match(origin):
                log.warning("http_origin_rejected", origin=origin)
                await Response("Forbidden", status_code=403)(scope, receive, send)
                return

            proto_version = headers.get("mcp-protocol-version", "")
            if proto_version and proto_version not in SUPPORTED_PROTOCOL_VERSIONS:
                await Response(
                    f"Unsupported protocol version: {proto_version}",
                    status_code=400,
                )(scope, receive, send)
                return

        await self.app(scope, receive, send)


def run_http_server(mcp: FastMCP, settings: Settings) -> None:
    """Serve *mcp* over Streamable HTTP on the configured host and port."""
    log.info("http_server_starting", host=settings.server.host, port=settings.server.port)

    app = LocalOriginMiddleware(mcp.streamable_http_app())
    uvicorn.run(
        app,
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,  # structlog owns logging
    )
