"""MCP server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Build the stores, fetcher, orchestrator and site session in the lifespan
- Register tools
- Start the correct transport (stdio or HTTP)
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from contextlib import asynccontextmanager, suppress
from pathlib import Path
from typing import TYPE_CHECKING

import aiosqlite
import structlog
from mcp.server.fastmcp import Context, FastMCP
from mcp.types import CallToolResult, TextContent

import sitemirror.tools.documents as t_documents
import sitemirror.tools.sites as t_sites
import sitemirror.tools.sync as t_sync
from sitemirror import __version__
from sitemirror.config import Settings
from sitemirror.connectivity import build_connectivity
from sitemirror.errors import SiteMirrorError
from sitemirror.fetcher import build_fetcher, build_http_client
from sitemirror.orchestrator import CacheOrchestrator
from sitemirror.schedulers import run_resync_scheduler, run_status_recheck
from sitemirror.session import SiteSession, load_site_descriptors
from sitemirror.state import AppState
from sitemirror.store import DocumentStore, SiteStore, init_db
from sitemirror.transport import run_http_server

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Awaitable

    from sitemirror.models.site import SiteDescriptor

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def _setup_logging(settings: Settings) -> None:
    """Configure structlog once, before the first log statement."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if settings.logging.format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # stdout carries the MCP JSON-RPC stream in stdio mode
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def collect_descriptors(settings: Settings) -> list[SiteDescriptor]:
    """Inline descriptors followed by those from ``sites.descriptors_path``.

    Duplicate base URLs keep their first occurrence. An unreadable
    descriptors file is logged and skipped.
    """
    descriptors = list(settings.sites.defaults)
    if settings.sites.descriptors_path:
        path = Path(settings.sites.descriptors_path).expanduser()
        try:
            descriptors.extend(load_site_descriptors(path))
        except (OSError, ValueError):
            log.warning("site_descriptors_unreadable", path=str(path), exc_info=True)

    unique: dict[str, SiteDescriptor] = {}
    for descriptor in descriptors:
        unique.setdefault(descriptor.base_url, descriptor)
    return list(unique.values())


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncGenerator[AppState, None]:
    """Create and tear down all shared resources for the server's lifetime."""
    settings = Settings()
    _setup_logging(settings)

    log.info(
        "server_starting",
        version=__version__,
        transport=settings.server.transport,
        fetcher_mode=settings.fetcher.mode,
    )

    http_client = build_http_client(settings.fetcher)
    fetcher = build_fetcher(http_client, settings.fetcher)
    connectivity = build_connectivity(
        http_client,
        settings.network,
        fallback_probe_url=settings.fetcher.proxy_url if settings.fetcher.mode == "proxy" else None,
    )

    db_path = Path(settings.store.db_path).expanduser()
    db_path.parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(db_path))
    await init_db(db)
    documents = DocumentStore(db)
    site_store = SiteStore(db)

    orchestrator = CacheOrchestrator(fetcher, documents)
    session = SiteSession(
        site_store,
        documents,
        orchestrator,
        fetcher,
        connectivity,
        endpoints=settings.sitemap.endpoints or None,
    )
    await session.load_defaults(collect_descriptors(settings))

    state = AppState(
        settings=settings,
        session=session,
        orchestrator=orchestrator,
        documents=documents,
        site_store=site_store,
        http_client=http_client,
    )

    if settings.sync.recheck_on_startup:
        await run_status_recheck(state)

    resync_task = asyncio.create_task(run_resync_scheduler(state))

    log.info(
        "server_started",
        version=__version__,
        transport=settings.server.transport,
        sites=len(session.sites),
    )

    try:
        yield state
    finally:
        resync_task.cancel()
        with suppress(asyncio.CancelledError):
            await resync_task
        await http_client.aclose()
        await db.close()
        log.info("server_stopping")


# ---------------------------------------------------------------------------
# FastMCP instance and tool registration
# ---------------------------------------------------------------------------

mcp = FastMCP("sitemirror", lifespan=lifespan)
# FastMCP takes no version kwarg; the initialize handshake reads it from here
mcp._mcp_server.version = __version__  # pyright: ignore[reportPrivateUsage]


def _serialise_tool_error(error: SiteMirrorError) -> CallToolResult:
    """Convert a SiteMirrorError to the MCP tool error result envelope."""
    return CallToolResult(
        content=[TextContent(type="text", text=json.dumps(error.to_dict()))],
        isError=True,
    )


async def _run_tool(tool: str, call: Awaitable[dict]) -> object:
    try:
        return await call
    except SiteMirrorError as exc:
        log.warning(
            "tool_error",
            tool=tool,
            code=exc.code,
            message=exc.message,
            recoverable=exc.recoverable,
        )
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool=tool, exc_info=True)
        raise


def _state(ctx: Context) -> AppState:
    return ctx.request_context.lifespan_context


@mcp.tool()
async def list_sites(ctx: Context) -> object:
    """List the mirrored sites with their sitemap categories and the selected index."""
    return await _run_tool("list_sites", t_sites.handle_list(_state(ctx)))


@mcp.tool()
async def select_site(index: int, ctx: Context) -> object:
    """Make the site at *index* (from list_sites) the current site."""
    return await _run_tool("select_site", t_sites.handle_select(index, _state(ctx)))


@mcp.tool()
async def get_sitemap(ctx: Context, site_id: str | None = None) -> object:
    """Return the sitemap tree (category -> entries) of a site, or of the selected site."""
    return await _run_tool("get_sitemap", t_sites.handle_sitemap(site_id, _state(ctx)))


@mcp.tool()
async def delete_site(site_id: str, ctx: Context) -> object:
    """Delete a site together with every document cached for it."""
    return await _run_tool("delete_site", t_sites.handle_delete(site_id, _state(ctx)))


@mcp.tool()
async def resync_site(ctx: Context, site_id: str | None = None) -> object:
    """Re-read a site's sitemap and cache any documents not yet stored.

    Outcome is one of offline, busy, success or failed.
    """
    return await _run_tool("resync_site", t_sync.handle_resync(site_id, _state(ctx)))


@mcp.tool()
async def cache_site(ctx: Context, site_id: str | None = None) -> object:
    """Cache every sitemap document of a site that is not cached yet."""
    return await _run_tool("cache_site", t_sync.handle_cache(site_id, _state(ctx)))


@mcp.tool()
async def get_cache_status(ctx: Context, site_id: str | None = None) -> object:
    """Per-URL cache status of a site and a count per status."""
    return await _run_tool("get_cache_status", t_sync.handle_status(site_id, _state(ctx)))


@mcp.tool()
async def read_document(url: str, ctx: Context, force: bool = False) -> object:
    """Read the sanitized offline copy of a page.

    Served from the local store when cached. Set force to re-fetch it.
    """
    return await _run_tool("read_document", t_documents.handle_read(url, force, _state(ctx)))


@mcp.tool()
async def list_folder(category: str, ctx: Context, site_id: str | None = None) -> object:
    """List the cached documents of one sitemap category, e.g. posts or pages."""
    return await _run_tool(
        "list_folder", t_documents.handle_folder(category, site_id, _state(ctx))
    )


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    settings = Settings()

    if settings.server.transport == "http":
        _setup_logging(settings)
        run_http_server(mcp, settings)
        return

    mcp.run()


if __name__ == "__main__":
    main()
