"""Tool handlers for resync, batch caching and cache status.

No MCP or FastMCP imports: server.py handles the MCP wiring.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from sitemirror.models.tools import CacheSiteOutput, CacheStatusOutput, ResyncOutput

if TYPE_CHECKING:
    from sitemirror.state import AppState


async def handle_resync(site_id: str | None, state: AppState) -> dict:
    """Handle a resync_site tool call.

    Offline is reported as outcome ``"offline"``, not as an error.
    """
    log = structlog.get_logger().bind(tool="resync_site", site_id=site_id)
    log.info("handler_called")

    site = state.session.find_site(site_id)
    outcome = await state.session.resync(site)
    log.info("resync_handled", outcome=outcome)

    output = ResyncOutput(
        site_id=site.id,
        outcome=outcome,
        last_update=state.session.last_update,
    )
    return output.model_dump(mode="json")


async def handle_cache(site_id: str | None, state: AppState) -> dict:
    """Handle a cache_site tool call: cache every sitemap URL not yet cached."""
    log = structlog.get_logger().bind(tool="cache_site", site_id=site_id)
    log.info("handler_called")

    site = state.session.find_site(site_id)
    started = await state.orchestrator.cache_all(site)

    output = CacheSiteOutput(
        site_id=site.id,
        started=started,
        counts=state.orchestrator.summarize(site.urls()),
    )
    return output.model_dump(mode="json")


async def handle_status(site_id: str | None, state: AppState) -> dict:
    """Handle a get_cache_status tool call."""
    log = structlog.get_logger().bind(tool="get_cache_status", site_id=site_id)
    log.info("handler_called")

    site = state.session.find_site(site_id)
    urls = site.urls()
    orchestrator = state.orchestrator

    output = CacheStatusOutput(
        site_id=site.id,
        caching_in_progress=orchestrator.is_syncing(site.id),
        statuses={url: orchestrator.status_of(url).value for url in urls},
        counts=orchestrator.summarize(urls),
    )
    return output.model_dump(mode="json")
