"""Tool handlers for browsing and switching sites.

No MCP or FastMCP imports: server.py handles the MCP wiring.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from sitemirror.errors import ErrorCode, SiteMirrorError
from sitemirror.models.tools import (
    DeleteSiteOutput,
    ListSitesOutput,
    SelectSiteInput,
    SitemapOutput,
    SiteSummary,
)

if TYPE_CHECKING:
    from sitemirror.models.site import Site
    from sitemirror.state import AppState


def _summary(site: Site, *, selected: bool) -> SiteSummary:
    return SiteSummary(
        id=site.id,
        name=site.display_name,
        label=site.short_label,
        base_url=site.base_url,
        type=site.type,
        is_default=site.is_default,
        selected=selected,
        categories=(
            {category: len(entries) for category, entries in site.sitemap_tree.items()}
            if site.sitemap_tree is not None
            else None
        ),
        update_date=site.update_date,
    )


async def handle_list(state: AppState) -> dict:
    """Handle a list_sites tool call."""
    log = structlog.get_logger().bind(tool="list_sites")
    log.info("handler_called")

    session = state.session
    output = ListSitesOutput(
        sites=[
            _summary(site, selected=index == session.selected_index)
            for index, site in enumerate(session.sites)
        ],
        selected_index=session.selected_index,
    )
    return output.model_dump(mode="json")


async def handle_select(index: int, state: AppState) -> dict:
    """Handle a select_site tool call."""
    log = structlog.get_logger().bind(tool="select_site", index=index)
    log.info("handler_called")

    try:
        validated = SelectSiteInput(index=index)
    except ValueError as exc:
        raise SiteMirrorError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide a site index from list_sites.",
            recoverable=False,
        ) from exc

    site = state.session.select_site(validated.index)
    return _summary(site, selected=True).model_dump(mode="json")


async def handle_sitemap(site_id: str | None, state: AppState) -> dict:
    """Handle a get_sitemap tool call."""
    log = structlog.get_logger().bind(tool="get_sitemap", site_id=site_id)
    log.info("handler_called")

    site = state.session.find_site(site_id)
    output = SitemapOutput(site_id=site.id, sitemap_tree=site.sitemap_tree)
    return output.model_dump(mode="json")


async def handle_delete(site_id: str, state: AppState) -> dict:
    """Handle a delete_site tool call: drop a site with all of its documents."""
    log = structlog.get_logger().bind(tool="delete_site", site_id=site_id)
    log.info("handler_called")

    deleted = await state.session.delete_site(site_id)
    output = DeleteSiteOutput(site_id=site_id, documents_deleted=deleted)
    return output.model_dump(mode="json")
