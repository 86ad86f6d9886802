"""Tool handlers for reading cached documents.

Receives AppState, orchestrates store lookup / network fetch through the
cache orchestrator, and returns structured dicts. No MCP or FastMCP
imports: server.py handles the MCP wiring.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from sitemirror.errors import ErrorCode, SiteMirrorError
from sitemirror.models.tools import (
    DocumentOutput,
    FolderItem,
    ListFolderInput,
    ListFolderOutput,
    ReadDocumentInput,
)

if TYPE_CHECKING:
    from sitemirror.state import AppState


async def handle_read(url: str, force: bool, state: AppState) -> dict:
    """Handle a read_document tool call.

    Serves the stored copy when there is one; otherwise, or when *force* is
    set, fetches and caches the page first.
    """
    log = structlog.get_logger().bind(tool="read_document", url=url, force=force)
    log.info("handler_called")

    try:
        validated = ReadDocumentInput(url=url, force=force)
    except ValueError as exc:
        raise SiteMirrorError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide an absolute http(s) URL (max 2048 chars).",
            recoverable=False,
        ) from exc

    site = state.session.site_for_url(validated.url)
    if site is None:
        raise SiteMirrorError(
            code=ErrorCode.NOT_FOUND,
            message=f"No loaded site owns {validated.url}",
            suggestion="Only URLs under a configured site's base URL can be mirrored.",
            recoverable=False,
        )

    document = await state.orchestrator.load_document(site, validated.url, force=validated.force)
    if document is None:
        raise SiteMirrorError(
            code=ErrorCode.NETWORK_ERROR,
            message=f"Could not fetch {validated.url}",
            suggestion="The page is marked failed; retry with read_document once online.",
            recoverable=True,
        )

    output = DocumentOutput(
        url=document.original_url,
        uuid=document.uuid,
        title=document.title,
        content=document.content,
        path=document.path,
        depth=document.depth,
        category=document.category,
        site_id=document.site_id,
        update_date=document.update_date,
    )
    return output.model_dump(mode="json")


async def handle_folder(category: str, site_id: str | None, state: AppState) -> dict:
    """Handle a list_folder tool call: cached documents of one sitemap category."""
    log = structlog.get_logger().bind(tool="list_folder", category=category, site_id=site_id)
    log.info("handler_called")

    try:
        validated = ListFolderInput(category=category)
    except ValueError as exc:
        raise SiteMirrorError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion="Provide a category name from get_sitemap, e.g. 'posts'.",
            recoverable=False,
        ) from exc

    site = state.session.find_site(site_id)
    documents = await state.documents.list_folder(validated.category, site.id)
    log.info("folder_listed", documents=len(documents))

    output = ListFolderOutput(
        site_id=site.id,
        category=validated.category,
        documents=[
            FolderItem(
                uuid=document.uuid,
                title=document.title or document.original_url,
                url=document.original_url,
                status=state.orchestrator.status_of(document.original_url).value,
            )
            for document in documents
        ],
    )
    return output.model_dump(mode="json")
