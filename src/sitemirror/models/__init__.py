from __future__ import annotations

from sitemirror.models.document import CacheStatus, Document
from sitemirror.models.site import (
    SiteDescriptor,
    SitemapEntry,
    SitemapTree,
    Site,
    SiteType,
    site_id_for,
)
from sitemirror.models.tools import (
    CacheSiteOutput,
    CacheStatusOutput,
    DeleteSiteOutput,
    DocumentOutput,
    FolderItem,
    ListFolderInput,
    ListFolderOutput,
    ListSitesOutput,
    ReadDocumentInput,
    ResyncOutput,
    SelectSiteInput,
    SitemapOutput,
    SiteSummary,
)

__all__ = [
    # sites
    "SiteType",
    "SiteDescriptor",
    "Site",
    "SitemapEntry",
    "SitemapTree",
    "site_id_for",
    # documents
    "Document",
    "CacheStatus",
    # tools
    "SelectSiteInput",
    "ReadDocumentInput",
    "ListFolderInput",
    "SiteSummary",
    "ListSitesOutput",
    "SitemapOutput",
    "ResyncOutput",
    "CacheSiteOutput",
    "DocumentOutput",
    "FolderItem",
    "ListFolderOutput",
    "CacheStatusOutput",
    "DeleteSiteOutput",
]
