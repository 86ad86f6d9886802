from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, field_validator

from sitemirror.models.site import SitemapEntry


class SelectSiteInput(BaseModel):
    index: int

    @field_validator("index")
    @classmethod
    def validate_index(cls, v: int) -> int:
        if v < 0:
            raise ValueError("index must be >= 0")
        return v


class ReadDocumentInput(BaseModel):
    url: str
    force: bool = False

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        v = v.strip()
        if len(v) > 2048:
            raise ValueError("url must not exceed 2048 characters")
        if not v.startswith(("http://", "https://")):
            raise ValueError("url must be an absolute http(s) URL")
        return v


class ListFolderInput(BaseModel):
    category: str

    @field_validator("category")
    @classmethod
    def validate_category(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("category must not be empty")
        if len(v) > 100:
            raise ValueError("category must not exceed 100 characters")
        return v


class SiteSummary(BaseModel):
    id: str
    name: str
    label: str
    base_url: str
    type: str
    is_default: bool
    selected: bool
    categories: dict[str, int] | None  # entry count per category, None before resolution
    update_date: datetime


class ListSitesOutput(BaseModel):
    sites: list[SiteSummary]
    selected_index: int


class SitemapOutput(BaseModel):
    site_id: str
    sitemap_tree: dict[str, list[SitemapEntry]] | None


class ResyncOutput(BaseModel):
    site_id: str
    outcome: str  # "offline" | "busy" | "success" | "failed"
    last_update: datetime | None


class CacheSiteOutput(BaseModel):
    site_id: str
    started: bool  # False when a batch for this site was already running
    counts: dict[str, int]


class DocumentOutput(BaseModel):
    url: str
    uuid: str
    title: str
    content: str
    path: str
    depth: int
    category: str | None
    site_id: str | None
    update_date: datetime


class FolderItem(BaseModel):
    uuid: str
    title: str
    url: str
    status: str


class ListFolderOutput(BaseModel):
    site_id: str
    category: str
    documents: list[FolderItem]


class CacheStatusOutput(BaseModel):
    site_id: str
    caching_in_progress: bool
    statuses: dict[str, str]
    counts: dict[str, int]


class DeleteSiteOutput(BaseModel):
    site_id: str
    documents_deleted: int
