from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class CacheStatus(StrEnum):
    """Transient per-URL caching outcome. Never persisted."""

    UNKNOWN = "unknown"
    LOADING = "loading"
    SUCCESS = "success"
    FAILED = "failed"
    NOT_FOUND = "not_found"


class Document(BaseModel):
    """Sanitized offline copy of one fetched page."""

    uuid: str  # Primary key
    original_url: str  # One document per URL
    content: str  # Sanitized HTML fragment
    title: str
    path: str
    depth: int  # Non-empty path segments
    category: str | None = None
    site_id: str | None = None
    create_date: datetime = Field(default_factory=lambda: datetime.now(UTC))
    update_date: datetime = Field(default_factory=lambda: datetime.now(UTC))
