from __future__ import annotations

import re
import uuid
from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

_TYPE_ALIASES = {"ghost-like": "ghost", "wordpress-like": "wordpress"}


class SiteType(StrEnum):
    GHOST = "ghost"
    WORDPRESS = "wordpress"


class SitemapEntry(BaseModel):
    """One URL listed in a site's sitemap."""

    model_config = ConfigDict(frozen=True)

    url: str
    creation_date: datetime | None = None  # Source-reported <lastmod>


# category name -> entries in sitemap document order
SitemapTree = dict[str, list[SitemapEntry]]


def normalise_base_url(base_url: str) -> str:
    return base_url.strip().rstrip("/")


def site_id_for(base_url: str) -> str:
    """Stable site identifier derived from the base URL.

    The same descriptor maps to the same persisted record across restarts.
    """
    return str(uuid.uuid5(uuid.NAMESPACE_URL, normalise_base_url(base_url).lower()))


class SiteDescriptor(BaseModel):
    """Entry of the static default-sites list."""

    model_config = ConfigDict(populate_by_name=True)

    base_url: str = Field(alias="baseUrl")
    type: str
    name: str | None = None

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        v = normalise_base_url(v)
        if not re.match(r"^https?://[^/]+", v):
            raise ValueError(f"Base URL must be an absolute http(s) URL: {v!r}")
        return v

    @field_validator("type", mode="before")
    @classmethod
    def normalise_type(cls, v: object) -> object:
        if isinstance(v, str):
            lowered = v.strip().lower()
            return _TYPE_ALIASES.get(lowered, lowered)
        return v


class Site(BaseModel):
    """A mirrored site and its last resolved sitemap tree."""

    id: str
    base_url: str
    # Kept as a plain string so records with an unknown type survive a
    # round trip; resolution rejects them with UNSUPPORTED_SITE_TYPE.
    type: str
    name: str | None = None
    is_default: bool = False
    sitemap_tree: SitemapTree | None = None  # None until first resolution
    create_date: datetime = Field(default_factory=lambda: datetime.now(UTC))
    update_date: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_descriptor(cls, descriptor: SiteDescriptor, *, is_default: bool = True) -> Site:
        return cls(
            id=site_id_for(descriptor.base_url),
            base_url=descriptor.base_url,
            type=descriptor.type,
            name=descriptor.name,
            is_default=is_default,
        )

    @property
    def display_name(self) -> str:
        return self.name or self.base_url

    @property
    def short_label(self) -> str:
        """Host without scheme, leading ``www.`` and TLD: ``https://www.ex.com`` → ``ex``."""
        label = re.sub(r"^https?://", "", self.base_url)
        label = re.sub(r"^www\.", "", label)
        return re.sub(r"\.[^.]+$", "", label)

    def urls(self) -> list[str]:
        """Every URL in the sitemap tree, across categories."""
        if not self.sitemap_tree:
            return []
        return [entry.url for entries in self.sitemap_tree.values() for entry in entries]
