"""Sitemap resolution.

Turns a site into a sitemap tree (category -> entries) by fetching the fixed
set of sitemap endpoints its platform publishes. Each endpoint is parsed as
an XML ``<urlset>``; when that yields nothing the text is treated as the
HTML table WordPress renders for humans.

Endpoint failures never abort resolution: a failed endpoint contributes an
empty list. The only error that reaches the caller is an unsupported site
type, raised before any network access.
"""

from __future__ import annotations

import asyncio
import xml.etree.ElementTree as ET
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from urllib.parse import urljoin

import structlog
from bs4 import BeautifulSoup

from sitemirror.errors import ErrorCode, SiteMirrorError
from sitemirror.fetcher import ACTION_FETCH_SITEMAP
from sitemirror.models.site import SitemapEntry, SiteType, normalise_base_url

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sitemirror.models.site import Site, SitemapTree
    from sitemirror.protocols import FetcherProtocol

log = structlog.get_logger()

# category -> endpoint suffix, in resolution order
DEFAULT_ENDPOINTS: dict[str, dict[str, str]] = {
    SiteType.GHOST: {
        "pages": "/sitemap-pages.xml",
        "posts": "/sitemap-posts.xml",
        "authors": "/sitemap-authors.xml",
        "tags": "/sitemap-tags.xml",
    },
    SiteType.WORDPRESS: {
        "posts": "/wp-sitemap-posts-post-1.xml",
        "pages": "/wp-sitemap-posts-page-1.xml",
        "categories": "/wp-sitemap-taxonomies-category-1.xml",
        "post_tags": "/wp-sitemap-taxonomies-post_tag-1.xml",
    },
}


def sitemap_endpoints(
    site: Site,
    overrides: Mapping[str, Mapping[str, str]] | None = None,
) -> list[tuple[str, str]]:
    """Return ``(category, absolute sitemap URL)`` pairs for *site*.

    *overrides* replaces the built-in endpoint set for the site types it names.
    """
    suffixes = (overrides or {}).get(site.type) or DEFAULT_ENDPOINTS.get(site.type)
    if not suffixes:
        raise SiteMirrorError(
            code=ErrorCode.UNSUPPORTED_SITE_TYPE,
            message=f"Unsupported site type {site.type!r} for {site.base_url}",
            suggestion="Use one of: " + ", ".join(sorted(DEFAULT_ENDPOINTS)) + ".",
            recoverable=False,
        )
    base = normalise_base_url(site.base_url)
    return [(category, base + suffix) for category, suffix in suffixes.items()]


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _parse_lastmod(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw.strip())
    except ValueError:
        return None
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


def _parse_xml(text: str) -> list[SitemapEntry] | None:
    """Parse ``<url><loc/><lastmod/></url>`` records. None when not XML."""
    try:
        root = ET.fromstring(text.strip())
    except ET.ParseError:
        return None

    entries: list[SitemapEntry] = []
    for element in root.iter():
        if not isinstance(element.tag, str) or _local_name(element.tag) != "url":
            continue
        loc: str | None = None
        lastmod: str | None = None
        for child in element:
            name = _local_name(child.tag) if isinstance(child.tag, str) else ""
            if name == "loc" and child.text:
                loc = child.text.strip()
            elif name == "lastmod" and child.text:
                lastmod = child.text
        if loc:
            entries.append(SitemapEntry(url=loc, creation_date=_parse_lastmod(lastmod)))
    return entries


def _parse_html_table(text: str, sitemap_url: str) -> list[SitemapEntry] | None:
    """Parse the human-readable ``#sitemap__table``. None when the table is absent."""
    soup = BeautifulSoup(text, "html.parser")
    table = soup.find(id="sitemap__table")
    if table is None:
        return None
    entries: list[SitemapEntry] = []
    for row in table.select("tbody tr"):
        anchor = row.select_one("td.loc a[href]")
        if anchor is None:
            continue
        entries.append(SitemapEntry(url=urljoin(sitemap_url, anchor["href"].strip())))
    return entries


def parse_sitemap(text: str, sitemap_url: str) -> list[SitemapEntry]:
    """Extract sitemap entries from raw endpoint text, in document order.

    Raises SiteMirrorError(PARSE_ERROR) when the text is neither a sitemap
    XML document nor an HTML page with a sitemap table.
    """
    entries = _parse_xml(text)
    if entries:
        return entries

    table_entries = _parse_html_table(text, sitemap_url)
    if table_entries is not None:
        return table_entries
    if entries is not None:
        # Well-formed XML without any <url> record: an empty sitemap
        return []

    raise SiteMirrorError(
        code=ErrorCode.PARSE_ERROR,
        message=f"Unrecognised sitemap format at {sitemap_url}",
        suggestion="The endpoint returned neither sitemap XML nor a sitemap table.",
        recoverable=False,
    )


def _belongs_to_site(url: str, base_url: str) -> bool:
    return url == base_url or url.startswith(base_url + "/")


async def _resolve_endpoint(
    fetcher: FetcherProtocol,
    category: str,
    sitemap_url: str,
    base_url: str,
) -> list[SitemapEntry]:
    """Fetch and parse one endpoint. Any failure degrades to an empty list."""
    try:
        text = await fetcher.fetch(sitemap_url, ACTION_FETCH_SITEMAP)
        entries = parse_sitemap(text, sitemap_url)
    except SiteMirrorError as exc:
        log.warning(
            "sitemap_endpoint_failed",
            category=category,
            url=sitemap_url,
            code=exc.code,
            message=exc.message,
        )
        return []
    except Exception:
        log.warning("sitemap_endpoint_failed", category=category, url=sitemap_url, exc_info=True)
        return []

    kept = [entry for entry in entries if _belongs_to_site(entry.url, base_url)]
    if len(kept) != len(entries):
        log.info(
            "sitemap_foreign_entries_dropped",
            category=category,
            url=sitemap_url,
            dropped=len(entries) - len(kept),
        )
    return kept


async def resolve_sitemap(
    site: Site,
    fetcher: FetcherProtocol,
    *,
    endpoints: Mapping[str, Mapping[str, str]] | None = None,
) -> SitemapTree:
    """Build the sitemap tree for *site*.

    Raises SiteMirrorError(UNSUPPORTED_SITE_TYPE) for unknown site types;
    otherwise always returns, with one key per endpoint category.
    """
    targets = sitemap_endpoints(site, endpoints)
    base_url = normalise_base_url(site.base_url)

    results = await asyncio.gather(
        *(
            _resolve_endpoint(fetcher, category, sitemap_url, base_url)
            for category, sitemap_url in targets
        )
    )

    tree: SitemapTree = {}
    for (category, _url), entries in zip(targets, results, strict=True):
        tree.setdefault(category, []).extend(entries)

    log.info(
        "sitemap_resolved",
        site_id=site.id,
        base_url=site.base_url,
        entries=sum(len(entries) for entries in tree.values()),
        categories=len(tree),
    )
    return tree
