"""SQLite document and site stores.

Both stores share one aiosqlite connection and implement the protocols in
``sitemirror.protocols``. Operations catch ``aiosqlite.Error`` internally:
reads return ``None`` (or an empty list), treated by callers as "not cached";
writes are logged and report failure through their return value so the
orchestrator can mark the URL as failed. Infrastructure errors never cross
the store boundary.

One document per URL is enforced by a UNIQUE constraint on ``original_url``;
``DocumentStore.put`` is a single upsert on that key that keeps the existing
``uuid`` and ``create_date``.
"""

from __future__ import annotations

import aiosqlite
import structlog
from pydantic import TypeAdapter

from sitemirror.models.document import Document
from sitemirror.models.site import Site, SitemapEntry

log = structlog.get_logger()

_TREE_ADAPTER: TypeAdapter[dict[str, list[SitemapEntry]]] = TypeAdapter(
    dict[str, list[SitemapEntry]]
)

_CREATE_DOCUMENT_TABLE = """
CREATE TABLE IF NOT EXISTS documents (
    uuid         TEXT PRIMARY KEY,
    original_url TEXT NOT NULL UNIQUE,
    content      TEXT NOT NULL,
    title        TEXT NOT NULL,
    path         TEXT NOT NULL,
    depth        INTEGER NOT NULL,
    category     TEXT,
    site_id      TEXT,
    create_date  TEXT NOT NULL,
    update_date  TEXT NOT NULL
)
"""

_CREATE_SITE_TABLE = """
CREATE TABLE IF NOT EXISTS sites (
    id           TEXT PRIMARY KEY,
    base_url     TEXT NOT NULL,
    type         TEXT NOT NULL,
    name         TEXT,
    is_default   INTEGER NOT NULL DEFAULT 0,
    sitemap_tree TEXT,
    create_date  TEXT NOT NULL,
    update_date  TEXT NOT NULL
)
"""

_CREATE_DOCUMENT_SITE_INDEX = (
    "CREATE INDEX IF NOT EXISTS idx_documents_site ON documents(site_id, category)"
)
_CREATE_DOCUMENT_PATH_INDEX = "CREATE INDEX IF NOT EXISTS idx_documents_path ON documents(path)"
_CREATE_SITE_BASE_URL_INDEX = "CREATE INDEX IF NOT EXISTS idx_sites_base_url ON sites(base_url)"

_DOCUMENT_COLUMNS = (
    "uuid",
    "original_url",
    "content",
    "title",
    "path",
    "depth",
    "category",
    "site_id",
    "create_date",
    "update_date",
)
_SELECT_DOCUMENT = f"SELECT {', '.join(_DOCUMENT_COLUMNS)} FROM documents"

_SITE_COLUMNS = (
    "id",
    "base_url",
    "type",
    "name",
    "is_default",
    "sitemap_tree",
    "create_date",
    "update_date",
)
_SELECT_SITE = f"SELECT {', '.join(_SITE_COLUMNS)} FROM sites"


async def init_db(db: aiosqlite.Connection) -> None:
    """Create tables and set WAL mode. Called once at startup."""
    await db.execute("PRAGMA journal_mode = WAL")
    await db.execute(_CREATE_DOCUMENT_TABLE)
    await db.execute(_CREATE_SITE_TABLE)
    await db.execute(_CREATE_DOCUMENT_SITE_INDEX)
    await db.execute(_CREATE_DOCUMENT_PATH_INDEX)
    await db.execute(_CREATE_SITE_BASE_URL_INDEX)
    await db.commit()


def _row_to_document(row: aiosqlite.Row | tuple) -> Document:
    return Document(**dict(zip(_DOCUMENT_COLUMNS, row, strict=True)))


def _row_to_site(row: aiosqlite.Row | tuple) -> Site:
    data = dict(zip(_SITE_COLUMNS, row, strict=True))
    raw_tree = data.pop("sitemap_tree")
    return Site(
        **data,
        sitemap_tree=_TREE_ADAPTER.validate_json(raw_tree) if raw_tree else None,
    )


class DocumentStore:
    """SQLite-backed document store implementing DocumentStoreProtocol."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def put(self, document: Document) -> Document | None:
        """Upsert by ``original_url`` and return the stored record.

        An existing record keeps its ``uuid`` and ``create_date``. Returns
        ``None`` on write failure.
        """
        try:
            await self._db.execute(
                "INSERT INTO documents "
                "(uuid, original_url, content, title, path, depth, category, site_id, "
                "create_date, update_date) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?) "
                "ON CONFLICT(original_url) DO UPDATE SET "
                "content = excluded.content, "
                "title = excluded.title, "
                "path = excluded.path, "
                "depth = excluded.depth, "
                "category = COALESCE(excluded.category, documents.category), "
                "site_id = COALESCE(excluded.site_id, documents.site_id), "
                "update_date = excluded.update_date",
                (
                    document.uuid,
                    document.original_url,
                    document.content,
                    document.title,
                    document.path,
                    document.depth,
                    document.category,
                    document.site_id,
                    document.create_date.isoformat(),
                    document.update_date.isoformat(),
                ),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("store_write_error", key=f"document:{document.original_url}", exc_info=True)
            return None
        return await self.get_by_url(document.original_url)

    async def get(self, uuid: str) -> Document | None:
        """Read a document by uuid. Returns ``None`` on miss or read failure."""
        try:
            cursor = await self._db.execute(f"{_SELECT_DOCUMENT} WHERE uuid = ?", (uuid,))
            row = await cursor.fetchone()
        except aiosqlite.Error:
            log.warning("store_read_error", key=f"document:{uuid}", exc_info=True)
            return None
        return _row_to_document(row) if row is not None else None

    async def get_by_url(self, url: str) -> Document | None:
        """Read the document cached for *url*. Returns ``None`` on miss or read failure."""
        try:
            cursor = await self._db.execute(
                f"{_SELECT_DOCUMENT} WHERE original_url = ?",
                (url,),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error:
            log.warning("store_read_error", key=f"document:{url}", exc_info=True)
            return None
        return _row_to_document(row) if row is not None else None

    async def scan_by_path_prefix(self, prefix: str) -> list[Document]:
        """All documents whose path starts with *prefix*, in path order."""
        try:
            cursor = await self._db.execute(
                f"{_SELECT_DOCUMENT} WHERE substr(path, 1, length(?)) = ? ORDER BY path",
                (prefix, prefix),
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error:
            log.warning("store_read_error", key=f"path:{prefix}", exc_info=True)
            return []
        return [_row_to_document(row) for row in rows]

    async def list_folder(self, category: str, site_id: str | None = None) -> list[Document]:
        """Documents cached under a sitemap category, optionally for one site."""
        query = f"{_SELECT_DOCUMENT} WHERE category = ?"
        params: tuple[str, ...] = (category,)
        if site_id is not None:
            query += " AND site_id = ?"
            params = (category, site_id)
        try:
            cursor = await self._db.execute(query + " ORDER BY title", params)
            rows = await cursor.fetchall()
        except aiosqlite.Error:
            log.warning("store_read_error", key=f"folder:{category}", exc_info=True)
            return []
        return [_row_to_document(row) for row in rows]

    async def delete_for_site(self, site_id: str) -> int:
        """Delete every document owned by *site_id*. Returns the number deleted."""
        try:
            cursor = await self._db.execute("DELETE FROM documents WHERE site_id = ?", (site_id,))
            deleted = cursor.rowcount
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("store_write_error", key=f"site_documents:{site_id}", exc_info=True)
            return 0
        return deleted


class SiteStore:
    """SQLite-backed site store implementing SiteStoreProtocol."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def put(self, site: Site) -> bool:
        """Insert or replace a site record. Returns False on write failure."""
        tree = (
            _TREE_ADAPTER.dump_json(site.sitemap_tree).decode("utf-8")
            if site.sitemap_tree is not None
            else None
        )
        try:
            await self._db.execute(
                "INSERT OR REPLACE INTO sites "
                "(id, base_url, type, name, is_default, sitemap_tree, create_date, update_date) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    site.id,
                    site.base_url,
                    site.type,
                    site.name,
                    int(site.is_default),
                    tree,
                    site.create_date.isoformat(),
                    site.update_date.isoformat(),
                ),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("store_write_error", key=f"site:{site.id}", exc_info=True)
            return False
        return True

    async def get(self, site_id: str) -> Site | None:
        """Read a site by id. Returns ``None`` on miss, read failure or a corrupt tree."""
        try:
            cursor = await self._db.execute(f"{_SELECT_SITE} WHERE id = ?", (site_id,))
            row = await cursor.fetchone()
        except aiosqlite.Error:
            log.warning("store_read_error", key=f"site:{site_id}", exc_info=True)
            return None
        if row is None:
            return None
        try:
            return _row_to_site(row)
        except ValueError:
            log.warning("store_site_record_invalid", key=f"site:{site_id}", exc_info=True)
            return None

    async def delete(self, site_id: str) -> bool:
        """Delete a site record. Returns False when nothing was deleted."""
        try:
            cursor = await self._db.execute("DELETE FROM sites WHERE id = ?", (site_id,))
            deleted = cursor.rowcount
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("store_write_error", key=f"site:{site_id}", exc_info=True)
            return False
        return deleted > 0
