"""SQLite record store for metadata, thumbnails and rendered cards.

All store operations catch ``aiosqlite.Error`` internally and degrade
gracefully: read failures return ``None`` (treated as a miss by callers),
write failures are logged and reported as ``False`` (the derived value is
still returned to the caller). Infrastructure errors never cross the Store
class boundary.

Every write replaces one full record under one key. There are no partial
updates and no deletes.
"""

from __future__ import annotations

from datetime import datetime

import aiosqlite
import structlog

from ogpcache.models.cache import ImageRecord, MetadataRecord, ValidatorSet
from ogpcache.protocols import ImageTable

log = structlog.get_logger()

_CREATE_METADATA_TABLE = """
CREATE TABLE IF NOT EXISTS ogp_metadata (
    origin        TEXT PRIMARY KEY,
    url           TEXT NOT NULL,
    title         TEXT NOT NULL,
    type          TEXT NOT NULL,
    image         TEXT NOT NULL,
    site_name     TEXT,
    description   TEXT,
    locale        TEXT,
    issued_at     TEXT NOT NULL,
    expires_at    TEXT NOT NULL,
    etag          TEXT,
    last_modified TEXT
)
"""

_CREATE_IMAGE_TABLE = """
CREATE TABLE IF NOT EXISTS {table} (
    id            TEXT PRIMARY KEY,
    url           TEXT NOT NULL,
    image         BLOB NOT NULL,
    issued_at     TEXT NOT NULL,
    expires_at    TEXT NOT NULL,
    etag          TEXT,
    last_modified TEXT
)
"""

IMAGE_TABLES: tuple[ImageTable, ...] = ("thumbnails", "cards")


def _dump_dt(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _load_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value is not None else None


def _load_validators(
    issued_at: str, expires_at: str, etag: str | None, last_modified: str | None
) -> ValidatorSet:
    return ValidatorSet(
        issued_at=datetime.fromisoformat(issued_at),
        expires_at=datetime.fromisoformat(expires_at),
        etag=etag,
        last_modified=_load_dt(last_modified),
    )


def _check_table(table: str) -> None:
    # Table names are interpolated into SQL; only the two known ones pass.
    if table not in IMAGE_TABLES:
        raise ValueError(f"Unknown image table: {table!r}")


class Store:
    """SQLite-backed record store implementing StoreProtocol."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self._db = db

    async def init_db(self) -> None:
        """Create tables and set WAL mode. Called once at startup."""
        await self._db.execute("PRAGMA journal_mode = WAL")
        await self._db.execute(_CREATE_METADATA_TABLE)
        for table in IMAGE_TABLES:
            await self._db.execute(_CREATE_IMAGE_TABLE.format(table=table))
        await self._db.commit()

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    async def get_metadata(self, origin: str) -> MetadataRecord | None:
        """Read a metadata record. Returns ``None`` on miss or read failure."""
        try:
            cursor = await self._db.execute(
                "SELECT origin, url, title, type, image, site_name, description, locale, "
                "issued_at, expires_at, etag, last_modified FROM ogp_metadata WHERE origin = ?",
                (origin,),
            )
            row = await cursor.fetchone()
            if row is None:
                return None

            return MetadataRecord(
                origin=row[0],
                url=row[1],
                title=row[2],
                type=row[3],
                image=row[4],
                site_name=row[5],
                description=row[6],
                locale=row[7],
                validators=_load_validators(row[8], row[9], row[10], row[11]),
            )
        except aiosqlite.Error:
            log.warning("store_read_error", key=f"ogp:{origin}", exc_info=True)
            return None

    async def upsert_metadata(self, record: MetadataRecord) -> bool:
        """Insert or fully replace a metadata record. Non-fatal on failure."""
        v = record.validators
        try:
            await self._db.execute(
                "INSERT OR REPLACE INTO ogp_metadata "
                "(origin, url, title, type, image, site_name, description, locale, "
                "issued_at, expires_at, etag, last_modified) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    record.origin,
                    record.url,
                    record.title,
                    record.type,
                    record.image,
                    record.site_name,
                    record.description,
                    record.locale,
                    v.issued_at.isoformat(),
                    v.expires_at.isoformat(),
                    v.etag,
                    _dump_dt(v.last_modified),
                ),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("store_write_error", key=f"ogp:{record.origin}", exc_info=True)
            return False
        return True

    # ------------------------------------------------------------------
    # Images (thumbnails and cards)
    # ------------------------------------------------------------------

    async def get_image(self, table: ImageTable, image_id: str) -> ImageRecord | None:
        """Read an image record. Returns ``None`` on miss or read failure."""
        _check_table(table)
        try:
            cursor = await self._db.execute(
                f"SELECT id, url, image, issued_at, expires_at, etag, last_modified "
                f"FROM {table} WHERE id = ?",
                (image_id,),
            )
            row = await cursor.fetchone()
            if row is None:
                return None

            return ImageRecord(
                id=row[0],
                url=row[1],
                image=bytes(row[2]),
                validators=_load_validators(row[3], row[4], row[5], row[6]),
            )
        except aiosqlite.Error:
            log.warning("store_read_error", key=f"{table}:{image_id}", exc_info=True)
            return None

    async def upsert_image(self, table: ImageTable, record: ImageRecord) -> bool:
        """Insert or fully replace an image record. Non-fatal on failure."""
        _check_table(table)
        v = record.validators
        try:
            await self._db.execute(
                f"INSERT OR REPLACE INTO {table} "
                f"(id, url, image, issued_at, expires_at, etag, last_modified) "
                f"VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    record.id,
                    record.url,
                    record.image,
                    v.issued_at.isoformat(),
                    v.expires_at.isoformat(),
                    v.etag,
                    _dump_dt(v.last_modified),
                ),
            )
            await self._db.commit()
        except aiosqlite.Error:
            log.warning("store_write_error", key=f"{table}:{record.id}", exc_info=True)
            return False
        return True
