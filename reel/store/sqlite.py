"""
SQLite storage backend.

Uses aiosqlite for async SQLite access.
WAL mode enabled for concurrent read support.

Tables:
    content_cache  content_id PK                 — the ledger
    subscribers    chat_id PK, is_active, lang   — recipients
    muted_series   UNIQUE(chat_id, series_key)   — mutes

Races are settled by the constraints above, not by locks: a second
ledger insert for the same id fails, a second mute for the same pair
is ignored.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path

import aiosqlite

from reel.core.errors import AlreadyExistsError, NotFoundError, StorageError
from reel.core.types import MuteEntry, Recipient
from reel.store.base import ContentLedger, RecipientStore

logger = logging.getLogger(__name__)

_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS content_cache (
        content_id   TEXT PRIMARY KEY,
        title        TEXT NOT NULL DEFAULT '',
        content_type TEXT NOT NULL DEFAULT '',
        created_at   INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS subscribers (
        chat_id       INTEGER PRIMARY KEY,
        username      TEXT NOT NULL DEFAULT '',
        display_name  TEXT NOT NULL DEFAULT '',
        is_active     INTEGER NOT NULL DEFAULT 1,
        language_code TEXT NOT NULL DEFAULT '',
        created_at    INTEGER NOT NULL,
        updated_at    INTEGER NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS muted_series (
        chat_id     INTEGER NOT NULL,
        series_key  TEXT NOT NULL,
        series_name TEXT NOT NULL DEFAULT '',
        created_at  INTEGER NOT NULL,
        UNIQUE (chat_id, series_key)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_subscribers_active ON subscribers(is_active)",
]


class SQLiteStore(ContentLedger, RecipientStore):
    """
    SQLite-backed ledger and recipient store sharing one connection.

    Usage:
        store = SQLiteStore("./bot.db")
        await store.initialize()

        await store.insert("abc123", "Interstellar", "Movie")
        await store.add_recipient(42, "alex", "Alex")
        active = await store.list_active()  # [42]
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path).expanduser()
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open the database and create tables."""
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            self._db = await aiosqlite.connect(str(self._db_path))
            self._db.row_factory = aiosqlite.Row

            await self._db.execute("PRAGMA journal_mode=WAL")
            await self._db.execute("PRAGMA synchronous=NORMAL")
            for statement in _SCHEMA:
                await self._db.execute(statement)
            await self._db.commit()
            logger.debug(f"SQLite store initialized at {self._db_path}")

        except Exception as e:
            raise StorageError(f"Failed to initialize SQLite at {self._db_path}: {e}") from e

    async def _ensure_db(self) -> aiosqlite.Connection:
        if self._db is None:
            await self.initialize()
        return self._db  # type: ignore[return-value]

    # ── Ledger ────────────────────────────────────────────────────────────────

    async def exists(self, content_id: str) -> bool:
        db = await self._ensure_db()
        try:
            async with db.execute(
                "SELECT 1 FROM content_cache WHERE content_id = ?", (content_id,)
            ) as cursor:
                return await cursor.fetchone() is not None
        except Exception as e:
            raise StorageError(f"Failed to check content '{content_id}': {e}") from e

    async def insert(self, content_id: str, title: str, content_type: str) -> None:
        db = await self._ensure_db()
        try:
            await db.execute(
                "INSERT INTO content_cache (content_id, title, content_type, created_at) "
                "VALUES (?, ?, ?, ?)",
                (content_id, title, content_type, int(time.time())),
            )
            await db.commit()
        except sqlite3.IntegrityError as e:
            await db.rollback()
            raise AlreadyExistsError(f"Content '{content_id}' already recorded") from e
        except Exception as e:
            raise StorageError(f"Failed to record content '{content_id}': {e}") from e

    # ── Recipients ────────────────────────────────────────────────────────────

    async def add_recipient(
        self, recipient_id: int, username: str = "", display_name: str = ""
    ) -> Recipient:
        db = await self._ensure_db()
        now = int(time.time())
        try:
            await db.execute(
                """
                INSERT INTO subscribers
                    (chat_id, username, display_name, is_active, created_at, updated_at)
                VALUES (?, ?, ?, 1, ?, ?)
                ON CONFLICT(chat_id) DO UPDATE SET
                    is_active = 1,
                    username = COALESCE(NULLIF(excluded.username, ''), username),
                    display_name = COALESCE(NULLIF(excluded.display_name, ''), display_name),
                    updated_at = excluded.updated_at
                """,
                (recipient_id, username, display_name, now, now),
            )
            await db.commit()
        except Exception as e:
            raise StorageError(f"Failed to add recipient {recipient_id}: {e}") from e

        recipient = await self.get_recipient(recipient_id)
        if recipient is None:
            raise StorageError(f"Recipient {recipient_id} vanished after insert")
        return recipient

    async def get_recipient(self, recipient_id: int) -> Recipient | None:
        db = await self._ensure_db()
        try:
            async with db.execute(
                "SELECT * FROM subscribers WHERE chat_id = ?", (recipient_id,)
            ) as cursor:
                row = await cursor.fetchone()
        except Exception as e:
            raise StorageError(f"Failed to read recipient {recipient_id}: {e}") from e
        return self._row_to_recipient(row) if row else None

    async def list_recipients(self) -> list[Recipient]:
        db = await self._ensure_db()
        try:
            async with db.execute(
                "SELECT * FROM subscribers ORDER BY created_at ASC, chat_id ASC"
            ) as cursor:
                rows = await cursor.fetchall()
        except Exception as e:
            raise StorageError(f"Failed to list recipients: {e}") from e
        return [self._row_to_recipient(r) for r in rows]

    async def list_active(self) -> list[int]:
        db = await self._ensure_db()
        try:
            async with db.execute(
                "SELECT chat_id FROM subscribers WHERE is_active = 1 ORDER BY chat_id"
            ) as cursor:
                rows = await cursor.fetchall()
        except Exception as e:
            raise StorageError(f"Failed to list active recipients: {e}") from e
        return [row[0] for row in rows]

    async def set_active(self, recipient_id: int, active: bool) -> None:
        await self._update_recipient(recipient_id, "is_active", int(active))

    async def set_language(self, recipient_id: int, language_code: str) -> None:
        await self._update_recipient(recipient_id, "language_code", language_code)

    async def get_language(self, recipient_id: int) -> str:
        recipient = await self.get_recipient(recipient_id)
        return recipient.language_code if recipient else ""

    async def _update_recipient(self, recipient_id: int, column: str, value: object) -> None:
        db = await self._ensure_db()
        try:
            cursor = await db.execute(
                f"UPDATE subscribers SET {column} = ?, updated_at = ? WHERE chat_id = ?",
                (value, int(time.time()), recipient_id),
            )
            await db.commit()
        except Exception as e:
            raise StorageError(f"Failed to update {column} for {recipient_id}: {e}") from e
        if cursor.rowcount == 0:
            raise NotFoundError(f"Recipient {recipient_id} not found")

    # ── Mutes ─────────────────────────────────────────────────────────────────

    async def add_mute(self, recipient_id: int, series_key: str, series_name: str) -> None:
        db = await self._ensure_db()
        try:
            cursor = await db.execute(
                """
                INSERT INTO muted_series (chat_id, series_key, series_name, created_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(chat_id, series_key) DO NOTHING
                """,
                (recipient_id, series_key, series_name, int(time.time())),
            )
            await db.commit()
        except Exception as e:
            raise StorageError(f"Failed to mute '{series_key}' for {recipient_id}: {e}") from e
        if cursor.rowcount == 0:
            logger.debug(f"Series already muted: chat_id={recipient_id} series={series_key!r}")
        else:
            logger.info(f"Muted series: chat_id={recipient_id} series={series_key!r}")

    async def remove_mute(self, recipient_id: int, series_key: str) -> bool:
        db = await self._ensure_db()
        try:
            cursor = await db.execute(
                "DELETE FROM muted_series WHERE chat_id = ? AND series_key = ?",
                (recipient_id, series_key),
            )
            await db.commit()
        except Exception as e:
            raise StorageError(f"Failed to unmute '{series_key}' for {recipient_id}: {e}") from e
        return cursor.rowcount > 0

    async def list_mutes(self, recipient_id: int) -> list[MuteEntry]:
        db = await self._ensure_db()
        try:
            async with db.execute(
                "SELECT * FROM muted_series WHERE chat_id = ? ORDER BY created_at ASC",
                (recipient_id,),
            ) as cursor:
                rows = await cursor.fetchall()
        except Exception as e:
            raise StorageError(f"Failed to list mutes for {recipient_id}: {e}") from e
        return [
            MuteEntry(
                recipient_id=r["chat_id"],
                series_key=r["series_key"],
                series_name=r["series_name"],
                created_at=r["created_at"],
            )
            for r in rows
        ]

    async def is_muted(self, recipient_id: int, series_key: str) -> bool:
        db = await self._ensure_db()
        try:
            async with db.execute(
                "SELECT 1 FROM muted_series WHERE chat_id = ? AND series_key = ?",
                (recipient_id, series_key),
            ) as cursor:
                return await cursor.fetchone() is not None
        except Exception as e:
            raise StorageError(f"Failed to check mute '{series_key}' for {recipient_id}: {e}") from e

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None

    # ── Helpers ───────────────────────────────────────────────────────────────

    @staticmethod
    def _row_to_recipient(row: aiosqlite.Row) -> Recipient:
        return Recipient(
            recipient_id=row["chat_id"],
            username=row["username"],
            display_name=row["display_name"],
            is_active=bool(row["is_active"]),
            language_code=row["language_code"],
            created_at=row["created_at"],
        )
