"""
KUVote — SQLite Chain Store.

Persists the whole chain as one JSON document per ledger name, rewritten
on every confirmed append. Uses aiosqlite so the event loop never blocks
on disk I/O.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from kuvote.exceptions import PersistenceError

logger = logging.getLogger("kuvote.storage.sqlite")

SCHEMA = """
    CREATE TABLE IF NOT EXISTS ledger_documents (
        name            TEXT PRIMARY KEY,
        document        TEXT NOT NULL,
        block_count     INTEGER NOT NULL,
        difficulty      INTEGER,
        updated_at      TEXT NOT NULL
    );
"""


async def _ensure_difficulty_column(conn: aiosqlite.Connection) -> None:
    async with conn.execute("PRAGMA table_info(ledger_documents)") as cursor:
        columns = {row[1] for row in await cursor.fetchall()}
    if "difficulty" not in columns:
        logger.info("Migrating ledger_documents: adding difficulty column")
        await conn.execute("ALTER TABLE ledger_documents ADD COLUMN difficulty INTEGER")


class SqliteChainStore:
    """Chain store backed by a local SQLite file."""

    def __init__(self, db_path: str, name: str = "main"):
        self.db_path = db_path
        self.name = name
        self._conn: aiosqlite.Connection | None = None
        self._lock = asyncio.Lock()

    async def _get_conn(self) -> aiosqlite.Connection:
        if self._conn is not None:
            return self._conn
        try:
            if self.db_path != ":memory:":
                Path(self.db_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
            conn = await aiosqlite.connect(self.db_path, isolation_level=None)
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.executescript(SCHEMA)
            await _ensure_difficulty_column(conn)
        except (sqlite3.Error, OSError) as e:
            logger.error("Failed to open chain store at %s: %s", self.db_path, e)
            raise PersistenceError("Chain store unavailable") from e
        self._conn = conn
        return conn

    async def load(self) -> str | None:
        async with self._lock:
            conn = await self._get_conn()
            try:
                async with conn.execute(
                    "SELECT document FROM ledger_documents WHERE name = ?", (self.name,)
                ) as cursor:
                    row = await cursor.fetchone()
            except (sqlite3.Error, OSError) as e:
                logger.error("Failed to load chain '%s': %s", self.name, e)
                raise PersistenceError("Chain store unavailable") from e
        return row[0] if row else None

    async def load_difficulty(self) -> int | None:
        """Difficulty the stored chain was sealed at, or None if not recorded."""
        async with self._lock:
            conn = await self._get_conn()
            try:
                async with conn.execute(
                    "SELECT difficulty FROM ledger_documents WHERE name = ?", (self.name,)
                ) as cursor:
                    row = await cursor.fetchone()
            except (sqlite3.Error, OSError) as e:
                logger.error("Failed to load difficulty of chain '%s': %s", self.name, e)
                raise PersistenceError("Chain store unavailable") from e
        return row[0] if row else None

    async def save(self, document: str, difficulty: int | None = None) -> None:
        try:
            block_count = len(json.loads(document))
        except (json.JSONDecodeError, TypeError) as e:
            raise PersistenceError("Refusing to store a malformed chain document") from e

        async with self._lock:
            conn = await self._get_conn()
            try:
                await conn.execute("BEGIN IMMEDIATE")
                await conn.execute(
                    """
                    INSERT INTO ledger_documents (name, document, block_count, difficulty, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT(name) DO UPDATE SET
                        document = excluded.document,
                        block_count = excluded.block_count,
                        difficulty = COALESCE(excluded.difficulty, ledger_documents.difficulty),
                        updated_at = excluded.updated_at
                    """,
                    (self.name, document, block_count, difficulty, datetime.now(timezone.utc).isoformat()),
                )
                await conn.execute("COMMIT")
            except (sqlite3.Error, OSError) as e:
                try:
                    await conn.execute("ROLLBACK")
                except sqlite3.Error:
                    logger.debug("Rollback after failed save also failed", exc_info=True)
                logger.error("Failed to save chain '%s': %s", self.name, e)
                raise PersistenceError("Chain store unavailable") from e

        logger.debug("Chain '%s' saved (%d blocks)", self.name, block_count)

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
