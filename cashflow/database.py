import asyncio
import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiosqlite
import structlog

from cashflow.exceptions import StorageUnavailableError

logger = structlog.get_logger()

DDL_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS events (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        event_id TEXT NOT NULL UNIQUE,
        aggregate_id TEXT NOT NULL,
        aggregate_type TEXT NOT NULL,
        event_type TEXT NOT NULL,
        payload TEXT NOT NULL,
        occurred_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_events_aggregate ON events(aggregate_id, seq)",
    "CREATE INDEX IF NOT EXISTS idx_events_occurred_at ON events(occurred_at, seq)",
    """
    CREATE TABLE IF NOT EXISTS categories_projection (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        is_deleted INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS movements_projection (
        id TEXT PRIMARY KEY,
        type TEXT NOT NULL,
        category_id TEXT NOT NULL,
        category_name TEXT NOT NULL,
        amount REAL NOT NULL,
        description TEXT,
        date TEXT NOT NULL,
        is_deleted INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_movements_date ON movements_projection(date, created_at)",
]


class Database:
    """A single aiosqlite connection shared by the event and projection stores.

    Statements on one connection share one transaction, so every access goes
    through ``lock``: a write transaction is never interleaved with another
    coroutine's statements.
    """

    def __init__(self, connection: aiosqlite.Connection) -> None:
        self._connection = connection
        self.lock = asyncio.Lock()

    @classmethod
    async def connect(cls, path: str) -> "Database":
        try:
            connection = await aiosqlite.connect(path)
            connection.row_factory = aiosqlite.Row
            await connection.execute("PRAGMA journal_mode=WAL")
            for ddl in DDL_STATEMENTS:
                await connection.execute(ddl)
            await connection.commit()
        except sqlite3.Error as exc:
            raise StorageUnavailableError(f"Cannot open database '{path}': {exc}") from exc

        logger.info("database_initialized", path=path)
        return cls(connection)

    async def close(self) -> None:
        await self._connection.close()
        logger.info("database_closed")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        async with self.lock:
            try:
                yield self._connection
                await self._connection.commit()
            except BaseException:
                await self._connection.rollback()
                raise

    @asynccontextmanager
    async def reading(self) -> AsyncIterator[aiosqlite.Connection]:
        async with self.lock:
            yield self._connection

    async def check_health(self) -> None:
        async with self.reading() as db:
            cursor = await db.execute("SELECT 1")
            await cursor.close()
