"""Key/value backends for the cache store.

Backends store opaque strings; envelope encoding and expiry live in
CacheStore so that the TTL policy exists in exactly one place.
"""

import os
from abc import ABC, abstractmethod
from typing import Self

import aiosqlite

from marketdash.logging import get_logger

logger = get_logger(__name__)

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS cache_entries (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""


class CacheBackend(ABC):
    """Abstract string key/value storage."""

    async def connect(self) -> None:
        """Acquire resources. No-op by default."""

    async def close(self) -> None:
        """Release resources. No-op by default."""

    @abstractmethod
    async def read(self, key: str) -> str | None:
        """Return the raw value stored under key, or None."""
        ...

    @abstractmethod
    async def write(self, key: str, value: str) -> None:
        """Store value under key, replacing any previous value."""
        ...

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        await self.close()


class MemoryCacheBackend(CacheBackend):
    """Process-local dict storage. Contents are lost on restart."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def read(self, key: str) -> str | None:
        return self._data.get(key)

    async def write(self, key: str, value: str) -> None:
        self._data[key] = value

    def __len__(self) -> int:
        return len(self._data)


class SqliteCacheBackend(CacheBackend):
    """Persistent storage in a single SQLite table via aiosqlite.

    Usage:
        async with SqliteCacheBackend("data/cache.db") as backend:
            store = CacheStore(backend)
    """

    def __init__(self, db_path: str = "data/cache.db") -> None:
        self._db_path = db_path
        self._connection: aiosqlite.Connection | None = None

    @property
    def db(self) -> aiosqlite.Connection:
        """Access the raw aiosqlite connection.

        Raises RuntimeError if not connected.
        """
        if self._connection is None:
            raise RuntimeError("Cache database not connected. Call connect() first.")
        return self._connection

    async def connect(self) -> None:
        """Open the connection, enable WAL mode, and create the table."""
        db_dir = os.path.dirname(self._db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)
        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.execute("PRAGMA synchronous=NORMAL")
        await self._connection.executescript(_CREATE_TABLES_SQL)
        await self._connection.commit()

        logger.info("cache_db_connected", db_path=self._db_path)

    async def close(self) -> None:
        """Close the database connection if open."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("cache_db_closed", db_path=self._db_path)

    async def read(self, key: str) -> str | None:
        cursor = await self.db.execute(
            "SELECT value FROM cache_entries WHERE key = ?", (key,)
        )
        row = await cursor.fetchone()
        return row[0] if row is not None else None

    async def write(self, key: str, value: str) -> None:
        await self.db.execute(
            "INSERT OR REPLACE INTO cache_entries (key, value) VALUES (?, ?)",
            (key, value),
        )
        await self.db.commit()
