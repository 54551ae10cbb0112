"""
Database connection management.

One aiosqlite connection is opened for the whole bot lifecycle and shared
by every manager. Writes go through ``transaction()``, which serialises
them with a semaphore (SQLite allows a single writer) and commits or rolls
back as a unit. Reads use ``connection`` directly; WAL mode lets them run
alongside a writer.

Usage::

    await db_connection.open(settings.database.path)

    async with db_connection.transaction() as conn:
        await conn.execute("UPDATE players SET paid = 1 WHERE ign = ?", (ign,))

    await db_connection.close()
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from lunarbridge.config.logging import get_logger

logger = get_logger(__name__)

_PRAGMAS = [
    "PRAGMA journal_mode = WAL",
    "PRAGMA foreign_keys = ON",
    "PRAGMA synchronous = NORMAL",
    "PRAGMA temp_store = MEMORY",
]

MEMORY = ":memory:"


class ConnectionManager:
    """
    Wrapper around a single aiosqlite connection.

    Pass ``":memory:"`` as the path for a throwaway database (tests).
    """

    def __init__(self) -> None:
        self._conn: aiosqlite.Connection | None = None
        self._write_sem = asyncio.Semaphore(1)
        self._path: Path | str | None = None

    async def open(self, path: Path | str) -> None:
        """
        Open the database and apply pragmas.

        Args:
            path: Path to the SQLite database file, or ``":memory:"``
        """
        if self._conn is not None:
            logger.warning("[DB CONNECTION] open() called but connection already exists, ignoring")
            return

        self._path = path
        if path != MEMORY:
            Path(path).parent.mkdir(parents=True, exist_ok=True)

        self._conn = await aiosqlite.connect(path)
        self._conn.row_factory = aiosqlite.Row

        for pragma in _PRAGMAS:
            await self._conn.execute(pragma)
        await self._conn.commit()

        logger.info("[DB CONNECTION] Opened connection to %s", path)

    async def close(self) -> None:
        """Flush the WAL and close the connection."""
        if self._conn is None:
            return

        try:
            if self._path != MEMORY:
                await self._conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
                await self._conn.commit()
        except aiosqlite.Error:
            logger.exception("[DB CONNECTION] WAL checkpoint failed during close")
        finally:
            await self._conn.close()
            self._conn = None
            logger.info("[DB CONNECTION] Connection closed")

    @property
    def connection(self) -> aiosqlite.Connection:
        """
        The raw aiosqlite connection for read operations.

        Raises:
            RuntimeError: If the connection has not been opened yet.
        """
        if self._conn is None:
            raise RuntimeError(
                "ConnectionManager: connection is not open. "
                "Call await db_connection.open(path) at startup."
            )
        return self._conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """
        Serialised write transaction: commits on clean exit, rolls back on error.

        Raises:
            RuntimeError: If the connection is not open.
        """
        conn = self.connection

        async with self._write_sem:
            try:
                yield conn
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise


# Module-level singleton
db_connection = ConnectionManager()
