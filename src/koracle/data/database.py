"""Async SQLite database manager for the oracle's durable state.

Uses aiosqlite for non-blocking database operations with WAL mode.
Holds one append-only observation log per token and one KInfo record
per token.
"""

import asyncio
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Self

import aiosqlite

from koracle.logging import get_logger

logger = get_logger(__name__)

SCHEMA_VERSION = 1

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS price_observations (
    token TEXT NOT NULL,
    sequence_index INTEGER NOT NULL,
    eth_amount TEXT NOT NULL,
    token_amount TEXT NOT NULL,
    timestamp INTEGER NOT NULL,
    PRIMARY KEY (token, sequence_index)
);

CREATE TABLE IF NOT EXISTS k_info (
    token TEXT PRIMARY KEY,
    k TEXT NOT NULL,
    sigma TEXT NOT NULL,
    t INTEGER NOT NULL,
    updated_at INTEGER NOT NULL
);
"""


class OracleDatabase:
    """Async SQLite connection manager for oracle state.

    Manages database lifecycle including schema creation, WAL mode
    configuration, and clean resource cleanup.

    Usage:
        async with OracleDatabase("/path/to/db") as db:
            await db.db.execute("SELECT ...")
    """

    def __init__(self, db_path: str = "data/oracle.db", synchronous: str = "FULL") -> None:
        self._db_path = db_path
        self._synchronous = synchronous
        self._connection: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    @property
    def db(self) -> aiosqlite.Connection:
        """Access the raw aiosqlite connection.

        Raises RuntimeError if not connected.
        """
        if self._connection is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._connection

    async def connect(self) -> None:
        """Open database connection, configure pragmas, and create schema.

        Creates the parent directory if it does not exist.
        """
        db_dir = os.path.dirname(self._db_path)
        if db_dir:
            os.makedirs(db_dir, exist_ok=True)

        self._connection = await aiosqlite.connect(self._db_path)

        await self._connection.execute("PRAGMA journal_mode=WAL")
        await self._connection.execute(f"PRAGMA synchronous={self._synchronous}")

        await self._create_tables()
        await self._ensure_schema_version()

        logger.info("oracle_db_connected", db_path=self._db_path, synchronous=self._synchronous)

    async def close(self) -> None:
        """Close the database connection if open."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("oracle_db_closed", db_path=self._db_path)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Run a write as one committed unit on the shared connection.

        Writers for every token share a single connection, so the write lock
        spans execute through commit: a rollback can only ever discard the
        statements issued inside its own block.
        """
        async with self._write_lock:
            db = self.db
            try:
                yield db
                await db.commit()
            except BaseException:
                await db.rollback()
                raise

    async def _create_tables(self) -> None:
        assert self._connection is not None
        await self._connection.executescript(_CREATE_TABLES_SQL)
        await self._connection.commit()

    async def _ensure_schema_version(self) -> None:
        """Insert schema version if not already set."""
        assert self._connection is not None
        cursor = await self._connection.execute(
            "SELECT version FROM schema_version LIMIT 1"
        )
        row = await cursor.fetchone()
        if row is None:
            await self._connection.execute(
                "INSERT INTO schema_version (version) VALUES (?)",
                (SCHEMA_VERSION,),
            )
            await self._connection.commit()
            logger.info("schema_version_set", version=SCHEMA_VERSION)

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # type: ignore[no-untyped-def]
        """Async context manager exit."""
        await self.close()
