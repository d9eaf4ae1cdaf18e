"""SQLite storage layer using aiosqlite.

Provides async database access with simple raw SQL, no ORM.
Tables: team_invitation (partitioned by team, clustered by id),
team_invitation_info (keyed by code), schema_version.

StoreSession is the shared handle every table class talks to. It opens one
connection per operation, so concurrent callers never share a transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncGenerator

import aiosqlite

from invite_store.config import settings
from invite_store.errors import SchemaVersionError
from invite_store.models import Consistency

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# Module-level database path, parsed from settings
_db_path: str = ""


def _resolve_db_path() -> str:
    """Parse the database URL into a file path (or :memory: for tests)."""
    url = settings.database_url
    if url == ":memory:" or url == "sqlite:///:memory:":
        return ":memory:"
    # Strip sqlite:/// prefix
    path = url.removeprefix("sqlite:///")
    return path


async def init_db() -> None:
    """Create tables if they don't exist and record the schema version. Call once at startup."""
    global _db_path
    _db_path = _resolve_db_path()

    # Ensure parent directory exists for file-based DBs
    if _db_path != ":memory:":
        Path(_db_path).parent.mkdir(parents=True, exist_ok=True)

    async with aiosqlite.connect(_db_path) as db:
        if _db_path != ":memory:":
            await db.execute("PRAGMA journal_mode=WAL")
        await db.execute("""
            CREATE TABLE IF NOT EXISTS team_invitation (
                team TEXT NOT NULL,
                id TEXT NOT NULL,
                code TEXT,
                email TEXT NOT NULL,
                created_at INTEGER NOT NULL,
                PRIMARY KEY (team, id)
            )
        """)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS team_invitation_info (
                code TEXT PRIMARY KEY,
                team TEXT NOT NULL,
                id TEXT NOT NULL
            )
        """)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER NOT NULL
            )
        """)
        cursor = await db.execute("SELECT MAX(version) FROM schema_version")
        row = await cursor.fetchone()
        if row is None or row[0] is None or row[0] < SCHEMA_VERSION:
            await db.execute("INSERT INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
        await db.commit()

    logger.info("Database initialized at %s (schema version %d)", _db_path, SCHEMA_VERSION)


async def version_check(required: int = SCHEMA_VERSION) -> int:
    """Fail if the database schema is older than `required`. Returns the found version."""
    async with get_db() as db:
        try:
            cursor = await db.execute("SELECT MAX(version) FROM schema_version")
        except aiosqlite.OperationalError as exc:
            raise SchemaVersionError(None, required) from exc
        row = await cursor.fetchone()

    found = row[0] if row else None
    if found is None or found < required:
        raise SchemaVersionError(found, required)
    return found


@asynccontextmanager
async def get_db() -> AsyncGenerator[aiosqlite.Connection, None]:
    """Async context manager for database connections.

    Usage:
        async with get_db() as db:
            await db.execute("SELECT ...")
    """
    db = await aiosqlite.connect(_db_path, timeout=settings.store_timeout)
    db.row_factory = aiosqlite.Row
    try:
        yield db
    finally:
        await db.close()


@dataclass(frozen=True)
class Statement:
    """A parameterized statement, executable alone or inside a batch."""
    query: str
    params: tuple[Any, ...] = ()


class StoreSession:
    """Shared, concurrency-safe handle to the invitation tables.

    Every method takes the consistency level the caller requires. The SQLite
    backend is a single node, so each level is met by the local commit.
    """

    async def fetch_one(
        self, statement: Statement, consistency: Consistency = Consistency.QUORUM
    ) -> aiosqlite.Row | None:
        async with get_db() as db:
            cursor = await db.execute(statement.query, statement.params)
            return await cursor.fetchone()

    async def fetch_all(
        self, statement: Statement, consistency: Consistency = Consistency.QUORUM
    ) -> list[aiosqlite.Row]:
        async with get_db() as db:
            cursor = await db.execute(statement.query, statement.params)
            return list(await cursor.fetchall())

    async def write(
        self, statement: Statement, consistency: Consistency = Consistency.QUORUM
    ) -> None:
        async with get_db() as db:
            await db.execute(statement.query, statement.params)
            await db.commit()

    async def batch(
        self, statements: Sequence[Statement], consistency: Consistency = Consistency.QUORUM
    ) -> None:
        """Apply all statements atomically: either every one lands or none does."""
        async with get_db() as db:
            try:
                for statement in statements:
                    await db.execute(statement.query, statement.params)
                await db.commit()
            except Exception:
                await db.rollback()
                raise
