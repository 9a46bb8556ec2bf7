"""SQLite storage for tasks, agents and trigger executions (aiosqlite)."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS tasks (
    id           TEXT PRIMARY KEY,
    title        TEXT NOT NULL,
    pitch        TEXT,
    content      TEXT,
    priority     TEXT NOT NULL DEFAULT 'medium',
    column_name  TEXT,
    owner        TEXT,
    parent_id    TEXT REFERENCES tasks(id),
    created_at   TEXT NOT NULL,
    updated_at   TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS agents (
    id                      TEXT PRIMARY KEY,
    name                    TEXT NOT NULL,
    model                   TEXT NOT NULL DEFAULT '',
    prompt                  TEXT NOT NULL DEFAULT '',
    pitch                   TEXT,
    trigger_config          TEXT,
    last_trigger_execution  TEXT,
    created_at              TEXT NOT NULL,
    updated_at              TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS trigger_executions (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    agent_id            TEXT NOT NULL REFERENCES agents(id) ON DELETE CASCADE,
    trigger_type        TEXT NOT NULL,
    source_entity_type  TEXT NOT NULL DEFAULT 'none',
    source_entity_id    TEXT NOT NULL DEFAULT '',
    changed_fields      TEXT NOT NULL DEFAULT '[]',
    conditions_met      INTEGER NOT NULL DEFAULT 0,
    executed            INTEGER NOT NULL DEFAULT 0,
    error_message       TEXT,
    created_at          TEXT NOT NULL
);
"""

_INDEX_SQL = """
CREATE INDEX IF NOT EXISTS idx_trigger_executions_agent
    ON trigger_executions(agent_id, created_at);
CREATE INDEX IF NOT EXISTS idx_tasks_parent ON tasks(parent_id);
"""


def utcnow() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class Database:
    """Async SQLite wrapper around a single aiosqlite connection.

    Parameters
    ----------
    db_path:
        Path to the SQLite database file.  Use ``":memory:"`` for tests.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None
        self._tx_lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        """Open the connection, enable WAL and foreign keys, create schema."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        # Autocommit mode; explicit transactions go through transaction().
        self._conn = await aiosqlite.connect(self.db_path, isolation_level=None)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA busy_timeout = 5000")
        await self._conn.execute("PRAGMA foreign_keys=ON")
        await self._conn.executescript(_SCHEMA_SQL)
        await self._conn.executescript(_INDEX_SQL)
        await self._conn.commit()
        logger.debug("Database initialized at %s", self.db_path)

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    def _require_conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._conn

    @asynccontextmanager
    async def transaction(self):
        """Run several statements atomically.

        An asyncio lock keeps concurrent coroutines from issuing a nested
        BEGIN on the shared connection.
        """
        conn = self._require_conn()
        async with self._tx_lock:
            await conn.execute("BEGIN")
            try:
                yield conn
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------

    async def execute_fetchall(self, sql: str, params: tuple = ()) -> list[dict]:
        """Rows of *sql* as plain dicts (empty list when nothing matches)."""
        async with self._require_conn().execute(sql, params) as cursor:
            return [dict(row) for row in await cursor.fetchall()]

    async def execute_fetchone(self, sql: str, params: tuple = ()) -> dict | None:
        """First row of *sql* as a dict, or None."""
        async with self._require_conn().execute(sql, params) as cursor:
            row = await cursor.fetchone()
        return dict(row) if row is not None else None

    async def execute(self, sql: str, params: tuple = ()) -> int:
        """Execute a statement, commit, and return the affected row count."""
        conn = self._require_conn()
        cursor = await conn.execute(sql, params)
        await conn.commit()
        return cursor.rowcount

    async def execute_insert(self, sql: str, params: tuple = ()) -> int:
        """Execute an INSERT, commit, and return the new row id."""
        conn = self._require_conn()
        cursor = await conn.execute(sql, params)
        await conn.commit()
        return cursor.lastrowid
