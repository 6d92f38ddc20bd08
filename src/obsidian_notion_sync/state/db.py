"""SQLite state store: connection management, schema, and record CRUD.

Holds one ``sync_state`` row per tracked vault path, the ``links``
table used by the link registry, the append-only ``sync_history`` log,
and a scalar ``config`` key/value table.

Key design choices:

* **Immediate visibility** -- every write commits before returning, so a
  subsequent read in the same process always sees it.
* **Single shared connection** -- the connection is opened with
  ``check_same_thread=False`` and every statement runs under an internal
  re-entrant lock.  Worker threads writing different paths therefore
  never need a lock of their own.
* **Explicit compound writes** -- multi-row operations run inside
  ``transaction()``, which commits on success and rolls back on any
  error so a half-applied state is never left behind.
* **Error wrapping** -- every ``sqlite3.Error`` surfaces as
  ``PersistenceError``.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from obsidian_notion_sync.errors import PersistenceError
from obsidian_notion_sync.state.models import (
    HistoryEntry,
    SyncState,
    SyncStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50

_SCHEMA_SQL = """\
-- Core sync state
CREATE TABLE IF NOT EXISTS sync_state (
    id               INTEGER PRIMARY KEY,
    obsidian_path    TEXT UNIQUE NOT NULL,
    notion_page_id   TEXT,
    notion_parent_id TEXT,
    content_hash     TEXT NOT NULL DEFAULT '',
    frontmatter_hash TEXT,
    obsidian_mtime   INTEGER,
    notion_mtime     INTEGER,
    last_sync        INTEGER,
    sync_direction   TEXT,
    status           TEXT NOT NULL DEFAULT 'pending'
        CHECK(status IN ('pending','synced','conflict','error'))
);

-- Link resolution cache
CREATE TABLE IF NOT EXISTS links (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    source_path    TEXT NOT NULL,
    target_name    TEXT NOT NULL,
    target_path    TEXT,
    notion_page_id TEXT,
    resolved       INTEGER NOT NULL DEFAULT 0,
    UNIQUE(source_path, target_name)
);

-- Sync history (append-only)
CREATE TABLE IF NOT EXISTS sync_history (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    obsidian_path TEXT NOT NULL,
    action        TEXT NOT NULL,
    timestamp     INTEGER NOT NULL,
    content_hash  TEXT,
    details       TEXT
);

-- Configuration
CREATE TABLE IF NOT EXISTS config (
    key   TEXT PRIMARY KEY,
    value TEXT
);

-- Indexes
CREATE INDEX IF NOT EXISTS idx_sync_state_status ON sync_state(status);
CREATE INDEX IF NOT EXISTS idx_sync_state_notion_page ON sync_state(notion_page_id);
CREATE INDEX IF NOT EXISTS idx_links_source ON links(source_path);
CREATE INDEX IF NOT EXISTS idx_links_target ON links(target_name);
CREATE INDEX IF NOT EXISTS idx_history_path ON sync_history(obsidian_path);
"""

_STATE_COLUMNS = (
    "id, obsidian_path, notion_page_id, notion_parent_id, "
    "content_hash, frontmatter_hash, obsidian_mtime, notion_mtime, "
    "last_sync, sync_direction, status"
)


class StateStore:
    """SQLite-backed store for sync state, links, and history.

    Args:
        db_path: Path of the database file, or ``":memory:"``.

    The store can be used as a context manager; ``close()`` is called on
    exit.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.path = str(db_path)
        self._lock = threading.RLock()
        self._conn = self._open()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    def _open(self) -> sqlite3.Connection:
        if self.path != ":memory:":
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = sqlite3.connect(
                self.path, check_same_thread=False, isolation_level=None
            )
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA busy_timeout=5000")
            conn.executescript(_SCHEMA_SQL)
        except sqlite3.Error as exc:
            raise PersistenceError(
                f"open database {self.path}: {exc}"
            ) from exc
        logger.debug("Opened state database %s", self.path)
        return conn

    def close(self) -> None:
        """Close the underlying connection."""
        with self._lock:
            self._conn.close()

    def __enter__(self) -> StateStore:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Run a block of writes atomically.

        Nested use joins the outer transaction.  Any exception rolls the
        whole block back and is re-raised (``sqlite3.Error`` as
        ``PersistenceError``).
        """
        with self._lock:
            if self._conn.in_transaction:
                yield
                return
            try:
                self._conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as exc:
                raise PersistenceError(f"begin transaction: {exc}") from exc
            try:
                yield
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            try:
                self._conn.execute("COMMIT")
            except sqlite3.Error as exc:
                raise PersistenceError(f"commit: {exc}") from exc

    def execute(
        self, sql: str, params: Sequence[Any] = ()
    ) -> sqlite3.Cursor:
        """Execute one statement under the store lock.

        Exposed for the link registry and conflict tracker, which own
        their own queries against the shared tables.
        """
        with self._lock:
            try:
                return self._conn.execute(sql, params)
            except sqlite3.Error as exc:
                raise PersistenceError(str(exc)) from exc

    def query_all(
        self, sql: str, params: Sequence[Any] = ()
    ) -> list[sqlite3.Row]:
        with self._lock:
            return self.execute(sql, params).fetchall()

    def query_one(
        self, sql: str, params: Sequence[Any] = ()
    ) -> sqlite3.Row | None:
        with self._lock:
            return self.execute(sql, params).fetchone()

    # ------------------------------------------------------------------
    # Sync state
    # ------------------------------------------------------------------

    def get_state(self, path: str) -> SyncState | None:
        """Return the sync state for *path*, or ``None`` if untracked."""
        row = self.query_one(
            f"SELECT {_STATE_COLUMNS} FROM sync_state WHERE obsidian_path = ?",
            (path,),
        )
        if row is None:
            return None
        return _row_to_state(row)

    def set_state(self, state: SyncState) -> None:
        """Insert or update the state keyed by ``state.obsidian_path``."""
        self.execute(
            """
            INSERT INTO sync_state (
                obsidian_path, notion_page_id, notion_parent_id,
                content_hash, frontmatter_hash, obsidian_mtime, notion_mtime,
                last_sync, sync_direction, status
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(obsidian_path) DO UPDATE SET
                notion_page_id = excluded.notion_page_id,
                notion_parent_id = excluded.notion_parent_id,
                content_hash = excluded.content_hash,
                frontmatter_hash = excluded.frontmatter_hash,
                obsidian_mtime = excluded.obsidian_mtime,
                notion_mtime = excluded.notion_mtime,
                last_sync = excluded.last_sync,
                sync_direction = excluded.sync_direction,
                status = excluded.status
            """,
            (
                state.obsidian_path,
                _null_string(state.notion_page_id),
                _null_string(state.notion_parent_id),
                state.content_hash,
                _null_string(state.frontmatter_hash),
                to_unix(state.obsidian_mtime),
                to_unix(state.notion_mtime),
                to_unix(state.last_sync),
                _null_string(state.sync_direction),
                SyncStatus(state.status).value,
            ),
        )

    def delete_state(self, path: str) -> None:
        """Remove the sync state for *path*.  No-op if absent."""
        self.execute(
            "DELETE FROM sync_state WHERE obsidian_path = ?", (path,)
        )

    def list_states(
        self, status: SyncStatus | str | None = None
    ) -> list[SyncState]:
        """Return states with the given status, ordered by path.

        An empty or ``None`` status returns every state.
        """
        if not status:
            rows = self.query_all(
                f"SELECT {_STATE_COLUMNS} FROM sync_state "
                "ORDER BY obsidian_path"
            )
        else:
            rows = self.query_all(
                f"SELECT {_STATE_COLUMNS} FROM sync_state "
                "WHERE status = ? ORDER BY obsidian_path",
                (SyncStatus(status).value,),
            )
        return [_row_to_state(row) for row in rows]

    # ------------------------------------------------------------------
    # Scalar config
    # ------------------------------------------------------------------

    def get_config(self, key: str) -> str:
        """Return the config value for *key*, or ``""`` if unset."""
        row = self.query_one(
            "SELECT value FROM config WHERE key = ?", (key,)
        )
        if row is None or row[0] is None:
            return ""
        return str(row[0])

    def set_config(self, key: str, value: str) -> None:
        self.execute(
            "INSERT INTO config (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
            (key, value),
        )

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def record_history(
        self,
        path: str,
        action: str,
        details: str = "",
        content_hash: str = "",
        timestamp: datetime | None = None,
    ) -> None:
        """Append a row to the sync history."""
        when = timestamp or datetime.now(timezone.utc)
        self.execute(
            "INSERT INTO sync_history "
            "(obsidian_path, action, timestamp, content_hash, details) "
            "VALUES (?, ?, ?, ?, ?)",
            (
                path,
                action,
                to_unix(when),
                _null_string(content_hash),
                _null_string(details),
            ),
        )

    def get_history(
        self,
        path: str,
        limit: int = DEFAULT_HISTORY_LIMIT,
        action: str | None = None,
    ) -> list[HistoryEntry]:
        """Return history rows for *path*, newest first.

        Args:
            path: Vault path to query.
            limit: Maximum rows; values ``<= 0`` mean the default (50).
            action: Restrict to one action kind.
        """
        if limit <= 0:
            limit = DEFAULT_HISTORY_LIMIT
        sql = (
            "SELECT id, obsidian_path, action, timestamp, content_hash, "
            "details FROM sync_history WHERE obsidian_path = ?"
        )
        params: list[Any] = [path]
        if action is not None:
            sql += " AND action = ?"
            params.append(action)
        # id breaks ties between rows written within the same second
        sql += " ORDER BY timestamp DESC, id DESC LIMIT ?"
        params.append(limit)

        return [
            HistoryEntry(
                id=row["id"],
                path=row["obsidian_path"],
                action=row["action"],
                timestamp=from_unix(row["timestamp"]),
                content_hash=row["content_hash"] or "",
                details=row["details"] or "",
            )
            for row in self.query_all(sql, params)
        ]

    def clear_history(self, older_than: timedelta) -> int:
        """Delete history rows older than *older_than*.

        Returns:
            Number of rows deleted.
        """
        cutoff = datetime.now(timezone.utc) - older_than
        cursor = self.execute(
            "DELETE FROM sync_history WHERE timestamp < ?",
            (to_unix(cutoff),),
        )
        deleted = cursor.rowcount
        logger.info("Cleared %d history entries older than %s", deleted, cutoff)
        return deleted


# ----------------------------------------------------------------------
# Conversion helpers
# ----------------------------------------------------------------------


def to_unix(value: datetime | None) -> int | None:
    """Convert a datetime to Unix seconds; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp())


def from_unix(value: int | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc)


def _null_string(value: str) -> str | None:
    return value or None


def _row_to_state(row: sqlite3.Row) -> SyncState:
    return SyncState(
        id=row["id"],
        obsidian_path=row["obsidian_path"],
        notion_page_id=row["notion_page_id"] or "",
        notion_parent_id=row["notion_parent_id"] or "",
        content_hash=row["content_hash"] or "",
        frontmatter_hash=row["frontmatter_hash"] or "",
        obsidian_mtime=from_unix(row["obsidian_mtime"]),
        notion_mtime=from_unix(row["notion_mtime"]),
        last_sync=from_unix(row["last_sync"]),
        sync_direction=row["sync_direction"] or "",
        status=SyncStatus(row["status"]),
    )
