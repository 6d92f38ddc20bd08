"""Conflict recording and resolution with an append-only audit trail.

Recording a conflict flips the document's status to ``conflict`` and
appends a ``conflict`` history row carrying the JSON-serialised
``ConflictInfo``.  Resolving it flips the status back to ``synced`` and
appends a ``conflict_resolved`` row; the original entry is never
modified.  Each status change and its history row are written in one
store transaction.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone

from pydantic import ValidationError

from obsidian_notion_sync.errors import (
    ConflictNotFoundError,
    PersistenceError,
    StateNotFoundError,
)
from obsidian_notion_sync.state.db import DEFAULT_HISTORY_LIMIT, StateStore
from obsidian_notion_sync.state.models import (
    ConflictInfo,
    HistoryEntry,
    SyncState,
    SyncStatus,
)

logger = logging.getLogger(__name__)

ACTION_CONFLICT = "conflict"
ACTION_CONFLICT_RESOLVED = "conflict_resolved"


class ConflictTracker:
    """Record, query, and resolve conflicts for tracked documents."""

    def __init__(self, store: StateStore) -> None:
        self.store = store

    def record_conflict(self, info: ConflictInfo) -> None:
        """Mark ``info.path`` as conflicted and log the details.

        Raises:
            StateNotFoundError: If the path has no sync state.
        """
        with self.store.transaction():
            state = self._require_state(info.path)
            self.store.set_state(
                state.model_copy(update={"status": SyncStatus.CONFLICT})
            )
            self.store.record_history(
                info.path,
                ACTION_CONFLICT,
                details=info.model_dump_json(exclude_none=True),
                content_hash=info.local_hash,
            )
        logger.info("Conflict recorded for %s", info.path)

    def resolve_conflict(
        self, path: str, resolution: str, content_hash: str
    ) -> None:
        """Mark *path* as synced again after a conflict was settled.

        Args:
            path: Vault path of the conflicted document.
            resolution: Label such as ``"local"``, ``"remote"``, or
                ``"merged"``; stored as the sync direction.
            content_hash: Body hash of the resolved content.

        Raises:
            StateNotFoundError: If the path has no sync state.
        """
        now = datetime.now(timezone.utc)
        with self.store.transaction():
            state = self._require_state(path)
            self.store.set_state(
                state.model_copy(
                    update={
                        "status": SyncStatus.SYNCED,
                        "content_hash": content_hash,
                        "last_sync": now,
                        "sync_direction": resolution,
                    }
                )
            )
            self.store.record_history(
                path,
                ACTION_CONFLICT_RESOLVED,
                details=json.dumps(
                    {"resolution": resolution, "content_hash": content_hash}
                ),
                content_hash=content_hash,
                timestamp=now,
            )
        logger.info("Conflict resolved for %s (%s)", path, resolution)

    def get_conflicts(self) -> list[SyncState]:
        """Return every document currently in conflict, ordered by path."""
        return self.store.list_states(SyncStatus.CONFLICT)

    def get_conflict_info(self, path: str) -> ConflictInfo:
        """Return the most recently recorded conflict for *path*.

        Raises:
            ConflictNotFoundError: If no conflict was ever recorded.
            PersistenceError: If the stored details cannot be decoded.
        """
        entries = self.store.get_history(path, limit=1, action=ACTION_CONFLICT)
        if not entries:
            raise ConflictNotFoundError(path)
        try:
            return ConflictInfo.model_validate_json(entries[0].details)
        except ValidationError as exc:
            raise PersistenceError(
                f"corrupt conflict record for {path}: {exc}"
            ) from exc

    def has_conflict(self, path: str) -> bool:
        state = self.store.get_state(path)
        return state is not None and state.status == SyncStatus.CONFLICT

    def get_history(
        self, path: str, limit: int = DEFAULT_HISTORY_LIMIT
    ) -> list[HistoryEntry]:
        return self.store.get_history(path, limit)

    def clear_history(self, older_than: timedelta) -> int:
        """Prune history rows older than *older_than*; returns rows deleted."""
        return self.store.clear_history(older_than)

    def _require_state(self, path: str) -> SyncState:
        state = self.store.get_state(path)
        if state is None:
            raise StateNotFoundError(path)
        return state
