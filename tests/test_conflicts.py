"""Tests for conflict recording and resolution.

Covers:
- record_conflict flips status and appends a history row
- get_conflict_info returns the latest recorded details
- resolve_conflict restores synced status with an audit row
- Missing state / missing conflict errors
- Atomicity of status change and history append
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone

import pytest

from obsidian_notion_sync.errors import (
    ConflictNotFoundError,
    PersistenceError,
    StateNotFoundError,
)
from obsidian_notion_sync.state.conflicts import (
    ACTION_CONFLICT,
    ACTION_CONFLICT_RESOLVED,
    ConflictTracker,
)
from obsidian_notion_sync.state.db import StateStore
from obsidian_notion_sync.state.models import ConflictInfo, SyncStatus

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def tracker(store: StateStore) -> ConflictTracker:
    return ConflictTracker(store)


def _info(path: str = "a.md", **kwargs) -> ConflictInfo:
    values = {
        "path": path,
        "local_hash": "local-h",
        "remote_hash": "remote-h",
        "local_mtime": T0,
        "remote_mtime": T0 + timedelta(minutes=5),
        "detected_at": T0 + timedelta(minutes=10),
    }
    values.update(kwargs)
    return ConflictInfo(**values)


# ---------------------------------------------------------------------------
# Recording
# ---------------------------------------------------------------------------


class TestRecordConflict:
    """Tests for ConflictTracker.record_conflict()."""

    def test_marks_state_conflicted(self, tracker: ConflictTracker, track):
        track("a.md", "body", page_id="p1")
        tracker.record_conflict(_info())
        assert tracker.has_conflict("a.md")
        assert [s.obsidian_path for s in tracker.get_conflicts()] == ["a.md"]

    def test_keeps_other_fields(self, tracker: ConflictTracker, store, track):
        before = track("a.md", "body", page_id="p1")
        tracker.record_conflict(_info())
        after = store.get_state("a.md")
        assert after.notion_page_id == before.notion_page_id
        assert after.content_hash == before.content_hash

    def test_appends_history(self, tracker: ConflictTracker, track):
        track("a.md", "body")
        tracker.record_conflict(_info())
        (entry,) = tracker.get_history("a.md")
        assert entry.action == ACTION_CONFLICT
        assert entry.content_hash == "local-h"

    def test_info_round_trip(self, tracker: ConflictTracker, track):
        """Recorded details come back unchanged."""
        track("a.md", "body")
        info = _info(local_content="mine\n", remote_content="theirs\n")
        tracker.record_conflict(info)
        assert tracker.get_conflict_info("a.md") == info

    def test_latest_conflict_returned(self, tracker: ConflictTracker, track):
        track("a.md", "body")
        tracker.record_conflict(_info(local_hash="first"))
        tracker.record_conflict(_info(local_hash="second"))
        assert tracker.get_conflict_info("a.md").local_hash == "second"

    def test_untracked_path_raises(self, tracker: ConflictTracker, store):
        with pytest.raises(StateNotFoundError) as exc_info:
            tracker.record_conflict(_info("ghost.md"))
        assert exc_info.value.path == "ghost.md"
        assert store.get_history("ghost.md") == []

    def test_history_failure_rolls_back_status(
        self,
        tracker: ConflictTracker,
        store: StateStore,
        track,
        monkeypatch: pytest.MonkeyPatch,
    ):
        """Status and audit row are written together or not at all."""
        track("a.md", "body")

        def fail(*args, **kwargs):
            raise PersistenceError("disk I/O error")

        monkeypatch.setattr(store, "record_history", fail)
        with pytest.raises(PersistenceError):
            tracker.record_conflict(_info())
        assert store.get_state("a.md").status == SyncStatus.SYNCED


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class TestConflictQueries:
    """Tests for get_conflicts / has_conflict / get_conflict_info."""

    def test_no_conflicts(self, tracker: ConflictTracker, track):
        track("a.md", "body")
        assert tracker.get_conflicts() == []
        assert not tracker.has_conflict("a.md")
        assert not tracker.has_conflict("missing.md")

    def test_conflicts_ordered_by_path(self, tracker: ConflictTracker, track):
        for path in ("c.md", "a.md", "b.md"):
            track(path, path)
            tracker.record_conflict(_info(path))
        assert [s.obsidian_path for s in tracker.get_conflicts()] == [
            "a.md",
            "b.md",
            "c.md",
        ]

    def test_info_without_conflict_raises(
        self, tracker: ConflictTracker, track
    ):
        track("a.md", "body")
        with pytest.raises(ConflictNotFoundError):
            tracker.get_conflict_info("a.md")

    def test_corrupt_details_raise_persistence_error(
        self, tracker: ConflictTracker, store: StateStore, track
    ):
        track("a.md", "body")
        store.record_history("a.md", ACTION_CONFLICT, details="{not json")
        with pytest.raises(PersistenceError):
            tracker.get_conflict_info("a.md")


# ---------------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------------


class TestResolveConflict:
    """Tests for ConflictTracker.resolve_conflict()."""

    def test_restores_synced(
        self, tracker: ConflictTracker, store: StateStore, track
    ):
        track("a.md", "body", page_id="p1")
        tracker.record_conflict(_info())
        tracker.resolve_conflict("a.md", "local", "resolved-hash")

        state = store.get_state("a.md")
        assert state.status == SyncStatus.SYNCED
        assert state.content_hash == "resolved-hash"
        assert state.sync_direction == "local"
        assert state.last_sync > T0
        assert not tracker.has_conflict("a.md")

    def test_audit_trail_preserved(self, tracker: ConflictTracker, track):
        """Resolving appends; the original conflict row survives."""
        track("a.md", "body")
        info = _info()
        tracker.record_conflict(info)
        tracker.resolve_conflict("a.md", "merged", "h2")

        entries = tracker.get_history("a.md")
        assert [e.action for e in entries] == [
            ACTION_CONFLICT_RESOLVED,
            ACTION_CONFLICT,
        ]
        assert json.loads(entries[0].details) == {
            "resolution": "merged",
            "content_hash": "h2",
        }
        assert tracker.get_conflict_info("a.md") == info

    def test_untracked_path_raises(self, tracker: ConflictTracker):
        with pytest.raises(StateNotFoundError):
            tracker.resolve_conflict("ghost.md", "local", "h")


class TestClearHistory:
    def test_prunes_old_rows(
        self, tracker: ConflictTracker, store: StateStore, track
    ):
        track("a.md", "body")
        store.record_history(
            "a.md",
            "push",
            timestamp=datetime.now(timezone.utc) - timedelta(days=100),
        )
        tracker.record_conflict(_info())
        assert tracker.clear_history(timedelta(days=90)) == 1
        assert [e.action for e in tracker.get_history("a.md")] == [
            ACTION_CONFLICT
        ]
