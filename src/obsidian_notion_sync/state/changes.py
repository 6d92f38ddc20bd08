"""Local change detection.

``ChangeDetector`` compares the documents currently in the vault with
the persisted sync state and classifies every difference:

1. **Tracked, on disk** -- hashes are recomputed.  Unchanged documents
   produce nothing; otherwise a ``MODIFIED``/``PUSH`` change is emitted
   (``CONFLICT``/``BOTH`` if the record is already flagged as conflicted).
2. **Untracked, on disk** -- if a tracked record whose file has vanished
   stores the same body hash, the document was renamed (``RENAMED``);
   otherwise it is new (``CREATED``).
3. **Tracked, missing** -- ``DELETED`` unless consumed by a rename.

Output order is deterministic: one entry per on-disk document in path
order, followed by deletions in path order.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterable
from typing import TYPE_CHECKING, Protocol

from obsidian_notion_sync.errors import DetectionCancelled
from obsidian_notion_sync.state.db import StateStore
from obsidian_notion_sync.state.hashing import (
    has_body_changed,
    has_content_changed,
    has_frontmatter_changed,
    hash_content,
    hashes_from_state,
)
from obsidian_notion_sync.state.models import (
    Change,
    ChangeType,
    Direction,
    ReconcileSettings,
    SyncState,
    SyncStatus,
)

if TYPE_CHECKING:
    from obsidian_notion_sync.vault import LocalFile, LocalFileSource

logger = logging.getLogger(__name__)


class CancelToken(Protocol):
    """Cooperative cancellation flag (``threading.Event`` satisfies it)."""

    def is_set(self) -> bool: ...


class ChangeDetector:
    """Classify local vault changes against the state store.

    Args:
        store: Persisted sync state.
        vault: Source of local documents.
        settings: Reconciliation settings (unused by local detection
            beyond being shared with the remote detector).
    """

    def __init__(
        self,
        store: StateStore,
        vault: LocalFileSource,
        settings: ReconcileSettings | None = None,
    ) -> None:
        self.store = store
        self.vault = vault
        self.settings = settings or ReconcileSettings()

    def detect_changes(self, cancel: CancelToken | None = None) -> list[Change]:
        """Scan the vault and return the detected local changes.

        Args:
            cancel: Checked once per document.

        Returns:
            Detected changes, on-disk documents first, then deletions.

        Raises:
            DetectionCancelled: If *cancel* is set during the scan.
            PersistenceError: If the state store cannot be read.
        """
        files = self.vault.list_files()
        states = {s.obsidian_path: s for s in self.store.list_states()}
        on_disk = {f.path for f in files}

        # Tracked records whose file has vanished, in path order; each may
        # be claimed by at most one renamed file.
        missing = [
            state
            for path, state in sorted(states.items())
            if path not in on_disk
        ]
        claimed: set[str] = set()

        changes: list[Change] = []
        for local in files:
            if cancel is not None and cancel.is_set():
                raise DetectionCancelled("local change detection cancelled")

            try:
                content = self.vault.read_bytes(local.path)
            except OSError as exc:
                logger.warning("Skipping unreadable file %s: %s", local.path, exc)
                continue

            state = states.get(local.path)
            if state is None:
                changes.append(
                    self._classify_untracked(local, content, missing, claimed)
                )
                continue

            change = self._classify_tracked(local, content, state)
            if change is not None:
                changes.append(change)

        for state in missing:
            if state.obsidian_path in claimed:
                continue
            changes.append(
                Change(
                    path=state.obsidian_path,
                    type=ChangeType.DELETED,
                    direction=Direction.PUSH,
                    remote_hash=state.content_hash,
                    remote_mtime=state.notion_mtime,
                    state=state,
                )
            )

        logger.info(
            "Local detection: %d changes across %d documents",
            len(changes),
            len(files),
        )
        return changes

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def _classify_tracked(
        self, local: LocalFile, content: bytes, state: SyncState
    ) -> Change | None:
        local_hashes = hash_content(content)
        stored = hashes_from_state(state)
        if not has_content_changed(stored, local_hashes):
            return None

        frontmatter_only = has_frontmatter_changed(
            stored, local_hashes
        ) and not has_body_changed(stored, local_hashes)

        change_type = ChangeType.MODIFIED
        direction = Direction.PUSH
        # A record already flagged as conflicted stays a conflict until
        # it is explicitly resolved.
        if state.status == SyncStatus.CONFLICT:
            change_type = ChangeType.CONFLICT
            direction = Direction.BOTH

        logger.debug(
            "%s: %s (frontmatter_only=%s)",
            local.path,
            change_type.value,
            frontmatter_only,
        )
        return Change(
            path=local.path,
            type=change_type,
            direction=direction,
            local_hash=local_hashes.full_hash,
            local_mtime=local.mtime,
            frontmatter_only=frontmatter_only,
            state=state,
            local_hashes=local_hashes,
        )

    def _classify_untracked(
        self,
        local: LocalFile,
        content: bytes,
        missing: list[SyncState],
        claimed: set[str],
    ) -> Change:
        local_hashes = hash_content(content)

        # An empty body carries no identity, so it never signals a rename.
        if local_hashes.content_hash:
            for candidate in missing:
                if candidate.obsidian_path in claimed:
                    continue
                if candidate.content_hash == local_hashes.content_hash:
                    claimed.add(candidate.obsidian_path)
                    logger.debug(
                        "Rename detected: %s -> %s",
                        candidate.obsidian_path,
                        local.path,
                    )
                    return Change(
                        path=local.path,
                        old_path=candidate.obsidian_path,
                        type=ChangeType.RENAMED,
                        direction=Direction.PUSH,
                        local_hash=local_hashes.full_hash,
                        local_mtime=local.mtime,
                        state=candidate,
                        local_hashes=local_hashes,
                    )

        return Change(
            path=local.path,
            type=ChangeType.CREATED,
            direction=Direction.PUSH,
            local_hash=local_hashes.full_hash,
            local_mtime=local.mtime,
            local_hashes=local_hashes,
        )


# ----------------------------------------------------------------------
# Change list helpers
# ----------------------------------------------------------------------


def filter_by_direction(
    changes: Iterable[Change], direction: Direction
) -> list[Change]:
    return [c for c in changes if c.direction == direction]


def filter_by_type(
    changes: Iterable[Change], change_type: ChangeType
) -> list[Change]:
    return [c for c in changes if c.type == change_type]


def has_conflicts(changes: Iterable[Change]) -> bool:
    """Return ``True`` if any change is a conflict."""
    return any(c.type == ChangeType.CONFLICT for c in changes)


def count_by_type(changes: Iterable[Change]) -> dict[ChangeType, int]:
    return dict(Counter(c.type for c in changes))


def count_by_direction(changes: Iterable[Change]) -> dict[Direction, int]:
    return dict(Counter(c.direction for c in changes))
