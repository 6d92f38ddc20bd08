"""Pydantic models for the reconciliation engine.

Defines the data contracts shared across the ``state`` modules:

- ``SyncState``: Persisted sync record for one vault path.
- ``LinkEntry``: One wiki-link from a source note.
- ``HistoryEntry``: Append-only history row.
- ``ConflictInfo``: Snapshot of a detected conflict.
- ``ContentHashes``: Normalized hash breakdown of a document.
- ``Change``: Ephemeral classification produced by change detection.
- ``MatchResult`` / ``ResolveResult`` / ``LinkSuggestion`` /
  ``RepairResult`` / ``LinkStats``: Link resolution outputs.
- ``RemotePageInfo``: Metadata returned by a remote checker.
- ``ReconcileSettings``: Explicit detector and registry settings.

All models are frozen (immutable).  Use ``model_copy(update=...)`` to
derive a modified record.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum, IntEnum

from pydantic import BaseModel, Field


class SyncStatus(str, Enum):
    """Lifecycle status of a tracked document."""

    PENDING = "pending"
    SYNCED = "synced"
    CONFLICT = "conflict"
    ERROR = "error"


class ChangeType(str, Enum):
    """Kind of change detected for a path."""

    CREATED = "created"
    MODIFIED = "modified"
    RENAMED = "renamed"
    DELETED = "deleted"
    CONFLICT = "conflict"


class Direction(str, Enum):
    """Which way a change should flow."""

    PUSH = "push"
    PULL = "pull"
    BOTH = "both"


class MatchScore(IntEnum):
    """Quality of a fuzzy match, higher is better."""

    NONE = 0
    FUZZY = 1
    PREFIX = 2
    CASE_INSENSITIVE = 3
    EXACT = 4


class SyncState(BaseModel):
    """Sync state of a single vault document.

    Attributes:
        id: Row id assigned by the store (``None`` before first save).
        obsidian_path: Vault-relative POSIX path (unique key).
        notion_page_id: Remote page id, empty until first push.
        notion_parent_id: Remote parent id, empty until first push.
        content_hash: Normalized body hash.
        frontmatter_hash: Normalized front matter hash.
        obsidian_mtime: Last observed local modification time.
        notion_mtime: Last observed remote last-edited time.
        last_sync: Time of the last successful reconciliation.
        sync_direction: Direction or resolution label of the last sync.
        status: Lifecycle status.
    """

    id: int | None = None
    obsidian_path: str
    notion_page_id: str = ""
    notion_parent_id: str = ""
    content_hash: str = ""
    frontmatter_hash: str = ""
    obsidian_mtime: datetime | None = None
    notion_mtime: datetime | None = None
    last_sync: datetime | None = None
    sync_direction: str = ""
    status: SyncStatus = SyncStatus.PENDING

    model_config = {"frozen": True}


class LinkEntry(BaseModel):
    """A wiki-link from one note to another."""

    id: int
    source_path: str
    target_name: str
    target_path: str = ""
    notion_page_id: str = ""
    resolved: bool = False

    model_config = {"frozen": True}


class HistoryEntry(BaseModel):
    """A row of the append-only sync history."""

    id: int
    path: str
    action: str
    timestamp: datetime
    content_hash: str = ""
    details: str = ""

    model_config = {"frozen": True}


class ConflictInfo(BaseModel):
    """Details about a sync conflict, stored in the history log.

    Attributes:
        path: Vault-relative path of the conflicted note.
        local_hash: Hash of the local content at detection time.
        remote_hash: Hash of the remote content, when known.
        local_mtime: Local modification time at detection.
        remote_mtime: Remote last-edited time at detection.
        detected_at: When the conflict was detected.
        local_content: Optional snapshot of the local content.
        remote_content: Optional snapshot of the remote content.
    """

    path: str
    local_hash: str = ""
    remote_hash: str = ""
    local_mtime: datetime | None = None
    remote_mtime: datetime | None = None
    detected_at: datetime
    local_content: str | None = None
    remote_content: str | None = None

    model_config = {"frozen": True}


class ContentHashes(BaseModel):
    """Normalized hashes of a document.

    Empty strings mean the corresponding normalized part was empty.
    """

    content_hash: str = ""
    frontmatter_hash: str = ""
    full_hash: str = ""

    model_config = {"frozen": True}


class Change(BaseModel):
    """A detected change for one path.

    Attributes:
        path: Current vault path.
        old_path: Previous path, for renames.
        type: Kind of change.
        direction: Push, pull, or both (conflict).
        local_hash: Full hash of the local content.
        remote_hash: Remote or previously stored hash, when known.
        local_mtime: Local modification time.
        remote_mtime: Remote last-edited time.
        frontmatter_only: Only the metadata block differs.
        state: Associated sync state, if the path is tracked.
        local_hashes: Hash breakdown of the local content.
    """

    path: str
    old_path: str = ""
    type: ChangeType
    direction: Direction
    local_hash: str = ""
    remote_hash: str = ""
    local_mtime: datetime | None = None
    remote_mtime: datetime | None = None
    frontmatter_only: bool = False
    state: SyncState | None = None
    local_hashes: ContentHashes | None = None

    model_config = {"frozen": True}


class MatchResult(BaseModel):
    """A candidate document annotated with its match quality."""

    path: str
    page_id: str = ""
    name: str = ""
    score: MatchScore = MatchScore.NONE
    distance: int = 0

    model_config = {"frozen": True}


class ResolveResult(BaseModel):
    """Outcome of extended link resolution.

    Attributes:
        page_id: Remote page id (empty when unresolved).
        path: Vault path of the target (empty when unknown).
        heading: Heading anchor from ``[[Page#Heading]]``.
        block_ref: Block reference from ``[[Page^block-id]]``.
        found: Whether the target was resolved.
        fuzzy_match: Whether resolution needed fuzzy matching.
        distance: Edit distance of a fuzzy match.
    """

    page_id: str = ""
    path: str = ""
    heading: str = ""
    block_ref: str = ""
    found: bool = False
    fuzzy_match: bool = False
    distance: int = 0

    model_config = {"frozen": True}


class LinkSuggestion(BaseModel):
    """Ranked candidates for one unresolved link."""

    target: str
    source_path: str = ""
    suggestions: list[MatchResult] = Field(default_factory=list)

    model_config = {"frozen": True}


class RepairResult(BaseModel):
    """Outcome of repairing a single unresolved link."""

    source_path: str
    target_name: str
    matched_path: str
    matched_id: str
    score: MatchScore
    distance: int
    was_repaired: bool = False
    error: str | None = None

    model_config = {"frozen": True}


class LinkStats(BaseModel):
    """Link resolution statistics."""

    total: int = 0
    resolved: int = 0
    unresolved: int = 0
    by_source: dict[str, int] = Field(default_factory=dict)

    model_config = {"frozen": True}


class RemotePageInfo(BaseModel):
    """Metadata about a remote page as reported by a remote checker.

    ``error`` is set when the page could not be fetched (deleted,
    permission denied, network failure); the other fields are then
    meaningless.
    """

    page_id: str
    last_edited_time: datetime | None = None
    archived: bool = False
    error: str | None = None

    model_config = {"frozen": True}


class ReconcileSettings(BaseModel):
    """Explicit knobs handed to the detectors and the link registry.

    Attributes:
        fuzzy: Allow fuzzy link resolution during bulk resolve passes.
        max_distance: Fixed fuzzy edit-distance threshold; ``0`` scales the
            threshold with the target length.
        exclude: Glob patterns (vault-relative) skipped by the vault scan.
        extension: File suffix of tracked documents.
    """

    fuzzy: bool = False
    max_distance: int = Field(default=0, ge=0)
    exclude: tuple[str, ...] = ()
    extension: str = ".md"

    model_config = {"frozen": True}
