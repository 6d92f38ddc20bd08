"""Persisted reconciliation state and change classification.

Modules:

- ``hashing``   -- Normalized body / front matter hashing.
- ``db``        -- ``StateStore``: SQLite sync state, links, history.
- ``models``    -- Pydantic data contracts.
- ``fuzzy``     -- ``FuzzyMatcher``: normalized names and edit distance.
- ``links``     -- ``LinkRegistry``: wiki-link registration and resolution.
- ``changes``   -- ``ChangeDetector``: local change classification.
- ``remote``    -- ``RemoteChangeDetector`` and remote checker adapters.
- ``conflicts`` -- ``ConflictTracker``: conflict audit trail.
"""

from .changes import ChangeDetector
from .conflicts import ConflictTracker
from .db import StateStore
from .fuzzy import FuzzyMatcher
from .hashing import hash_content
from .links import LinkRegistry
from .models import (
    Change,
    ChangeType,
    ConflictInfo,
    ContentHashes,
    Direction,
    LinkEntry,
    MatchScore,
    ReconcileSettings,
    RemotePageInfo,
    SyncState,
    SyncStatus,
)
from .remote import (
    CachingRemoteChecker,
    CallableRemoteChecker,
    RemoteChangeDetector,
    RemoteChecker,
)

__all__ = [
    "CachingRemoteChecker",
    "CallableRemoteChecker",
    "Change",
    "ChangeDetector",
    "ChangeType",
    "ConflictInfo",
    "ConflictTracker",
    "ContentHashes",
    "Direction",
    "FuzzyMatcher",
    "LinkEntry",
    "LinkRegistry",
    "MatchScore",
    "ReconcileSettings",
    "RemoteChangeDetector",
    "RemoteChecker",
    "RemotePageInfo",
    "StateStore",
    "SyncState",
    "SyncStatus",
    "hash_content",
]
