"""Exception hierarchy for the reconciliation engine.

Error classes map onto the failure categories callers need to tell
apart:

- ``StateNotFoundError`` / ``ConflictNotFoundError`` -- the requested
  record is absent and the operation required it.
- ``PersistenceError`` -- the state database rejected a read or write.
  Always propagated; state integrity cannot be assumed without it.
- ``RemoteCheckError`` / ``PageNotFoundError`` -- the remote metadata
  collaborator failed.  Remote change detection degrades to local-only
  classification instead of raising these.
- ``DetectionCancelled`` -- a detection pass was stopped by its
  cancellation token.
- ``ConfigError`` -- invalid configuration values.
"""

from __future__ import annotations


class ObsidianNotionSyncError(Exception):
    """Base class for all errors raised by this package."""


class StateNotFoundError(ObsidianNotionSyncError):
    """No sync state exists for a path that an operation requires."""

    def __init__(self, path: str) -> None:
        super().__init__(f"no sync state for path: {path}")
        self.path = path


class ConflictNotFoundError(ObsidianNotionSyncError):
    """No recorded conflict exists for a path."""

    def __init__(self, path: str) -> None:
        super().__init__(f"no conflict recorded for path: {path}")
        self.path = path


class PersistenceError(ObsidianNotionSyncError):
    """The state store failed to read or write."""


class DetectionCancelled(ObsidianNotionSyncError):
    """A change detection pass was cancelled before completion."""


class RemoteCheckError(ObsidianNotionSyncError):
    """The remote metadata checker could not answer a lookup."""


class PageNotFoundError(RemoteCheckError):
    """A remote page could not be found (deleted or inaccessible)."""

    def __init__(self, page_id: str) -> None:
        super().__init__(f"page not found: {page_id}")
        self.page_id = page_id


class ConfigError(ObsidianNotionSyncError, ValueError):
    """Configuration value is missing or invalid."""
