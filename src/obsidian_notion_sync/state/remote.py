"""Remote-aware change detection.

``RemoteChangeDetector`` runs local detection first, then asks an
injected ``RemoteChecker`` for the last-edited time and archived flag of
every synced page, and merges the answers into the local changes:

==========================  ===============================  =================
Remote                      Local                            Result
==========================  ===============================  =================
unchanged                   unchanged                        nothing
unchanged                   changed                          local change
newer than stored mtime     unchanged                        MODIFIED / PULL
newer than stored mtime     changed                          CONFLICT / BOTH
archived                    unchanged (or missing record)    DELETED / PULL
archived                    modified                         CONFLICT / BOTH
archived                    deleted                          DELETED / PUSH
lookup error                any                              local change only
==========================  ===============================  =================

Remote timestamps are truncated to whole seconds before comparison since
the store keeps Unix seconds.  Only timestamps are compared: two remote
edits within the same second as the stored snapshot are not seen.

A missing checker, or a checker whose batch call fails outright,
degrades to local-only results; remote errors never propagate.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from typing import TYPE_CHECKING, Protocol

from obsidian_notion_sync.errors import (
    DetectionCancelled,
    PageNotFoundError,
    RemoteCheckError,
)
from obsidian_notion_sync.state.changes import CancelToken, ChangeDetector
from obsidian_notion_sync.state.db import StateStore, to_unix
from obsidian_notion_sync.state.hashing import (
    has_content_changed,
    hash_content,
    hashes_from_state,
)
from obsidian_notion_sync.state.models import (
    Change,
    ChangeType,
    Direction,
    ReconcileSettings,
    RemotePageInfo,
    SyncState,
    SyncStatus,
)
from obsidian_notion_sync.sync.worker import (
    WorkerPool,
    process,
    run_in_thread,
)

if TYPE_CHECKING:
    from obsidian_notion_sync.vault import LocalFileSource

logger = logging.getLogger(__name__)


class RemoteChecker(Protocol):
    """Supplies remote page metadata to the change detector."""

    def get_page_info(self, page_id: str) -> RemotePageInfo:
        """Return metadata for one page.

        Raises:
            RemoteCheckError: If the page cannot be looked up.
        """
        ...

    def get_pages_info_batch(
        self, page_ids: Sequence[str]
    ) -> dict[str, RemotePageInfo]:
        """Return metadata for many pages, keyed by page id.

        Per-page failures are reported through ``RemotePageInfo.error``.
        """
        ...


class RemoteChangeDetector(ChangeDetector):
    """Local change detection merged with remote page metadata.

    Args:
        store: Persisted sync state.
        vault: Source of local documents.
        remote: Remote metadata checker; ``None`` disables remote checks.
        settings: Reconciliation settings.
    """

    def __init__(
        self,
        store: StateStore,
        vault: LocalFileSource,
        remote: RemoteChecker | None = None,
        settings: ReconcileSettings | None = None,
    ) -> None:
        super().__init__(store, vault, settings)
        self.remote = remote
        self._lock = threading.Lock()

    def detect_all_changes(
        self, cancel: CancelToken | None = None
    ) -> list[Change]:
        """Detect local and remote changes, one change per path.

        Raises:
            DetectionCancelled: If *cancel* is set during detection.
            PersistenceError: If the state store cannot be read.
        """
        with self._lock:
            return self._detect_all(cancel)

    def _detect_all(self, cancel: CancelToken | None) -> list[Change]:
        local_changes = self.detect_changes(cancel)
        if self.remote is None:
            return local_changes

        synced = [
            s
            for s in self.store.list_states(SyncStatus.SYNCED)
            if s.notion_page_id
        ]
        if not synced:
            return local_changes

        try:
            infos = self.remote.get_pages_info_batch(
                [s.notion_page_id for s in synced]
            )
        except Exception as exc:
            logger.warning(
                "Remote check failed, reporting local changes only: %s", exc
            )
            return local_changes

        # Index local changes by path; renames also by their old path.
        merged: list[Change] = list(local_changes)
        position: dict[str, int] = {}
        for i, change in enumerate(merged):
            position[change.path] = i
            if change.old_path:
                position.setdefault(change.old_path, i)

        additional: list[Change] = []
        for state in synced:
            if cancel is not None and cancel.is_set():
                raise DetectionCancelled("remote change detection cancelled")

            info = infos.get(state.notion_page_id)
            if info is None:
                continue
            if info.error is not None:
                logger.debug(
                    "Remote lookup failed for %s: %s",
                    state.obsidian_path,
                    info.error,
                )
                continue

            index = position.get(state.obsidian_path)
            local = merged[index] if index is not None else None

            if info.archived:
                if local is None:
                    additional.append(
                        Change(
                            path=state.obsidian_path,
                            type=ChangeType.DELETED,
                            direction=Direction.PULL,
                            remote_mtime=info.last_edited_time,
                            state=state,
                        )
                    )
                elif local.type != ChangeType.DELETED:
                    merged[index] = _as_conflict(local, info)
                continue

            if not _remote_is_newer(info, state):
                continue

            if local is not None:
                merged[index] = _as_conflict(local, info)
                continue

            additional.append(self._classify_remote_only(state, info))

        changes = merged + additional
        logger.info(
            "Remote detection: %d pages checked, %d changes total",
            len(synced),
            len(changes),
        )
        return changes

    def _classify_remote_only(
        self, state: SyncState, info: RemotePageInfo
    ) -> Change:
        try:
            content = self.vault.read_bytes(state.obsidian_path)
        except OSError:
            return _pull(state, info)

        local_hashes = hash_content(content)
        if has_content_changed(hashes_from_state(state), local_hashes):
            return Change(
                path=state.obsidian_path,
                type=ChangeType.CONFLICT,
                direction=Direction.BOTH,
                local_hash=local_hashes.full_hash,
                remote_mtime=info.last_edited_time,
                state=state,
                local_hashes=local_hashes,
            )
        return _pull(state, info)


def _remote_is_newer(info: RemotePageInfo, state: SyncState) -> bool:
    remote = to_unix(info.last_edited_time)
    if remote is None:
        return False
    stored = to_unix(state.notion_mtime) or 0
    return remote > stored


def _as_conflict(change: Change, info: RemotePageInfo) -> Change:
    return change.model_copy(
        update={
            "type": ChangeType.CONFLICT,
            "direction": Direction.BOTH,
            "remote_mtime": info.last_edited_time,
        }
    )


def _pull(state: SyncState, info: RemotePageInfo) -> Change:
    return Change(
        path=state.obsidian_path,
        type=ChangeType.MODIFIED,
        direction=Direction.PULL,
        remote_mtime=info.last_edited_time,
        state=state,
    )


# ----------------------------------------------------------------------
# Checker adapters
# ----------------------------------------------------------------------


class CallableRemoteChecker:
    """``RemoteChecker`` built from a single-page lookup function.

    The batch call fans out over the task runner with ``workers`` lookups
    in flight.  Async callers should await ``aget_pages_info_batch``; the
    blocking ``get_pages_info_batch`` also works when an event loop is
    already running in the calling thread, by running the batch on a
    helper thread with its own loop.

    Args:
        fetch: Blocking function returning ``RemotePageInfo`` for one id,
            or ``None`` if the page does not exist.
        workers: Maximum concurrent lookups.
    """

    def __init__(
        self,
        fetch: Callable[[str], RemotePageInfo | None],
        workers: int = 4,
    ) -> None:
        self._fetch = fetch
        self._pool = WorkerPool(workers)

    def get_page_info(self, page_id: str) -> RemotePageInfo:
        """Look up one page.

        Raises:
            PageNotFoundError: If *fetch* returned ``None``.
            RemoteCheckError: If *fetch* failed or reported an error.
        """
        try:
            info = self._fetch(page_id)
        except RemoteCheckError:
            raise
        except Exception as exc:
            raise RemoteCheckError(f"lookup {page_id}: {exc}") from exc
        if info is None:
            raise PageNotFoundError(page_id)
        if info.error is not None:
            raise RemoteCheckError(f"lookup {page_id}: {info.error}")
        return info

    def get_pages_info_batch(
        self, page_ids: Sequence[str]
    ) -> dict[str, RemotePageInfo]:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self.aget_pages_info_batch(page_ids))

        # asyncio.run cannot nest inside the caller's running loop.
        with ThreadPoolExecutor(max_workers=1) as executor:
            return executor.submit(
                asyncio.run, self.aget_pages_info_batch(page_ids)
            ).result()

    async def aget_pages_info_batch(
        self, page_ids: Sequence[str]
    ) -> dict[str, RemotePageInfo]:
        """Async form of ``get_pages_info_batch``."""
        tasks = await process(
            self._pool, page_ids, run_in_thread(self.get_page_info)
        )
        results: dict[str, RemotePageInfo] = {}
        for task in tasks:
            if task.error is not None:
                results[task.input] = RemotePageInfo(
                    page_id=task.input, error=str(task.error)
                )
            else:
                results[task.input] = task.result
        return results


class CachingRemoteChecker:
    """Per-page TTL cache in front of another ``RemoteChecker``.

    Only successful lookups are cached.

    Args:
        inner: The checker to delegate misses to.
        ttl: How long an entry stays fresh.
    """

    def __init__(
        self,
        inner: RemoteChecker,
        ttl: timedelta = timedelta(minutes=5),
    ) -> None:
        self._inner = inner
        self._ttl = ttl.total_seconds()
        self._cache: dict[str, tuple[float, RemotePageInfo]] = {}
        self._lock = threading.Lock()

    def get_page_info(self, page_id: str) -> RemotePageInfo:
        cached = self._lookup(page_id)
        if cached is not None:
            return cached
        info = self._inner.get_page_info(page_id)
        self._store(info)
        return info

    def get_pages_info_batch(
        self, page_ids: Sequence[str]
    ) -> dict[str, RemotePageInfo]:
        results: dict[str, RemotePageInfo] = {}
        misses: list[str] = []
        for page_id in page_ids:
            cached = self._lookup(page_id)
            if cached is None:
                misses.append(page_id)
            else:
                results[page_id] = cached

        if misses:
            fetched = self._inner.get_pages_info_batch(misses)
            for page_id, info in fetched.items():
                self._store(info)
                results[page_id] = info

        logger.debug(
            "Remote cache: %d hits, %d misses",
            len(page_ids) - len(misses),
            len(misses),
        )
        return results

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def clear_cache_entry(self, page_id: str) -> None:
        with self._lock:
            self._cache.pop(page_id, None)

    def _lookup(self, page_id: str) -> RemotePageInfo | None:
        with self._lock:
            entry = self._cache.get(page_id)
            if entry is None:
                return None
            stored_at, info = entry
            if time.monotonic() - stored_at > self._ttl:
                del self._cache[page_id]
                return None
            return info

    def _store(self, info: RemotePageInfo) -> None:
        if info.error is not None:
            return
        with self._lock:
            self._cache[info.page_id] = (time.monotonic(), info)

