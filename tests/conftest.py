"""Shared pytest fixtures for obsidian-notion-sync tests."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime, timezone
from pathlib import Path

import pytest
from dotenv import load_dotenv

from obsidian_notion_sync.errors import RemoteCheckError
from obsidian_notion_sync.state.db import StateStore
from obsidian_notion_sync.state.hashing import hash_content
from obsidian_notion_sync.state.models import (
    RemotePageInfo,
    SyncState,
    SyncStatus,
)
from obsidian_notion_sync.vault import VaultScanner

load_dotenv()

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class FakeRemoteChecker:
    """In-memory ``RemoteChecker`` keyed by page id.

    Unknown ids come back with ``error`` set.  ``fail_batch`` makes the
    batch call raise, as an unreachable API would.
    """

    def __init__(self) -> None:
        self.pages: dict[str, RemotePageInfo] = {}
        self.fail_batch = False
        self.batch_calls: list[list[str]] = []

    def set_page(
        self,
        page_id: str,
        last_edited: datetime | None = None,
        archived: bool = False,
    ) -> None:
        self.pages[page_id] = RemotePageInfo(
            page_id=page_id, last_edited_time=last_edited, archived=archived
        )

    def set_error(self, page_id: str, message: str = "permission denied") -> None:
        self.pages[page_id] = RemotePageInfo(page_id=page_id, error=message)

    def get_page_info(self, page_id: str) -> RemotePageInfo:
        if page_id not in self.pages:
            raise RemoteCheckError(f"unknown page {page_id}")
        return self.pages[page_id]

    def get_pages_info_batch(
        self, page_ids: Sequence[str]
    ) -> dict[str, RemotePageInfo]:
        self.batch_calls.append(list(page_ids))
        if self.fail_batch:
            raise RemoteCheckError("remote API unreachable")
        return {
            pid: self.pages.get(
                pid, RemotePageInfo(page_id=pid, error="not found")
            )
            for pid in page_ids
        }


@pytest.fixture
def store(tmp_path: Path):
    """A fresh on-disk state store, closed after the test."""
    s = StateStore(tmp_path / "state" / "state.db")
    yield s
    s.close()


@pytest.fixture
def vault_root(tmp_path: Path) -> Path:
    root = tmp_path / "vault"
    root.mkdir()
    return root


@pytest.fixture
def write_note(vault_root: Path):
    """Factory fixture writing a note under the vault root."""

    def _write(rel_path: str, content: str | bytes) -> Path:
        path = vault_root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            content = content.encode("utf-8")
        path.write_bytes(content)
        return path

    return _write


@pytest.fixture
def scanner(vault_root: Path) -> VaultScanner:
    return VaultScanner(vault_root)


@pytest.fixture
def track(store: StateStore):
    """Factory fixture persisting a sync state that matches *content*."""

    def _track(
        path: str,
        content: str = "",
        page_id: str = "",
        status: SyncStatus = SyncStatus.SYNCED,
        notion_mtime: datetime | None = T0,
    ) -> SyncState:
        hashes = hash_content(content)
        state = SyncState(
            obsidian_path=path,
            notion_page_id=page_id,
            content_hash=hashes.content_hash,
            frontmatter_hash=hashes.frontmatter_hash,
            notion_mtime=notion_mtime,
            last_sync=T0,
            status=status,
        )
        store.set_state(state)
        return store.get_state(path)

    return _track


@pytest.fixture
def fake_remote() -> FakeRemoteChecker:
    return FakeRemoteChecker()
