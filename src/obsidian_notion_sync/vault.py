"""Local vault enumeration.

``VaultScanner`` is the default ``LocalFileSource``: it walks the vault
root for tracked documents and reads their bytes.  Change detection only
depends on the ``LocalFileSource`` protocol, so tests and callers can
substitute an in-memory source.

Discovery rules:

1. Hidden directories (``.obsidian``, ``.trash``, ``.git`` ...) are pruned.
2. Only files with the configured extension (``.md``) are returned.
3. Paths matching any exclude glob are skipped.
4. Paths are vault-relative, POSIX-style, sorted.
"""

from __future__ import annotations

import fnmatch
import logging
import os
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Protocol

from pydantic import BaseModel

from obsidian_notion_sync.file_handler import validate_vault_path
from obsidian_notion_sync.state.models import ReconcileSettings

logger = logging.getLogger(__name__)


class LocalFile(BaseModel):
    """A document found in the vault.

    Attributes:
        path: Vault-relative POSIX path.
        abs_path: Absolute filesystem path.
        mtime: Modification time (UTC).
    """

    path: str
    abs_path: Path
    mtime: datetime

    model_config = {"frozen": True}


class LocalFileSource(Protocol):
    """Anything that can enumerate and read vault documents."""

    def list_files(self) -> list[LocalFile]: ...

    def read_bytes(self, path: str) -> bytes: ...


class VaultScanner:
    """Walk a vault directory for tracked documents.

    Args:
        root: Vault root directory.
        settings: Exclude globs and tracked extension.

    Raises:
        ValueError: If *root* is missing or not a directory.
    """

    def __init__(
        self,
        root: str | Path,
        settings: ReconcileSettings | None = None,
    ) -> None:
        self.root = validate_vault_path(root)
        self._settings = settings or ReconcileSettings()

    def list_files(self) -> list[LocalFile]:
        """Return every tracked document under the vault root, by path."""
        extension = self._settings.extension
        files: list[LocalFile] = []

        for dirpath, dirnames, filenames in os.walk(self.root):
            # Prune hidden directories in place
            dirnames[:] = [d for d in dirnames if not d.startswith(".")]

            for name in filenames:
                if not name.endswith(extension):
                    continue
                abs_path = Path(dirpath) / name
                rel = abs_path.relative_to(self.root).as_posix()
                if self.is_excluded(rel):
                    continue
                try:
                    mtime = abs_path.stat().st_mtime
                except OSError as exc:
                    logger.warning("Cannot stat %s: %s", rel, exc)
                    continue
                files.append(
                    LocalFile(
                        path=rel,
                        abs_path=abs_path,
                        mtime=datetime.fromtimestamp(mtime, tz=timezone.utc),
                    )
                )

        files.sort(key=lambda f: f.path)
        logger.debug("Scanned %d documents under %s", len(files), self.root)
        return files

    def read_bytes(self, path: str) -> bytes:
        """Read a document by vault-relative path.

        Raises:
            OSError: If the file cannot be read.
        """
        return self.abs_path(path).read_bytes()

    def abs_path(self, path: str) -> Path:
        return self.root.joinpath(*PurePosixPath(path).parts)

    def is_excluded(self, rel_path: str) -> bool:
        """Return ``True`` if *rel_path* matches any exclude glob."""
        return any(
            fnmatch.fnmatch(rel_path, pattern)
            for pattern in self._settings.exclude
        )
