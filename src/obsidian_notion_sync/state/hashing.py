"""Normalized content hashing for vault notes.

Front matter and body are hashed independently so that a metadata-only
edit can be told apart from a content edit, and so that insignificant
formatting differences never register as changes.

Normalisation steps (applied to each part, in order):

1. Replace ``\\r\\n`` and ``\\r`` with ``\\n``.
2. Strip trailing spaces and tabs from every line.
3. Collapse runs of three or more newlines to exactly two.
4. Strip leading/trailing whitespace from the whole part.

An empty normalized part hashes to ``""`` rather than to the digest of
the empty string, so "no front matter" and "empty body" compare equal
to an unset stored hash.
"""

from __future__ import annotations

import hashlib
import re
from pathlib import Path

from obsidian_notion_sync.file_handler import decode_text, read_file_with_encoding
from obsidian_notion_sync.state.models import ContentHashes, SyncState

FRONTMATTER_DELIMITER = "---"

_TRAILING_WHITESPACE = re.compile(r"[ \t]+$", re.MULTILINE)
_MULTIPLE_BLANK_LINES = re.compile(r"\n{3,}")


def hash_content(content: bytes | str) -> ContentHashes:
    """Compute normalized content, front matter, and full hashes.

    Args:
        content: Raw note bytes or already decoded text.

    Returns:
        The ``ContentHashes`` breakdown.
    """
    text = decode_text(content)
    # Line endings are unified before splitting so that a CRLF file keeps
    # its front matter block.
    text = _unify_line_endings(text)
    frontmatter, body = split_frontmatter(text)

    normalized_fm = normalize_content(frontmatter)
    normalized_body = normalize_content(body)

    if normalized_fm:
        full = f"{normalized_fm}\n\n{normalized_body}"
    else:
        full = normalized_body

    return ContentHashes(
        content_hash=_compute_hash(normalized_body),
        frontmatter_hash=_compute_hash(normalized_fm),
        full_hash=_compute_hash(full),
    )


def hash_content_raw(content: bytes) -> str:
    """Hash *content* byte-for-byte, without normalization."""
    return hashlib.sha256(content).hexdigest()


def split_frontmatter(text: str) -> tuple[str, str]:
    """Separate a leading ``---`` front matter block from the body.

    The block must start at the very beginning of *text* with ``---``
    immediately followed by a newline, and be closed by ``---`` on its own
    line (or at the very end of the input).  Anything else, including an
    unclosed block, yields no front matter and the whole input as body.

    Returns:
        ``(frontmatter, body)`` with the delimiters removed.
    """
    opening = FRONTMATTER_DELIMITER + "\n"
    if not text.startswith(opening):
        return "", text

    rest = text[len(opening):]
    closing = "\n" + FRONTMATTER_DELIMITER + "\n"
    idx = rest.find(closing)
    if idx == -1:
        # Block closed at end of file without a trailing newline.
        tail = "\n" + FRONTMATTER_DELIMITER
        if rest.endswith(tail) and rest.find(tail) == len(rest) - len(tail):
            return rest[: -len(tail)], ""
        return "", text

    return rest[:idx], rest[idx + len(closing):]


def normalize_content(text: str) -> str:
    """Apply the whitespace normalisation rules to one document part."""
    if not text:
        return ""
    text = _unify_line_endings(text)
    text = _TRAILING_WHITESPACE.sub("", text)
    text = _MULTIPLE_BLANK_LINES.sub("\n\n", text)
    return text.strip()


def _unify_line_endings(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _compute_hash(normalized: str) -> str:
    if not normalized:
        return ""
    return hashlib.sha256(normalized.encode("utf-8")).hexdigest()


# ---------------------------------------------------------------------------
# Comparisons
# ---------------------------------------------------------------------------


def has_content_changed(old: ContentHashes, new: ContentHashes) -> bool:
    """Return ``True`` if either the body or the front matter changed."""
    return (
        old.content_hash != new.content_hash
        or old.frontmatter_hash != new.frontmatter_hash
    )


def has_body_changed(old: ContentHashes, new: ContentHashes) -> bool:
    return old.content_hash != new.content_hash


def has_frontmatter_changed(old: ContentHashes, new: ContentHashes) -> bool:
    return old.frontmatter_hash != new.frontmatter_hash


def hashes_from_state(state: SyncState | None) -> ContentHashes:
    """Build the stored hash breakdown of *state*.

    The full hash is not persisted, so it is always empty here.
    """
    if state is None:
        return ContentHashes()
    return ContentHashes(
        content_hash=state.content_hash,
        frontmatter_hash=state.frontmatter_hash,
    )


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------


def hash_file(path: Path) -> str:
    """Return the normalized full hash of the file at *path*."""
    return hash_file_detailed(path).full_hash


def hash_file_detailed(path: Path) -> ContentHashes:
    """Return the complete hash breakdown of the file at *path*."""
    text, _ = read_file_with_encoding(path)
    return hash_content(text)
