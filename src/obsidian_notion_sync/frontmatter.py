"""Typed access to note front matter.

``parse_frontmatter`` extracts the leading ``---`` block of a note and
loads it with PyYAML.  Parsing is lenient: a missing, unclosed, or
malformed block yields empty ``Properties`` rather than an error.

``Properties`` wraps the resulting mapping with getters that coerce
values to the requested type and fall back to a default when the key is
absent or the value cannot be converted.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from datetime import date, datetime, time, timezone
from typing import Any

import yaml

from obsidian_notion_sync.file_handler import decode_text
from obsidian_notion_sync.state.hashing import split_frontmatter

logger = logging.getLogger(__name__)

_TRUE_STRINGS = frozenset({"true", "yes", "on", "1"})
_FALSE_STRINGS = frozenset({"false", "no", "off", "0"})


class Properties(Mapping[str, Any]):
    """Read-only front matter mapping with typed getters."""

    def __init__(self, data: Mapping[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(data or {})

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Properties({self._data!r})"

    def get_str(self, key: str, default: str = "") -> str:
        value = self._data.get(key)
        if value is None or isinstance(value, (list, dict)):
            return default
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

    def get_int(self, key: str, default: int = 0) -> int:
        value = self._data.get(key)
        if isinstance(value, bool):
            return default
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                return default
        return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        value = self._data.get(key)
        if isinstance(value, bool):
            return default
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value.strip())
            except ValueError:
                return default
        return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Return a boolean; accepts ``yes``/``no``/``on``/``off``/``1``/``0``."""
        value = self._data.get(key)
        if isinstance(value, bool):
            return value
        if isinstance(value, int):
            return value != 0
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TRUE_STRINGS:
                return True
            if lowered in _FALSE_STRINGS:
                return False
        return default

    def get_time(
        self, key: str, default: datetime | None = None
    ) -> datetime | None:
        """Return a timezone-aware datetime.

        YAML dates and datetimes are used as-is; strings are parsed as
        ISO 8601.  Naive values are taken to be UTC.
        """
        value = self._data.get(key)
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, date):
            parsed = datetime.combine(value, time())
        elif isinstance(value, str):
            try:
                parsed = datetime.fromisoformat(value.strip())
            except ValueError:
                return default
        else:
            return default
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed

    def get_list(self, key: str) -> list[str]:
        """Return a list of strings.

        A scalar string is split on commas (``tags: a, b``); ``None``
        entries are dropped.
        """
        value = self._data.get(key)
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        if isinstance(value, (list, tuple)):
            return [str(item) for item in value if item is not None]
        return [str(value)]


def parse_frontmatter(content: str | bytes) -> Properties:
    """Parse the front matter block of a note.

    Args:
        content: Raw note bytes or decoded text.

    Returns:
        The parsed properties; empty if the note has no usable block.
    """
    text = decode_text(content)
    block, _ = split_frontmatter(text.replace("\r\n", "\n"))
    if not block.strip():
        return Properties()

    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        logger.debug("Ignoring malformed front matter: %s", exc)
        return Properties()

    if not isinstance(data, dict):
        return Properties()
    return Properties({str(k): v for k, v in data.items()})
