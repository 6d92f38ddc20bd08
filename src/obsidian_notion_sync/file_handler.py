"""File handler module: vault path validation and encoding-aware decoding.

Vault notes are expected to be UTF-8, but files produced by other tools
occasionally arrive in a legacy encoding.  Decoding tries strict UTF-8
first and falls back to charset-normalizer detection so that hashing and
front matter parsing always operate on text.
"""

from __future__ import annotations

import logging
from pathlib import Path

from charset_normalizer import from_bytes

logger = logging.getLogger(__name__)

_BOM = "\ufeff"


# =============================================================================
# Path Validation
# =============================================================================


def validate_vault_path(path_str: str | Path) -> Path:
    """Validate and resolve a vault root directory.

    Args:
        path_str: Path to an existing directory.

    Returns:
        Resolved Path object pointing to the vault root.

    Raises:
        ValueError: If the path doesn't exist or is not a directory.
    """
    path = Path(path_str).expanduser()
    resolved = path.resolve()
    if not resolved.exists():
        raise ValueError(f"Vault not found: {path_str}")
    if not resolved.is_dir():
        raise ValueError(f"Vault path is not a directory: {path_str}")
    return resolved


# =============================================================================
# Decoding
# =============================================================================


def decode_bytes(raw: bytes) -> tuple[str, str]:
    """Decode raw file bytes into text.

    Strict UTF-8 is tried first.  On failure, charset-normalizer picks the
    most plausible encoding; if detection fails too, UTF-8 with
    replacement characters is used.  A leading BOM is always dropped.

    Args:
        raw: Raw file content.

    Returns:
        Tuple of (text, encoding).
    """
    if not raw:
        return ("", "utf-8")

    try:
        text = raw.decode("utf-8")
        encoding = "utf-8"
    except UnicodeDecodeError:
        result = from_bytes(raw).best()
        if result is None:
            logger.debug("Encoding detection failed, using utf-8")
            encoding = "utf-8"
            text = raw.decode(encoding, errors="replace")
        else:
            encoding = result.encoding
            # ascii is a strict subset of utf-8
            if encoding == "ascii":
                encoding = "utf-8"
            text = str(result)

    return (text.removeprefix(_BOM), encoding)


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file and decode it with :func:`decode_bytes`.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).
    """
    return decode_bytes(path.read_bytes())


def decode_text(content: str | bytes) -> str:
    """Return *content* as text without a leading BOM.

    Bytes go through :func:`decode_bytes`; text only loses its BOM.
    """
    if isinstance(content, bytes):
        return decode_bytes(content)[0]
    return content.removeprefix(_BOM)
