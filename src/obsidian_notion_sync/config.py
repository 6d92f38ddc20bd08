"""Resolved runtime configuration.

Combines explicit overrides, environment variables, ``.env`` files, and
the YAML config into one ``Config``.

Precedence (highest to lowest):
    overrides > Environment variables > .env file > YAML config > defaults

Environment variables:
    OBSIDIAN_NOTION_VAULT: Vault root directory (required unless set in YAML)
    OBSIDIAN_NOTION_DB: State database path (default: .obsidian-notion/state.db)
    OBSIDIAN_NOTION_WORKERS: Concurrent remote operations (1-64, default: 4)
    OBSIDIAN_NOTION_FUZZY: Enable fuzzy link resolution (default: false)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from obsidian_notion_sync.config_loader import load_hierarchical_config
from obsidian_notion_sync.config_schema import (
    DeletionPolicy,
    UnifiedConfig,
    build_config,
)
from obsidian_notion_sync.errors import ConfigError
from obsidian_notion_sync.file_handler import validate_vault_path
from obsidian_notion_sync.state.models import ReconcileSettings

logger = logging.getLogger(__name__)

MAX_WORKERS = 64


@dataclass
class Config:
    vault_path: Path
    db_path: Path
    workers: int = 4
    fuzzy: bool = False
    max_distance: int = 0
    deletion_policy: DeletionPolicy = DeletionPolicy.ARCHIVE
    exclude: list[str] = field(default_factory=list)
    remote_cache_ttl: int = 300
    history_retention_days: int = 90
    log_level: str = "INFO"
    log_file: str | None = None

    def reconcile_settings(self) -> ReconcileSettings:
        return ReconcileSettings(
            fuzzy=self.fuzzy,
            max_distance=self.max_distance,
            exclude=tuple(self.exclude),
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from an env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.strip().lower() in ("true", "1", "yes", "on")


def _parse_workers(raw: Any, source: str) -> int:
    try:
        workers = int(raw)
    except (TypeError, ValueError):
        raise ConfigError(
            f"Invalid {source} '{raw}': must be a number between 1 and {MAX_WORKERS}"
        ) from None
    if not (1 <= workers <= MAX_WORKERS):
        raise ConfigError(
            f"Invalid {source} '{raw}': must be a number between 1 and {MAX_WORKERS}"
        )
    return workers


def load_config(
    overrides: dict[str, Any] | None = None,
    unified: UnifiedConfig | None = None,
) -> Config:
    """Resolve the runtime configuration.

    Args:
        overrides: Explicit values (e.g. from command-line flags); keys
            ``vault``, ``db``, ``workers``, ``fuzzy``.
        unified: Parsed YAML config.  Loaded from the discovered config
            files when omitted.

    Returns:
        Validated ``Config``.

    Raises:
        ConfigError: If the vault is missing or a value is invalid.
    """
    load_dotenv()
    ov = overrides or {}
    if unified is None:
        unified = build_config(load_hierarchical_config())

    # --- Vault: override > env > YAML > error ---

    vault_raw = (
        ov.get("vault")
        or os.getenv("OBSIDIAN_NOTION_VAULT")
        or unified.sync.vault_path
    )
    if not vault_raw:
        raise ConfigError(
            "Vault path not found. Set OBSIDIAN_NOTION_VAULT, pass a vault "
            "override, or add 'sync.vault_path' to config.yml."
        )
    try:
        vault_path = validate_vault_path(str(vault_raw).strip())
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc

    # --- Database: relative paths live under the vault ---

    db_raw = (
        ov.get("db")
        or os.getenv("OBSIDIAN_NOTION_DB")
        or unified.state.db_path
    )
    db_path = Path(str(db_raw)).expanduser()
    if not db_path.is_absolute():
        db_path = vault_path / db_path

    # --- Workers: override > env > YAML ---

    if ov.get("workers") is not None:
        workers = _parse_workers(ov["workers"], "workers override")
    elif os.getenv("OBSIDIAN_NOTION_WORKERS") is not None:
        workers = _parse_workers(
            os.getenv("OBSIDIAN_NOTION_WORKERS"), "OBSIDIAN_NOTION_WORKERS"
        )
    else:
        workers = unified.sync.workers

    # --- Fuzzy: override > env > YAML ---

    if ov.get("fuzzy") is not None:
        fuzzy = bool(ov["fuzzy"])
    else:
        env_fuzzy = _get_bool_env("OBSIDIAN_NOTION_FUZZY")
        fuzzy = env_fuzzy if env_fuzzy is not None else unified.links.fuzzy

    config = Config(
        vault_path=vault_path,
        db_path=db_path,
        workers=workers,
        fuzzy=fuzzy,
        max_distance=unified.links.max_distance,
        deletion_policy=unified.sync.deletion_policy,
        exclude=list(unified.sync.exclude),
        remote_cache_ttl=unified.sync.remote_cache_ttl,
        history_retention_days=unified.state.history_retention_days,
        log_level=unified.logging.level,
        log_file=unified.logging.file,
    )
    logger.debug("Resolved config: vault=%s db=%s", vault_path, db_path)
    return config
