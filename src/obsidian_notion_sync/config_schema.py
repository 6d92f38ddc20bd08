"""Configuration schema for obsidian_notion_sync.

Pydantic models for the YAML config file, one section per concern:

- ``state``   -- where the sync database lives and how long history is kept.
- ``sync``    -- vault location, worker count, deletion policy, excludes.
- ``links``   -- fuzzy link resolution.
- ``logging`` -- level and optional log file.

Usage:
    from obsidian_notion_sync.config_loader import load_hierarchical_config
    from obsidian_notion_sync.config_schema import build_config

    unified = build_config(load_hierarchical_config())
    settings = unified.reconcile_settings()
"""

from __future__ import annotations

import logging
from datetime import timedelta
from enum import Enum

from pydantic import BaseModel, Field, ValidationError

from obsidian_notion_sync.errors import ConfigError
from obsidian_notion_sync.state.models import ReconcileSettings

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = ".obsidian-notion/state.db"


class DeletionPolicy(str, Enum):
    """What callers do with a document deleted on the other side."""

    ARCHIVE = "archive"
    DELETE = "delete"
    IGNORE = "ignore"


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class StateConfig(BaseModel):
    """State database settings."""

    db_path: str = Field(
        default=DEFAULT_DB_PATH,
        description="SQLite database path, relative to the vault root",
    )
    history_retention_days: int = Field(
        default=90,
        ge=0,
        description="Prune history older than this many days (0 = keep)",
    )

    model_config = {"frozen": True}

    @property
    def history_retention(self) -> timedelta | None:
        if self.history_retention_days == 0:
            return None
        return timedelta(days=self.history_retention_days)


class SyncConfig(BaseModel):
    """Vault scanning and batch processing settings."""

    vault_path: str | None = Field(
        default=None, description="Obsidian vault root"
    )
    workers: int = Field(
        default=4,
        ge=1,
        le=64,
        description="Concurrent remote operations per batch (1-64)",
    )
    deletion_policy: DeletionPolicy = Field(
        default=DeletionPolicy.ARCHIVE,
        description="How deletions are propagated",
    )
    exclude: list[str] = Field(
        default_factory=list,
        description="Vault-relative glob patterns to skip",
    )
    remote_cache_ttl: int = Field(
        default=300,
        ge=0,
        description="Seconds to cache remote page metadata (0 = no cache)",
    )

    model_config = {"frozen": True}


class LinksConfig(BaseModel):
    """Wiki-link resolution settings."""

    fuzzy: bool = Field(
        default=False, description="Allow fuzzy resolution of links"
    )
    max_distance: int = Field(
        default=0,
        ge=0,
        description="Fixed edit distance threshold (0 = scale by length)",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level configuration.

    Every section has defaults, so ``UnifiedConfig()`` is always valid.
    """

    state: StateConfig = Field(default_factory=StateConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    links: LinksConfig = Field(default_factory=LinksConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}

    def reconcile_settings(self) -> ReconcileSettings:
        """Settings handed to the detectors and the link registry."""
        return ReconcileSettings(
            fuzzy=self.links.fuzzy,
            max_distance=self.links.max_distance,
            exclude=tuple(self.sync.exclude),
        )


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict | None) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from a merged raw config dict.

    Missing sections get defaults.

    Raises:
        ConfigError: If a value fails validation.
    """
    if not raw_data:
        return UnifiedConfig()

    try:
        return UnifiedConfig(**raw_data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc
