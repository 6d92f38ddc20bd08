"""Tests for the unified config schema and the build_config() factory.

Covers every section model (StateConfig, SyncConfig, LinksConfig,
LoggingConfig), UnifiedConfig defaults and immutability, and the
ReconcileSettings derived from a parsed config.
"""

from datetime import timedelta

import pytest
from pydantic import ValidationError

from obsidian_notion_sync.config_schema import (
    DEFAULT_DB_PATH,
    DeletionPolicy,
    LinksConfig,
    LoggingConfig,
    StateConfig,
    SyncConfig,
    UnifiedConfig,
    build_config,
)
from obsidian_notion_sync.errors import ConfigError

# ---------------------------------------------------------------------------
# UnifiedConfig tests
# ---------------------------------------------------------------------------


class TestUnifiedConfig:
    """Tests for the top-level UnifiedConfig model."""

    def test_empty_produces_valid_defaults(self):
        """Zero-config produces a valid UnifiedConfig with all defaults."""
        config = UnifiedConfig()
        assert config.state.db_path == DEFAULT_DB_PATH
        assert config.sync.vault_path is None
        assert config.sync.workers == 4
        assert config.links.fuzzy is False
        assert config.logging.level == "INFO"

    def test_unknown_sections_ignored(self):
        """Unknown sections are ignored (forward compatibility)."""
        raw: dict[str, object] = {
            "sync": {"workers": 2},
            "future_section": {"key": "value"},
        }
        config = UnifiedConfig(**raw)  # type: ignore[arg-type]
        assert config.sync.workers == 2
        assert not hasattr(config, "future_section")

    def test_frozen_model_prevents_mutation(self):
        config = UnifiedConfig()
        with pytest.raises(ValidationError):
            config.sync = SyncConfig(workers=2)

    def test_reconcile_settings(self):
        """Links and sync sections feed the reconciliation settings."""
        config = UnifiedConfig(
            sync=SyncConfig(exclude=["templates/*", "daily/*"]),
            links=LinksConfig(fuzzy=True, max_distance=2),
        )
        settings = config.reconcile_settings()
        assert settings.fuzzy is True
        assert settings.max_distance == 2
        assert settings.exclude == ("templates/*", "daily/*")
        assert settings.extension == ".md"


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class TestStateConfig:
    """Tests for StateConfig."""

    def test_defaults(self):
        config = StateConfig()
        assert config.db_path == ".obsidian-notion/state.db"
        assert config.history_retention_days == 90
        assert config.history_retention == timedelta(days=90)

    def test_zero_retention_keeps_history(self):
        assert StateConfig(history_retention_days=0).history_retention is None

    def test_negative_retention_rejected(self):
        with pytest.raises(ValidationError):
            StateConfig(history_retention_days=-1)


class TestSyncConfig:
    """Tests for SyncConfig."""

    def test_defaults(self):
        config = SyncConfig()
        assert config.deletion_policy == DeletionPolicy.ARCHIVE
        assert config.exclude == []
        assert config.remote_cache_ttl == 300

    @pytest.mark.parametrize("workers", [1, 32, 64])
    def test_workers_in_range(self, workers):
        assert SyncConfig(workers=workers).workers == workers

    @pytest.mark.parametrize("workers", [0, 65, -4])
    def test_workers_out_of_range(self, workers):
        with pytest.raises(ValidationError):
            SyncConfig(workers=workers)

    def test_deletion_policy_from_string(self):
        assert SyncConfig(deletion_policy="delete").deletion_policy == (
            DeletionPolicy.DELETE
        )

    def test_deletion_policy_rejects_unknown(self):
        with pytest.raises(ValidationError):
            SyncConfig(deletion_policy="shred")  # type: ignore[arg-type]


class TestLinksConfig:
    def test_defaults(self):
        config = LinksConfig()
        assert config.fuzzy is False
        assert config.max_distance == 0

    def test_negative_distance_rejected(self):
        with pytest.raises(ValidationError):
            LinksConfig(max_distance=-1)


class TestLoggingConfig:
    """Tests for LoggingConfig section model."""

    def test_defaults(self):
        config = LoggingConfig()
        assert config.level == "INFO"
        assert config.file is None

    def test_custom_values(self):
        config = LoggingConfig(level="DEBUG", file="/tmp/sync.log")
        assert config.level == "DEBUG"
        assert config.file == "/tmp/sync.log"

    def test_frozen_model(self):
        config = LoggingConfig()
        with pytest.raises(ValidationError):
            config.level = "ERROR"


# ---------------------------------------------------------------------------
# build_config tests
# ---------------------------------------------------------------------------


class TestBuildConfig:
    """Tests for the build_config() factory."""

    def test_none_gives_defaults(self):
        assert build_config(None) == UnifiedConfig()

    def test_empty_dict_gives_defaults(self):
        assert build_config({}) == UnifiedConfig()

    def test_partial_sections(self):
        config = build_config({"links": {"fuzzy": True}})
        assert config.links.fuzzy is True
        assert config.sync.workers == 4

    def test_invalid_value_raises_config_error(self):
        with pytest.raises(ConfigError, match="Invalid configuration"):
            build_config({"sync": {"workers": 0}})
