"""Tests for runtime config resolution.

Covers:
- Vault required, resolved from override, env, or YAML
- Database path relative to the vault
- Worker count precedence and validation
- Fuzzy flag precedence
- YAML sections carried into Config and ReconcileSettings
"""

from pathlib import Path

import pytest

from obsidian_notion_sync.config import Config, load_config
from obsidian_notion_sync.config_schema import (
    DeletionPolicy,
    UnifiedConfig,
    build_config,
)
from obsidian_notion_sync.errors import ConfigError

ENV_VARS = (
    "OBSIDIAN_NOTION_VAULT",
    "OBSIDIAN_NOTION_DB",
    "OBSIDIAN_NOTION_WORKERS",
    "OBSIDIAN_NOTION_FUZZY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path: Path):
    """Isolate from the developer's environment and any .env file."""
    for var in ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.delenv("OBSIDIAN_NOTION_CONFIG", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    path = tmp_path / "vault"
    path.mkdir()
    return path


class TestVault:
    """Vault path resolution."""

    def test_missing_vault_raises(self):
        with pytest.raises(ConfigError, match="Vault path not found"):
            load_config(unified=UnifiedConfig())

    def test_from_override(self, vault: Path):
        config = load_config({"vault": str(vault)}, unified=UnifiedConfig())
        assert config.vault_path == vault.resolve()

    def test_from_env(self, vault: Path, monkeypatch):
        monkeypatch.setenv("OBSIDIAN_NOTION_VAULT", str(vault))
        assert load_config(unified=UnifiedConfig()).vault_path == vault.resolve()

    def test_from_yaml(self, vault: Path):
        unified = build_config({"sync": {"vault_path": str(vault)}})
        assert load_config(unified=unified).vault_path == vault.resolve()

    def test_override_beats_env(self, vault: Path, tmp_path: Path, monkeypatch):
        other = tmp_path / "other"
        other.mkdir()
        monkeypatch.setenv("OBSIDIAN_NOTION_VAULT", str(other))
        config = load_config({"vault": str(vault)}, unified=UnifiedConfig())
        assert config.vault_path == vault.resolve()

    def test_nonexistent_vault(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="Vault not found"):
            load_config(
                {"vault": str(tmp_path / "nope")}, unified=UnifiedConfig()
            )

    def test_config_error_is_value_error(self):
        """Callers catching ValueError still see config problems."""
        with pytest.raises(ValueError):
            load_config(unified=UnifiedConfig())


class TestDatabasePath:
    def test_default_under_vault(self, vault: Path):
        config = load_config({"vault": str(vault)}, unified=UnifiedConfig())
        assert config.db_path == vault.resolve() / ".obsidian-notion" / "state.db"

    def test_absolute_kept(self, vault: Path, tmp_path: Path):
        db = tmp_path / "elsewhere" / "s.db"
        config = load_config(
            {"vault": str(vault), "db": str(db)}, unified=UnifiedConfig()
        )
        assert config.db_path == db

    def test_env_relative(self, vault: Path, monkeypatch):
        monkeypatch.setenv("OBSIDIAN_NOTION_DB", "custom/state.db")
        config = load_config({"vault": str(vault)}, unified=UnifiedConfig())
        assert config.db_path == vault.resolve() / "custom" / "state.db"


class TestWorkers:
    """Worker count precedence and validation."""

    def test_default(self, vault: Path):
        assert load_config({"vault": str(vault)}, unified=UnifiedConfig()).workers == 4

    def test_yaml(self, vault: Path):
        unified = build_config({"sync": {"workers": 8}})
        assert load_config({"vault": str(vault)}, unified=unified).workers == 8

    def test_env_beats_yaml(self, vault: Path, monkeypatch):
        monkeypatch.setenv("OBSIDIAN_NOTION_WORKERS", "12")
        unified = build_config({"sync": {"workers": 8}})
        assert load_config({"vault": str(vault)}, unified=unified).workers == 12

    def test_override_beats_env(self, vault: Path, monkeypatch):
        monkeypatch.setenv("OBSIDIAN_NOTION_WORKERS", "12")
        config = load_config(
            {"vault": str(vault), "workers": 2}, unified=UnifiedConfig()
        )
        assert config.workers == 2

    @pytest.mark.parametrize("raw", ["0", "65", "many", "-1"])
    def test_invalid_env(self, vault: Path, monkeypatch, raw):
        monkeypatch.setenv("OBSIDIAN_NOTION_WORKERS", raw)
        with pytest.raises(ConfigError, match="OBSIDIAN_NOTION_WORKERS"):
            load_config({"vault": str(vault)}, unified=UnifiedConfig())

    def test_invalid_override(self, vault: Path):
        with pytest.raises(ConfigError):
            load_config(
                {"vault": str(vault), "workers": 100}, unified=UnifiedConfig()
            )


class TestFuzzy:
    def test_default_off(self, vault: Path):
        assert not load_config({"vault": str(vault)}, unified=UnifiedConfig()).fuzzy

    @pytest.mark.parametrize("raw", ["true", "1", "yes", "ON"])
    def test_env_truthy(self, vault: Path, monkeypatch, raw):
        monkeypatch.setenv("OBSIDIAN_NOTION_FUZZY", raw)
        assert load_config({"vault": str(vault)}, unified=UnifiedConfig()).fuzzy

    def test_env_false_beats_yaml(self, vault: Path, monkeypatch):
        monkeypatch.setenv("OBSIDIAN_NOTION_FUZZY", "false")
        unified = build_config({"links": {"fuzzy": True}})
        assert not load_config({"vault": str(vault)}, unified=unified).fuzzy

    def test_override(self, vault: Path):
        config = load_config(
            {"vault": str(vault), "fuzzy": True}, unified=UnifiedConfig()
        )
        assert config.fuzzy


class TestYamlSections:
    def test_carried_into_config(self, vault: Path):
        unified = build_config(
            {
                "state": {"history_retention_days": 30},
                "sync": {
                    "deletion_policy": "ignore",
                    "exclude": ["templates/*"],
                    "remote_cache_ttl": 60,
                },
                "links": {"max_distance": 2},
                "logging": {"level": "DEBUG", "file": "/tmp/x.log"},
            }
        )
        config = load_config({"vault": str(vault)}, unified=unified)
        assert config.history_retention_days == 30
        assert config.deletion_policy == DeletionPolicy.IGNORE
        assert config.exclude == ["templates/*"]
        assert config.remote_cache_ttl == 60
        assert config.max_distance == 2
        assert config.log_level == "DEBUG"
        assert config.log_file == "/tmp/x.log"

    def test_reconcile_settings(self, tmp_path: Path):
        config = Config(
            vault_path=tmp_path,
            db_path=tmp_path / "s.db",
            fuzzy=True,
            max_distance=3,
            exclude=["a/*"],
        )
        settings = config.reconcile_settings()
        assert settings.fuzzy
        assert settings.max_distance == 3
        assert settings.exclude == ("a/*",)

    def test_discovers_yaml_when_not_given(self, vault: Path, tmp_path: Path):
        """Without an explicit config the project file in CWD is used."""
        config_dir = tmp_path / ".obsidian-notion"
        config_dir.mkdir()
        (config_dir / "config.yml").write_text(
            f"sync:\n  vault_path: {vault}\n  workers: 7\n", encoding="utf-8"
        )
        config = load_config()
        assert config.vault_path == vault.resolve()
        assert config.workers == 7
