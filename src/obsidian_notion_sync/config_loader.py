"""
YAML configuration discovery and loading for obsidian_notion_sync.

Finds config files by convention, supports ``!include`` and env var
interpolation, and merges files with "project wins" semantics.

Usage:
    from obsidian_notion_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

from obsidian_notion_sync.errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "OBSIDIAN_NOTION_CONFIG"
PROJECT_CONFIG_DIR = ".obsidian-notion"
CONFIG_FILENAME = "config.yml"

# ---------------------------------------------------------------------------
# 1. Env var interpolation
# ---------------------------------------------------------------------------

# Matches ${VAR} and ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Replace ``${VAR}`` and ``${VAR:-default}`` with environment values.

    ``${VAR}`` becomes ``""`` when unset.  The default applies when VAR
    is unset or empty.
    """

    def _replace(match: re.Match) -> str:
        env_val = os.environ.get(match.group(1))
        if env_val:
            return env_val
        return match.group(2) or ""

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(obj: Any) -> Any:
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _interpolate_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# 2. YAML !include support
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader with ``!include``; the global SafeLoader is untouched."""


def _include_constructor(loader: ConfigLoader, node: yaml.ScalarNode) -> Any:
    """Load ``!include other.yml`` relative to the including file."""
    target = Path(loader.construct_scalar(node)).expanduser()
    if not target.is_absolute():
        target = Path(loader.name).resolve().parent / target
    target = target.resolve()

    stack: list[Path] = getattr(loader, "_include_stack", [])
    if target in stack:
        chain = " -> ".join(str(p) for p in [*stack, target])
        raise ConfigError(f"Circular include detected: {chain}")
    if not target.exists():
        raise ConfigError(
            f"Include file not found: {target} "
            f"(referenced from {Path(loader.name).resolve()})"
        )
    return load_yaml_file(target, _include_stack=[*stack, target])


ConfigLoader.add_constructor("!include", _include_constructor)


def load_yaml_file(
    path: Path, *, _include_stack: list[Path] | None = None
) -> Any:
    """Parse one YAML file with ``!include`` support.

    Raises:
        ConfigError: On YAML syntax errors or bad includes.
    """
    path = path.resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader._include_stack = _include_stack or [path]  # type: ignore[attr-defined]
        try:
            return loader.get_single_data()
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# 3. Convention-based file discovery
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return existing config files, highest precedence first.

    Search order:
        1. ``OBSIDIAN_NOTION_CONFIG`` env var (explicit path)
        2. ``.obsidian-notion/config.yml`` in CWD (project)
        3. ``~/.config/obsidian-notion/config.yml`` (global)
    """
    candidates: list[Path] = []

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    candidates.append(Path.cwd() / PROJECT_CONFIG_DIR / CONFIG_FILENAME)
    candidates.append(
        Path.home() / ".config" / "obsidian-notion" / CONFIG_FILENAME
    )

    return [p for p in candidates if p.exists()]


_STARTER_CONFIG = """\
# obsidian-notion-sync configuration
#
# Values can reference environment variables: ${VAR} or ${VAR:-default}
#
# state:
#   db_path: .obsidian-notion/state.db
#   history_retention_days: 90
#
# sync:
#   vault_path: ~/Notes
#   workers: 4
#   deletion_policy: archive   # archive | delete | ignore
#   exclude:
#     - "templates/*"
#   remote_cache_ttl: 300
#
# links:
#   fuzzy: false
#   max_distance: 0
#
# logging:
#   level: INFO
#   file: null
"""


def resolve_config_path() -> Path:
    """Return the active config file, or the default project path."""
    existing = discover_config_files()
    if existing:
        return existing[0]
    return Path.cwd() / PROJECT_CONFIG_DIR / CONFIG_FILENAME


def ensure_config(target: Path | None = None) -> Path:
    """Return the active config file, writing a starter file if none exists.

    Args:
        target: Where to create the file; defaults to
            ``resolve_config_path()``.
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    config_path = target or resolve_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)
    return config_path


# ---------------------------------------------------------------------------
# 4. Hierarchical merge
# ---------------------------------------------------------------------------


def load_hierarchical_config() -> dict[str, Any]:
    """Load and merge all discovered config files.

    Files are applied from lowest precedence to highest; each file's
    top-level sections replace (not deep-merge) earlier ones.  Env var
    interpolation runs after the merge.

    Returns an empty dict when no config files exist.
    """
    paths = discover_config_files()
    if not paths:
        logger.debug("No config files found, using defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        data = load_yaml_file(path)
        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has non-dict root (%s), skipping",
                path,
                type(data).__name__,
            )

    return _interpolate_recursive(merged)
