"""
Tests for the package version.

Covers the __version__ attribute and its agreement with pyproject.toml.
"""

import re
from pathlib import Path

import obsidian_notion_sync

PYPROJECT = Path(__file__).parent.parent / "pyproject.toml"


class TestVersionAttribute:
    """Test __version__ is properly set."""

    def test_version_exists(self):
        """__version__ is a non-empty string."""
        assert isinstance(obsidian_notion_sync.__version__, str)
        assert len(obsidian_notion_sync.__version__) > 0

    def test_version_format(self):
        """__version__ matches semver pattern (X.Y.Z)."""
        version = obsidian_notion_sync.__version__
        assert re.match(r"^\d+\.\d+\.\d+$", version), (
            f"Version '{version}' does not match X.Y.Z pattern"
        )

    def test_matches_pyproject(self):
        """Runtime version agrees with the packaged version."""
        match = re.search(
            r'^version = "([^"]+)"$',
            PYPROJECT.read_text(encoding="utf-8"),
            re.MULTILINE,
        )
        assert match is not None
        assert match.group(1) == obsidian_notion_sync.__version__
