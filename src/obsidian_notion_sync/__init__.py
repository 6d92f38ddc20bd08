"""Reconciliation engine for syncing an Obsidian vault with Notion."""

__version__ = "0.3.0"
