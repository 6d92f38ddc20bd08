"""Change and batch report formatting.

Provides human-readable and machine-readable output for reconciliation:

- ``format_change_report`` -- detected changes grouped by kind.
- ``changes_to_json`` -- structured dict with counts and per-change data.
- ``format_conflict_diff`` -- unified diff of a recorded conflict.
- ``format_batch_summary`` -- succeeded / failed / skipped after a batch.
"""

from __future__ import annotations

import difflib
from collections import defaultdict
from collections.abc import Iterable, Sequence
from typing import Any

from obsidian_notion_sync.state.changes import (
    count_by_direction,
    count_by_type,
)
from obsidian_notion_sync.state.models import (
    Change,
    ChangeType,
    ConflictInfo,
    Direction,
)
from obsidian_notion_sync.sync.worker import BatchSummary, Task

# Display order and section titles
_SECTIONS: list[tuple[ChangeType, str]] = [
    (ChangeType.CONFLICT, "Conflicts"),
    (ChangeType.CREATED, "Created"),
    (ChangeType.MODIFIED, "Modified"),
    (ChangeType.RENAMED, "Renamed"),
    (ChangeType.DELETED, "Deleted"),
]

_ARROWS = {
    Direction.PUSH: "->",
    Direction.PULL: "<-",
    Direction.BOTH: "<->",
}

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_change_report(changes: Sequence[Change]) -> str:
    """Format detected changes as human-readable text.

    Sections are only included when they contain at least one change.
    Each line shows the direction (``->`` push, ``<-`` pull, ``<->``
    both) and flags front-matter-only edits.

    Args:
        changes: Output of change detection.

    Returns:
        Multi-line formatted string.
    """
    if not changes:
        return "No changes detected."

    lines: list[str] = []
    by_dir = count_by_direction(changes)
    lines.append(
        f"{len(changes)} changes: "
        f"{by_dir.get(Direction.PUSH, 0)} to push, "
        f"{by_dir.get(Direction.PULL, 0)} to pull, "
        f"{by_dir.get(Direction.BOTH, 0)} conflicting"
    )
    lines.append("")

    groups: dict[ChangeType, list[Change]] = defaultdict(list)
    for change in changes:
        groups[change.type].append(change)

    for change_type, title in _SECTIONS:
        group = groups.get(change_type)
        if not group:
            continue
        lines.append(f"{title}:")
        for change in group:
            lines.append(f"  {_describe(change)}")
        lines.append("")

    return "\n".join(lines).rstrip()


def _describe(change: Change) -> str:
    arrow = _ARROWS[change.direction]
    if change.type == ChangeType.RENAMED:
        text = f"{arrow} {change.old_path} => {change.path}"
    else:
        text = f"{arrow} {change.path}"
    if change.frontmatter_only:
        text += " (properties only)"
    return text


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def changes_to_json(changes: Sequence[Change]) -> dict[str, Any]:
    """Convert changes to a structured dict for JSON serialisation.

    Args:
        changes: Output of change detection.

    Returns:
        Dict with totals, per-type and per-direction counts, and one
        entry per change.
    """
    entries = []
    for c in changes:
        entry: dict[str, Any] = {
            "path": c.path,
            "type": c.type.value,
            "direction": c.direction.value,
        }
        if c.old_path:
            entry["old_path"] = c.old_path
        if c.local_hash:
            entry["local_hash"] = c.local_hash
        if c.remote_hash:
            entry["remote_hash"] = c.remote_hash
        if c.local_mtime is not None:
            entry["local_mtime"] = c.local_mtime.isoformat()
        if c.remote_mtime is not None:
            entry["remote_mtime"] = c.remote_mtime.isoformat()
        if c.frontmatter_only:
            entry["frontmatter_only"] = True
        entries.append(entry)

    return {
        "total": len(changes),
        "by_type": {t.value: n for t, n in count_by_type(changes).items()},
        "by_direction": {
            d.value: n for d, n in count_by_direction(changes).items()
        },
        "changes": entries,
    }


# ------------------------------------------------------------------
# Conflict diff
# ------------------------------------------------------------------


def format_conflict_diff(conflict: ConflictInfo) -> str:
    """Format a recorded conflict for review.

    Shows detection metadata and, when both snapshots were captured, a
    unified diff from the local to the remote content.

    Args:
        conflict: The conflict details.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []
    lines.append(f"Conflict: {conflict.path}")
    lines.append(f"Detected: {conflict.detected_at.isoformat()}")
    if conflict.local_mtime is not None:
        lines.append(f"Local modified: {conflict.local_mtime.isoformat()}")
    if conflict.remote_mtime is not None:
        lines.append(f"Remote modified: {conflict.remote_mtime.isoformat()}")
    lines.append("")

    if conflict.local_content is None or conflict.remote_content is None:
        lines.append("(no content snapshots recorded)")
        return "\n".join(lines)

    diff = difflib.unified_diff(
        conflict.local_content.splitlines(keepends=True),
        conflict.remote_content.splitlines(keepends=True),
        fromfile=f"local: {conflict.path}",
        tofile=f"remote: {conflict.path}",
    )
    diff_text = "".join(diff)
    if diff_text:
        lines.append(diff_text.rstrip())
    else:
        lines.append("(no textual differences)")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Batch summary
# ------------------------------------------------------------------


def format_batch_summary(
    tasks: Iterable[Task[Any, Any]], label: str = "items"
) -> str:
    """Summarise a processed batch, listing each failure.

    Args:
        tasks: Runner output.
        label: Noun for the processed items.

    Returns:
        Multi-line formatted string.
    """
    tasks = list(tasks)
    summary = BatchSummary.from_tasks(tasks)
    lines = [
        f"Processed {summary.total} {label}: "
        f"{summary.succeeded} succeeded, {summary.failed} failed, "
        f"{summary.skipped} skipped"
    ]

    failures = [t for t in tasks if t.done and t.error is not None]
    if failures:
        lines.append("")
        lines.append("Failures:")
        for task in failures:
            lines.append(f"  {task.input}: {task.error}")

    return "\n".join(lines)
