"""Batch execution and reporting for reconciliation work.

Modules:

- ``worker``   -- ``WorkerPool``, ``process``, ``process_with_progress``:
  bounded-concurrency, order-preserving task runner.
- ``progress`` -- ``Progress``: throttled text progress bar.
- ``reporter`` -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from obsidian_notion_sync.sync import (
        Progress,
        WorkerPool,
        format_batch_summary,
        process_with_progress,
        run_in_thread,
    )

    progress = Progress(total=len(changes))
    tasks = await process_with_progress(
        WorkerPool(workers=4),
        changes,
        run_in_thread(push_change),
        progress.callback(),
    )
    progress.finish()
    print(format_batch_summary(tasks, label="changes"))
"""

from .progress import Progress, format_duration
from .reporter import (
    changes_to_json,
    format_batch_summary,
    format_change_report,
    format_conflict_diff,
)
from .worker import (
    BatchSummary,
    Task,
    WorkerPool,
    process,
    process_with_progress,
    run_in_thread,
)

__all__ = [
    "BatchSummary",
    "Progress",
    "Task",
    "WorkerPool",
    "changes_to_json",
    "format_batch_summary",
    "format_change_report",
    "format_conflict_diff",
    "format_duration",
    "process",
    "process_with_progress",
    "run_in_thread",
]
