"""Single-line text progress bar for batch operations."""

from __future__ import annotations

import sys
import threading
import time
from typing import TextIO

from obsidian_notion_sync.sync.worker import ProgressCallback

BAR_WIDTH = 40
RENDER_INTERVAL = 0.1  # seconds between redraws


class Progress:
    """Track and draw progress of a batch.

    Redraws are throttled to one every 100 ms, except that the final
    item always renders.  Safe to update from several threads.

    Args:
        total: Number of items in the batch.
        stream: Output stream (default ``sys.stderr``).
    """

    def __init__(self, total: int, stream: TextIO | None = None) -> None:
        self.total = total
        self.completed = 0
        self.failed = 0
        self.enabled = True
        self._stream = stream or sys.stderr
        self._start = time.monotonic()
        self._last_render = float("-inf")
        self._lock = threading.Lock()

    def increment(self) -> None:
        with self._lock:
            self.completed += 1
            self._render()

    def increment_failed(self) -> None:
        """Count one completed item as failed."""
        with self._lock:
            self.completed += 1
            self.failed += 1
            self._render()

    def update(self, completed: int, failed: int = 0) -> None:
        with self._lock:
            self.completed = completed
            self.failed = failed
            self._render()

    def callback(self) -> ProgressCallback:
        """Return a ``(completed, total)`` callback for the task runner."""

        def on_progress(completed: int, total: int) -> None:
            with self._lock:
                self.completed = completed
                self._render()

        return on_progress

    def render_line(self) -> str:
        """Build the status line for the current counts."""
        if self.total <= 0:
            percent = 100.0
            filled = BAR_WIDTH
        else:
            ratio = min(self.completed / self.total, 1.0)
            percent = ratio * 100
            filled = int(BAR_WIDTH * ratio)
        bar = "█" * filled + "░" * (BAR_WIDTH - filled)

        line = f"[{bar}] {percent:3.0f}% ({self.completed}/{self.total})"
        if self.failed:
            line += f" [{self.failed} failed]"
        if 0 < self.completed < self.total:
            elapsed = time.monotonic() - self._start
            left = self.total - self.completed
            remaining = elapsed / self.completed * left
            line += f" ETA: {format_duration(remaining)}"
        return line

    def finish(self) -> None:
        """Clear the bar and print a summary line."""
        with self._lock:
            if not self.enabled:
                return
            elapsed = time.monotonic() - self._start
            if elapsed >= 0.001:
                rate = self.completed / elapsed
            else:
                rate = float(self.completed)
            self._stream.write("\r\033[K")
            self._stream.write(
                f"Processed {self.completed} items in "
                f"{format_duration(elapsed)} ({rate:.1f}/sec)\n"
            )
            self._stream.flush()

    def _render(self) -> None:
        if not self.enabled:
            return
        now = time.monotonic()
        throttled = now - self._last_render < RENDER_INTERVAL
        if throttled and self.completed < self.total:
            return
        self._last_render = now
        self._stream.write(f"\r{self.render_line()}\033[K")
        self._stream.flush()


def format_duration(seconds: float) -> str:
    """Format a duration compactly (``850ms``, ``4.2s``, ``3m12s``, ``1h5m``)."""
    if seconds < 1:
        return f"{int(seconds * 1000)}ms"
    if seconds < 60:
        return f"{seconds:.1f}s"
    if seconds < 3600:
        return f"{int(seconds // 60)}m{int(seconds) % 60}s"
    return f"{int(seconds // 3600)}h{int(seconds // 60) % 60}m"
