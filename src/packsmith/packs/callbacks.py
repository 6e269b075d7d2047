"""Progress callback protocol for pack install tasks.

The pipeline reports stage changes, status text and byte progress through
this interface. The Rich display and the CLI's plain-text fallback implement
it.
"""

from typing import Protocol, runtime_checkable

from .models import Stage


@runtime_checkable
class ProgressCallback(Protocol):
    """Protocol for receiving progress updates from an install task.

    Calls are made from the thread driving the task, one at a time.
    """

    def on_progress(self, task_name: str, stage: Stage, progress: float, total: float, detail: str) -> None:
        """Called when the task enters a stage or makes progress within it.

        Args:
            task_name: Name of the install task (e.g. "SkyFactory4 4.2.4").
            stage: Current stage. Terminal stages are reported exactly once,
                with progress and total of 0 and the outcome reason as detail.
            progress: Current progress value (bytes transferred).
            total: Total expected value. May be 0 if unknown.
            detail: Human-readable status (e.g. "Downloading mods...").
        """
        ...


class NullCallback:
    """No-op callback for tests and non-interactive use."""

    def on_progress(self, task_name: str, stage: Stage, progress: float, total: float, detail: str) -> None:
        """Discard progress update."""
        pass
