"""Rich-based live progress display for a pack install task.

Renders one line per install stage, updated as the task moves along:

    Fetch manifest      Done         ✓ 0.4s
    Download configs    Done         ✓ 1.2s
    Extract configs     Done         ✓ 0.3s
    Download mods       Downloading  [=========>          ]  47%  38.2 MB
    Install modpack     Waiting

Thread-safe: ``on_progress()`` may be called from the driver thread while the
Live display refreshes from its own thread.
"""

import threading
import time
from typing import Any

from rich.console import Console, Group
from rich.live import Live
from rich.table import Table
from rich.text import Text

from .models import WORK_STAGES, Stage

_STAGE_LABELS = {
    Stage.FETCH_MANIFEST: "Fetch manifest",
    Stage.FETCH_CONFIG_ARCHIVE: "Download configs",
    Stage.EXTRACT_CONFIG_ARCHIVE: "Extract configs",
    Stage.FETCH_ASSETS: "Download mods",
    Stage.ASSEMBLE: "Install modpack",
}

# Braille spinner frames for stages without byte progress
_SPINNER_FRAMES = ("⠋", "⠙", "⠹", "⠸", "⠼", "⠴", "⠦", "⠧", "⠇", "⠏")


class _StageState:
    """Display state of one stage row."""

    __slots__ = ("stage", "status", "progress", "total", "detail", "start_time", "elapsed")

    def __init__(self, stage: Stage) -> None:
        self.stage = stage
        self.status = "waiting"  # waiting | active | done | failed | aborted
        self.progress: float = 0.0
        self.total: float = 0.0
        self.detail: str = ""
        self.start_time: float | None = None
        self.elapsed: float = 0.0


def _format_size(size_bytes: float) -> str:
    if size_bytes >= 1024 * 1024 * 1024:
        return f"{size_bytes / (1024 * 1024 * 1024):.1f} GB"
    if size_bytes >= 1024 * 1024:
        return f"{size_bytes / (1024 * 1024):.1f} MB"
    if size_bytes >= 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{int(size_bytes)} B"


class InstallProgressDisplay:
    """Live stage table for one install task.

    Implements ProgressCallback.

    Args:
        console: Rich Console instance for rendering. If None, creates a new one.
        title: Header line (e.g. "Installing SkyFactory4 4.2.4").
        refresh_per_second: Display refresh rate.
    """

    def __init__(self, console: Console | None, title: str, refresh_per_second: int = 10) -> None:
        self._console = console if console is not None else Console()
        self._title = title
        self._refresh_per_second = refresh_per_second
        self._states = {stage: _StageState(stage) for stage in WORK_STAGES}
        self._current: Stage | None = None
        self._final_message = ""
        self._lock = threading.Lock()
        self._live: Live | None = None

    def on_progress(self, task_name: str, stage: Stage, progress: float, total: float, detail: str) -> None:
        """Record a progress update. Thread-safe."""
        now = time.monotonic()
        with self._lock:
            if stage.is_terminal:
                self._close_current(now, "done" if stage is Stage.SUCCEEDED else stage.value)
                self._final_message = detail
                return

            state = self._states.get(stage)
            if state is None:
                return
            if self._current is not stage:
                self._close_current(now, "done")
                self._current = stage
                state.status = "active"
                state.start_time = now
            state.progress = progress
            state.total = total
            state.detail = detail
            if state.start_time is not None:
                state.elapsed = now - state.start_time

    def _close_current(self, now: float, status: str) -> None:
        if self._current is None:
            return
        state = self._states[self._current]
        state.status = status
        if state.start_time is not None:
            state.elapsed = now - state.start_time
        self._current = None

    def start(self) -> None:
        self._live = Live(
            self._render_display(),
            console=self._console,
            refresh_per_second=self._refresh_per_second,
            transient=False,
            get_renderable=self._render_display,
        )
        self._live.start()

    def stop(self) -> None:
        if self._live is not None:
            self._live.update(self._render_display())
            self._live.stop()
            self._live = None

    def _render_display(self) -> Group:
        header = Text(f"\n{self._title}\n", style="bold")
        table = self._render_table()
        with self._lock:
            final = self._final_message
        footer = Text(f"\n  {final}" if final else "", style="dim")
        return Group(header, table, footer)

    def _render_table(self) -> Table:
        table = Table(show_header=False, show_edge=False, show_lines=False, box=None, padding=(0, 1), expand=False)
        table.add_column("Stage", style="bold", no_wrap=True, min_width=18)
        table.add_column("Phase", no_wrap=True, min_width=12)
        table.add_column("Status", no_wrap=True, min_width=40)

        with self._lock:
            for stage in WORK_STAGES:
                state = self._states[stage]
                table.add_row(self._format_name(state), self._format_phase(state), self._format_status(state))
        return table

    def _format_name(self, state: _StageState) -> Text:
        styles = {"done": "green", "failed": "red", "aborted": "yellow", "waiting": "dim"}
        return Text(_STAGE_LABELS[state.stage], style=styles.get(state.status, "bold cyan"))

    def _format_phase(self, state: _StageState) -> Text:
        labels = {
            "waiting": ("Waiting", "dim"),
            "active": ("Working", "blue"),
            "done": ("Done", "green"),
            "failed": ("Failed", "red bold"),
            "aborted": ("Aborted", "yellow"),
        }
        label, style = labels.get(state.status, ("Unknown", "dim"))
        return Text(label, style=style)

    def _format_status(self, state: _StageState) -> Text:
        if state.status == "waiting":
            return Text("")
        if state.status == "done":
            return Text(f"✓ {state.elapsed:.1f}s", style="green")
        if state.status == "failed":
            return Text("✗", style="red")
        if state.status == "aborted":
            return Text("✗ aborted", style="yellow")
        if state.total > 0:
            return self._format_progress_bar(state)
        spinner = _SPINNER_FRAMES[int(time.monotonic() * 8) % len(_SPINNER_FRAMES)]
        return Text(f"{spinner} {state.detail}", style="magenta")

    def _format_progress_bar(self, state: _StageState) -> Text:
        """Text progress bar like [=========>     ] 62%  12.0 MB."""
        bar_width = 20
        pct = min(state.progress / state.total, 1.0) if state.total > 0 else 0.0
        filled = int(bar_width * pct)
        remaining = bar_width - filled

        if 0 < filled < bar_width:
            bar = "=" * (filled - 1) + ">" + " " * remaining
        elif filled == bar_width:
            bar = "=" * bar_width
        else:
            bar = " " * bar_width

        pct_str = f"{pct * 100:.0f}%"
        return Text(f"[{bar}] {pct_str:>4}  {_format_size(state.progress)}", style="blue")

    def get_snapshot(self) -> list[dict[str, Any]]:
        """Current per-stage display state, for tests."""
        with self._lock:
            return [
                {
                    "stage": state.stage,
                    "status": state.status,
                    "progress": state.progress,
                    "total": state.total,
                    "detail": state.detail,
                }
                for state in (self._states[stage] for stage in WORK_STAGES)
            ]

    @property
    def final_message(self) -> str:
        with self._lock:
            return self._final_message

    def __enter__(self) -> "InstallProgressDisplay":
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.stop()
