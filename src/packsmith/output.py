"""
Timestamped user-facing output for the packsmith CLI.

Every line is prefixed with the time elapsed since the program started, in
MM:SS.cc format, so a slow install can be traced to the stage that took the
time.

Example output:
    00:00.01 packsmith v0.1.0
    00:00.02 Installing SkyFactory 4.2.4 into ./instances/sf4
    00:00.35 [1/5] Fetching pack manifest...
    00:01.80 [4/5] Downloading mods...
    00:09.12       Skipped server-only jar: mcpc-plus.jar

Library code logs through the ``logging`` module instead; this module is only
for what the CLI shows the user.
"""

import sys
import time
from typing import Optional, TextIO

_start_time: Optional[float] = None
_output_stream: TextIO = sys.stdout
_verbose: bool = False


def init_timer(output_stream: Optional[TextIO] = None) -> None:
    """
    Initialize the program timer.

    Called automatically on first use if the CLI does not call it.

    Args:
        output_stream: Optional output stream (defaults to sys.stdout)
    """
    global _start_time, _output_stream
    _start_time = time.time()
    if output_stream is not None:
        _output_stream = output_stream


def set_verbose(verbose: bool) -> None:
    """Show messages logged with verbose_only when True."""
    global _verbose
    _verbose = verbose


def is_verbose() -> bool:
    return _verbose


def get_elapsed() -> float:
    """Seconds since the timer started, starting it if needed."""
    if _start_time is None:
        init_timer()
    return time.time() - _start_time  # type: ignore[operator]


def format_timestamp() -> str:
    """Elapsed time as MM:SS.cc."""
    elapsed = get_elapsed()
    minutes = int(elapsed // 60)
    seconds = elapsed % 60
    return f"{minutes:02d}:{seconds:05.2f}"


def _print(message: str) -> None:
    _output_stream.write(f"{format_timestamp()} {message}\n")
    _output_stream.flush()


def log(message: str, verbose_only: bool = False) -> None:
    if verbose_only and not _verbose:
        return
    _print(message)


def log_phase(phase: int, total: int, message: str, verbose_only: bool = False) -> None:
    """
    Log an install stage message in the form ``[N/M] message``.

    Args:
        phase: Current stage number
        total: Total number of stages
        message: Stage description
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(f"[{phase}/{total}] {message}")


def log_detail(message: str, indent: int = 6, verbose_only: bool = False) -> None:
    """
    Log an indented detail message.

    Args:
        message: Detail message
        indent: Number of spaces to indent (default 6)
        verbose_only: If True, only print if verbose mode is enabled
    """
    if verbose_only and not _verbose:
        return
    _print(f"{' ' * indent}{message}")


def log_header(title: str, version: str) -> None:
    """Log the program header line."""
    _print(f"{title} v{version}")


def log_error(message: str) -> None:
    _print(f"ERROR: {message}")


def log_warning(message: str) -> None:
    _print(f"WARNING: {message}")


def log_success(message: str) -> None:
    _print(message)
