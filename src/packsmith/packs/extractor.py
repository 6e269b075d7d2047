"""Off-thread zip extraction with cooperative cancellation.

``ArchiveExtractor.extract()`` submits the extraction to an executor and
returns an ``ExtractionHandle`` that resolves exactly once as FINISHED,
CANCELED or FAILED. Cancellation is checked between archive members. A
cancel request that arrives before the handle resolves always wins, even if
every member was already written.

The executor is injected so several tasks can share one pool and tests can
run extraction synchronously.
"""

import logging
import threading
import zipfile
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from .errors import ArchiveOpenError

logger = logging.getLogger(__name__)


class ExtractionCancelledError(Exception):
    """Raised inside the worker when extraction was cancelled."""

    pass


class ExtractionOutcome(Enum):
    PENDING = "pending"
    FINISHED = "finished"
    CANCELED = "canceled"
    FAILED = "failed"


class ExtractionHandle:
    """Handle on one running extraction. Thread-safe."""

    def __init__(self, archive_path: Path, dest_dir: Path) -> None:
        self.archive_path = archive_path
        self.dest_dir = dest_dir
        self.files: list[Path] = []
        self.error: BaseException | None = None
        self._outcome = ExtractionOutcome.PENDING
        self._cancel_event = threading.Event()
        self._future: Future[list[Path]] | None = None
        self._callbacks: list[Callable[["ExtractionHandle"], None]] = []
        self._lock = threading.Lock()

    @property
    def outcome(self) -> ExtractionOutcome:
        with self._lock:
            return self._outcome

    @property
    def done(self) -> bool:
        return self.outcome != ExtractionOutcome.PENDING

    def cancel(self) -> None:
        """Request cancellation. Takes effect at the next archive member."""
        self._cancel_event.set()
        with self._lock:
            future = self._future
        if future is not None:
            future.cancel()

    def add_done_callback(self, callback: Callable[["ExtractionHandle"], None]) -> None:
        """Call ``callback(handle)`` once the handle resolves (immediately if it has)."""
        with self._lock:
            if self._outcome == ExtractionOutcome.PENDING:
                self._callbacks.append(callback)
                return
        callback(self)

    def _attach(self, future: "Future[list[Path]]") -> None:
        with self._lock:
            self._future = future
        future.add_done_callback(self._resolve)

    def _resolve(self, future: "Future[list[Path]]") -> None:
        with self._lock:
            if self._outcome != ExtractionOutcome.PENDING:
                return
            if future.cancelled() or self._cancel_event.is_set():
                self._outcome = ExtractionOutcome.CANCELED
            elif future.exception() is not None:
                self.error = future.exception()
                self._outcome = ExtractionOutcome.FAILED
            else:
                self.files = future.result()
                self._outcome = ExtractionOutcome.FINISHED
            callbacks = list(self._callbacks)
            self._callbacks.clear()

        logger.debug("Extraction of %s %s", self.archive_path, self._outcome.value)
        for callback in callbacks:
            callback(self)


class ArchiveExtractor:
    """Extracts zip archives on an executor.

    Args:
        executor: Executor to run extractions on. If None, a private
            single-thread pool is created and owned by this extractor.
    """

    def __init__(self, executor: Optional[Executor] = None, max_workers: int = 1) -> None:
        self._owns_executor = executor is None
        self._executor = executor if executor is not None else ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="unpack")

    def check_archive(self, archive_path: Path) -> None:
        """Verify the archive can be opened as a zip file.

        Raises:
            ArchiveOpenError: If the file is missing or not a readable zip.
        """
        try:
            with zipfile.ZipFile(archive_path, "r") as zf:
                zf.infolist()
        except (zipfile.BadZipFile, OSError) as e:
            raise ArchiveOpenError(archive_path, str(e)) from e

    def extract(self, archive_path: Path, dest_dir: Path) -> ExtractionHandle:
        """Start extracting ``archive_path`` into ``dest_dir``.

        Returns:
            Handle that resolves when extraction ends.
        """
        handle = ExtractionHandle(Path(archive_path), Path(dest_dir))
        future = self._executor.submit(_extract_dir, handle.archive_path, handle.dest_dir, handle._cancel_event)
        handle._attach(future)
        return handle

    def shutdown(self, wait: bool = True) -> None:
        """Shut down the owned pool. A shared executor is left to its owner."""
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def __enter__(self) -> "ArchiveExtractor":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.shutdown()


def _extract_dir(archive_path: Path, dest_dir: Path, cancel_event: threading.Event) -> list[Path]:
    """Extract every member of a zip archive into ``dest_dir``.

    Existing files are overwritten; directories are merged.

    Raises:
        ExtractionCancelledError: If cancellation was requested.
        ValueError: If a member would be written outside ``dest_dir``.
    """
    dest_dir.mkdir(parents=True, exist_ok=True)
    root = dest_dir.resolve()
    extracted: list[Path] = []

    with zipfile.ZipFile(archive_path, "r") as zf:
        members = zf.infolist()
        for member in members:
            if cancel_event.is_set():
                raise ExtractionCancelledError(f"Extraction of {archive_path} cancelled")
            target = (root / member.filename).resolve()
            if target != root and root not in target.parents:
                raise ValueError(f"Archive member escapes extraction directory: {member.filename}")
            zf.extract(member, root)
            if not member.is_dir():
                extracted.append(target)

    logger.debug("Extracted %d files from %s into %s", len(extracted), archive_path, dest_dir)
    return extracted
