"""Network jobs: one or more HTTP transfers that finish together.

A ``NetJob`` owns a list of actions (``ByteArrayDownload``, ``FileDownload``,
``CachedDownload``), runs them concurrently on a thread pool once started,
reports aggregate byte progress, and ends in exactly one of success or
failure. Callers connect callbacks before ``start()``; callbacks run on
worker threads.

Transient connection errors and timeouts are retried with exponential
backoff. HTTP errors (404, 500, ...) are not retried.
"""

import logging
import shutil
import threading
import time
from abc import ABC, abstractmethod
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Callable, Optional, Protocol

import requests

from ..config import InstallerConfig
from .cache import CacheEntry

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 8192
_RETRY_BACKOFF_BASE = 1.0  # seconds, doubled on each retry

ProgressFn = Callable[[int, int], None]


class JobAbortedError(Exception):
    """Raised inside a transfer when its job has been aborted."""

    pass


@dataclass
class TransferContext:
    """What an action needs while it runs.

    Attributes:
        session: HTTP session shared by the job's actions
        cancel_event: Set when the job is aborted or another action failed
        timeout: Per-request timeout in seconds
        report: Progress sink for this action, called with (current, total) bytes
    """

    session: requests.Session
    cancel_event: threading.Event
    timeout: float
    report: ProgressFn

    def check_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise JobAbortedError("Aborted")


class NetAction(ABC):
    """One transfer inside a NetJob."""

    def __init__(self, url: str) -> None:
        self.url = url

    @abstractmethod
    def run(self, context: TransferContext) -> None:
        """Perform the transfer. Raises on failure."""
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.url!r})"


class ByteArrayDownload(NetAction):
    """Download a small document into memory (``data``)."""

    def __init__(self, url: str) -> None:
        super().__init__(url)
        self.data = b""

    def run(self, context: TransferContext) -> None:
        response = context.session.get(self.url, stream=True, timeout=context.timeout)
        response.raise_for_status()
        total = int(response.headers.get("content-length", 0))
        chunks: list[bytes] = []
        received = 0
        for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
            context.check_cancelled()
            if chunk:
                chunks.append(chunk)
                received += len(chunk)
                context.report(received, total)
        self.data = b"".join(chunks)


class FileDownload(NetAction):
    """Download a file to ``path``, creating parent directories."""

    def __init__(self, url: str, path: Path) -> None:
        super().__init__(url)
        self.path = Path(path)

    def run(self, context: TransferContext) -> None:
        _stream_to_file(self.url, self.path, context)

    def __repr__(self) -> str:
        return f"FileDownload({self.url!r} -> {str(self.path)!r})"


class CachedDownload(NetAction):
    """Download into a cache entry, reusing the cached file if it is fresh."""

    def __init__(self, url: str, entry: CacheEntry) -> None:
        super().__init__(url)
        self.entry = entry

    def run(self, context: TransferContext) -> None:
        if self.entry.is_usable():
            size = self.entry.full_path.stat().st_size
            logger.debug("Using cached %s", self.entry.full_path)
            context.report(size, size)
            return
        _stream_to_file(self.url, self.entry.full_path, context)
        self.entry.set_stale(False)


def _stream_to_file(url: str, path: Path, context: TransferContext) -> None:
    """Stream ``url`` into ``path`` through a ``.download`` temp file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_file = Path(str(path) + ".download")

    try:
        response = context.session.get(url, stream=True, timeout=context.timeout)
        response.raise_for_status()
        total = int(response.headers.get("content-length", 0))
        received = 0
        context.report(0, total)

        with open(temp_file, "wb") as f:
            for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                context.check_cancelled()
                if chunk:
                    f.write(chunk)
                    received += len(chunk)
                    context.report(received, total)

        if path.exists():
            path.unlink()
        try:
            temp_file.rename(path)
        except OSError:
            shutil.copy2(str(temp_file), str(path))
            temp_file.unlink()
    except BaseException:
        _cleanup_temp_file(temp_file)
        raise


def _cleanup_temp_file(temp_file: Path) -> None:
    try:
        if temp_file.exists():
            temp_file.unlink()
    except OSError as e:
        logger.debug("Could not remove %s: %s", temp_file, e)


class Job(Protocol):
    """What the install pipeline needs from a network job."""

    def add_action(self, action: NetAction) -> None: ...

    def on_succeeded(self, callback: Callable[[], None]) -> None: ...

    def on_failed(self, callback: Callable[[str], None]) -> None: ...

    def on_progress(self, callback: ProgressFn) -> None: ...

    def start(self) -> None: ...

    def abort(self) -> None: ...


JobFactory = Callable[[str], Job]


class NetJob:
    """A batch of HTTP transfers that succeed or fail as a unit.

    Args:
        name: Human-readable job name (for logs).
        session: HTTP session. A new ``requests.Session`` is created if None.
        max_workers: Maximum concurrent transfers.
        timeout: Per-request timeout in seconds.
        max_retries: Attempts per transfer on connection errors and timeouts.
        executor: Executor to run transfers on. If None, the job creates a
            private thread pool and shuts it down when the job ends.
    """

    def __init__(
        self,
        name: str,
        session: Optional[requests.Session] = None,
        max_workers: int = 4,
        timeout: float = 30.0,
        max_retries: int = 3,
        executor: Optional[Executor] = None,
    ) -> None:
        self.name = name
        self._session = session if session is not None else requests.Session()
        self._max_workers = max_workers
        self._timeout = timeout
        self._max_retries = max_retries
        self._executor = executor
        self._actions: list[NetAction] = []
        self._futures: list[Future[None]] = []
        self._progress: list[tuple[int, int]] = []
        self._succeeded_callbacks: list[Callable[[], None]] = []
        self._failed_callbacks: list[Callable[[str], None]] = []
        self._progress_callbacks: list[ProgressFn] = []
        self._cancel_event = threading.Event()
        self._lock = threading.Lock()
        self._started = False
        self._finished = False
        self._remaining = 0
        self._first_error: BaseException | None = None

    @property
    def actions(self) -> list[NetAction]:
        return list(self._actions)

    @property
    def finished(self) -> bool:
        with self._lock:
            return self._finished

    def add_action(self, action: NetAction) -> None:
        with self._lock:
            if self._started:
                raise RuntimeError(f"Job '{self.name}' already started")
            self._actions.append(action)
            self._progress.append((0, 0))

    def on_succeeded(self, callback: Callable[[], None]) -> None:
        self._succeeded_callbacks.append(callback)

    def on_failed(self, callback: Callable[[str], None]) -> None:
        self._failed_callbacks.append(callback)

    def on_progress(self, callback: ProgressFn) -> None:
        self._progress_callbacks.append(callback)

    def start(self) -> None:
        """Start all transfers. Returns immediately."""
        with self._lock:
            if self._started:
                raise RuntimeError(f"Job '{self.name}' already started")
            self._started = True
            self._remaining = len(self._actions)

        if not self._actions:
            self._finish()
            return

        logger.debug("Starting job '%s' with %d transfer(s)", self.name, len(self._actions))
        owned = self._executor is None
        executor = self._executor or ThreadPoolExecutor(max_workers=min(self._max_workers, len(self._actions)), thread_name_prefix="download")
        for index, action in enumerate(self._actions):
            future = executor.submit(self._run_action, index, action)
            with self._lock:
                self._futures.append(future)
            future.add_done_callback(partial(self._on_action_done, index))
        if owned:
            # Queued transfers still run; the pool's threads exit once they drain.
            executor.shutdown(wait=False)

    def abort(self) -> None:
        """Stop the job. In-flight transfers stop at their next chunk."""
        self._cancel_event.set()
        with self._lock:
            futures = list(self._futures)
        for future in futures:
            future.cancel()

    def _run_action(self, index: int, action: NetAction) -> None:
        context = TransferContext(
            session=self._session,
            cancel_event=self._cancel_event,
            timeout=self._timeout,
            report=partial(self._report, index),
        )
        for attempt in range(self._max_retries):
            context.check_cancelled()
            if attempt > 0:
                delay = _RETRY_BACKOFF_BASE * (2 ** (attempt - 1))
                logger.warning("Retrying %s in %.0fs (attempt %d/%d)", action.url, delay, attempt + 1, self._max_retries)
                time.sleep(delay)
            try:
                action.run(context)
                return
            except requests.HTTPError:
                raise
            except (requests.ConnectionError, requests.Timeout) as e:
                logger.warning("Transfer attempt %d/%d failed for %s: %s", attempt + 1, self._max_retries, action.url, e)
                if attempt == self._max_retries - 1:
                    raise

    def _report(self, index: int, current: int, total: int) -> None:
        with self._lock:
            self._progress[index] = (current, total)
            done = sum(p[0] for p in self._progress)
            expected = sum(p[1] for p in self._progress)
        for callback in self._progress_callbacks:
            callback(done, expected)

    def _on_action_done(self, index: int, future: Future[None]) -> None:
        if future.cancelled():
            error: BaseException | None = JobAbortedError("Aborted")
        else:
            error = future.exception()

        with self._lock:
            self._remaining -= 1
            if error is not None and self._first_error is None:
                self._first_error = error
                logger.debug("Job '%s' transfer %d failed: %s", self.name, index, error)
                # Stop the remaining transfers; the job fails once they settle.
                self._cancel_event.set()
            all_done = self._remaining == 0
            futures = list(self._futures)

        if error is not None:
            for pending in futures:
                pending.cancel()
        if all_done:
            self._finish()

    def _finish(self) -> None:
        with self._lock:
            if self._finished:
                return
            self._finished = True
            error = self._first_error

        if error is None:
            logger.debug("Job '%s' succeeded", self.name)
            for callback in self._succeeded_callbacks:
                callback()
        else:
            reason = str(error) or type(error).__name__
            logger.debug("Job '%s' failed: %s", self.name, reason)
            for callback in self._failed_callbacks:
                callback(reason)


def make_job_factory(config: InstallerConfig, session: Optional[requests.Session] = None) -> JobFactory:
    """Build a job factory that creates NetJobs configured from ``config``."""
    shared_session = session if session is not None else requests.Session()

    def factory(name: str) -> Job:
        return NetJob(
            name,
            session=shared_session,
            max_workers=config.download_workers,
            timeout=config.request_timeout,
            max_retries=config.max_retries,
        )

    return factory
