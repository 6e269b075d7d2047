"""Test doubles for pack installation tests.

- ImmediateExecutor / DeferredExecutor: executors that run work inline or on demand
- FakeJob / FakeJobFactory: scripted network jobs for driving the pipeline
- FakeSession / FakeResponse: stand-ins for requests.Session used by NetJob
- zip and manifest builders
"""

import io
import threading
import zipfile
from concurrent.futures import Executor, Future
from pathlib import Path
from typing import Any, Callable, Optional

import requests

from packsmith.packs.jobs import ByteArrayDownload, CachedDownload, FileDownload, NetAction

TEST_SERVER = "https://dl.example.com/atl/"

# ─── Executors ────────────────────────────────────────────────────────────────


def _run_into(future: Future, fn: Callable[..., Any], args: tuple, kwargs: dict) -> None:
    if not future.set_running_or_notify_cancel():
        return
    try:
        result = fn(*args, **kwargs)
    except BaseException as e:
        future.set_exception(e)
    else:
        future.set_result(result)


class ImmediateExecutor(Executor):
    """Runs submitted work synchronously inside submit()."""

    def submit(self, fn, /, *args, **kwargs):  # type: ignore[override]
        future: Future = Future()
        _run_into(future, fn, args, kwargs)
        return future


class DeferredExecutor(Executor):
    """Queues submitted work until run_all() is called."""

    def __init__(self) -> None:
        self.pending: list[tuple[Future, Callable[..., Any], tuple, dict]] = []

    def submit(self, fn, /, *args, **kwargs):  # type: ignore[override]
        future: Future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_all(self) -> None:
        pending, self.pending = self.pending, []
        for future, fn, args, kwargs in pending:
            _run_into(future, fn, args, kwargs)


# ─── Fake jobs ────────────────────────────────────────────────────────────────

HOLD = object()


class FakeJob:
    """Network job whose outcome is decided by its factory's responder."""

    def __init__(self, name: str, factory: "FakeJobFactory") -> None:
        self.name = name
        self.factory = factory
        self.actions: list[NetAction] = []
        self.started = False
        self.aborted = False
        self.finished = False
        self._succeeded: list[Callable[[], None]] = []
        self._failed: list[Callable[[str], None]] = []
        self._progress: list[Callable[[int, int], None]] = []

    def add_action(self, action: NetAction) -> None:
        assert not self.started
        self.actions.append(action)

    def on_succeeded(self, callback: Callable[[], None]) -> None:
        self._succeeded.append(callback)

    def on_failed(self, callback: Callable[[str], None]) -> None:
        self._failed.append(callback)

    def on_progress(self, callback: Callable[[int, int], None]) -> None:
        self._progress.append(callback)

    @property
    def relays_progress(self) -> bool:
        return bool(self._progress)

    def start(self) -> None:
        self.started = True
        self.factory._job_started(self)
        outcome = self.factory.responder(self)
        if outcome is HOLD:
            return
        if outcome is None:
            self.succeed()
        else:
            self.fail(outcome)

    def abort(self) -> None:
        self.aborted = True

    def progress(self, current: int, total: int) -> None:
        for callback in self._progress:
            callback(current, total)

    def succeed(self) -> None:
        self._mark_finished()
        for callback in self._succeeded:
            callback()

    def fail(self, reason: str) -> None:
        self._mark_finished()
        for callback in self._failed:
            callback(reason)

    def _mark_finished(self) -> None:
        if not self.finished:
            self.finished = True
            self.factory._job_finished(self)


class FakeJobFactory:
    """Creates FakeJobs and tracks how many are live at once."""

    def __init__(self, responder: Callable[[FakeJob], Any]) -> None:
        self.responder = responder
        self.jobs: list[FakeJob] = []
        self.live = 0
        self.max_live = 0
        self._lock = threading.Lock()

    def __call__(self, name: str) -> FakeJob:
        job = FakeJob(name, self)
        self.jobs.append(job)
        return job

    def _job_started(self, job: FakeJob) -> None:
        with self._lock:
            self.live += 1
            self.max_live = max(self.max_live, self.live)

    def _job_finished(self, job: FakeJob) -> None:
        with self._lock:
            self.live -= 1

    @property
    def started_jobs(self) -> list[FakeJob]:
        return [job for job in self.jobs if job.started]


class PackServer:
    """Responder that serves a manifest, a config archive and asset files.

    Args:
        manifest: Bytes served for the manifest download.
        archive: Bytes written into the config archive cache entry.
        failures: URL substring -> failure reason for jobs touching that URL.
        hold: Job names to leave pending.
    """

    def __init__(
        self,
        manifest: bytes,
        archive: bytes,
        failures: Optional[dict[str, str]] = None,
        hold: Optional[set[str]] = None,
    ) -> None:
        self.manifest = manifest
        self.archive = archive
        self.failures = failures or {}
        self.hold = hold or set()
        self.before_respond: Optional[Callable[[FakeJob], None]] = None

    def __call__(self, job: FakeJob) -> Any:
        if self.before_respond is not None:
            self.before_respond(job)
        if job.name in self.hold:
            return HOLD
        for action in job.actions:
            for fragment, reason in self.failures.items():
                if fragment in action.url:
                    return reason
        for action in job.actions:
            if isinstance(action, ByteArrayDownload):
                action.data = self.manifest
            elif isinstance(action, CachedDownload):
                action.entry.full_path.parent.mkdir(parents=True, exist_ok=True)
                action.entry.full_path.write_bytes(self.archive)
                action.entry.set_stale(False)
            elif isinstance(action, FileDownload):
                action.path.parent.mkdir(parents=True, exist_ok=True)
                action.path.write_bytes(f"content of {action.url}".encode())
        return None


# ─── Fake HTTP ────────────────────────────────────────────────────────────────


class FakeResponse:
    def __init__(self, url: str, body: bytes, status_code: int = 200, send_length: bool = True) -> None:
        self.url = url
        self.body = body
        self.status_code = status_code
        self.headers = {"content-length": str(len(body))} if send_length else {}

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Client Error: Not Found for url: {self.url}")

    def iter_content(self, chunk_size: int = 1):
        for i in range(0, len(self.body), chunk_size):
            yield self.body[i : i + chunk_size]


class FakeSession:
    """requests.Session stand-in serving bytes by URL. Unknown URLs are 404."""

    def __init__(self, files: dict[str, bytes]) -> None:
        self.files = files
        self.errors: dict[str, list[BaseException]] = {}
        self.requested: list[str] = []
        self._lock = threading.Lock()

    def get(self, url: str, stream: bool = False, timeout: float | None = None) -> FakeResponse:
        with self._lock:
            self.requested.append(url)
            queued = self.errors.get(url)
            if queued:
                raise queued.pop(0)
        if url in self.files:
            return FakeResponse(url, self.files[url])
        return FakeResponse(url, b"", status_code=404)


# ─── Builders ─────────────────────────────────────────────────────────────────


def build_zip(files: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buffer.getvalue()


def build_manifest(
    minecraft: str = "1.12.2",
    loader: Optional[tuple[str, str]] = ("forge", "14.23.5.2854"),
    mods: Optional[list[dict[str, str]]] = None,
) -> bytes:
    """Render a version manifest document."""
    lines = ["<?xml version='1.0' encoding='UTF-8'?>", "<version>"]
    lines.append(f"  <pack><version>1.0</version><minecraft>{minecraft}</minecraft></pack>")
    if loader is not None:
        lines.append(f'  <loader type="{loader[0]}" version="{loader[1]}"/>')
    lines.append("  <mods>")
    for mod in mods or []:
        attrs = " ".join(f'{key}="{value}"' for key, value in mod.items())
        lines.append(f"    <mod {attrs}/>")
    lines.append("  </mods>")
    lines.append("</version>")
    return "\n".join(lines).encode("utf-8")


def mod(file: str, type: str, download: str = "server", url: Optional[str] = None) -> dict[str, str]:
    return {
        "name": Path(file).stem,
        "url": url if url is not None else f"mods/{file}",
        "file": file,
        "download": download,
        "type": type,
    }
