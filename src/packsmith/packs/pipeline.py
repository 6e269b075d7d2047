"""Pack install task: an explicit state machine over network jobs and extraction.

Stages run strictly in sequence, each started only from the completion event
of the previous one:

    FETCH_MANIFEST -> FETCH_CONFIG_ARCHIVE -> EXTRACT_CONFIG_ARCHIVE
        -> FETCH_ASSETS -> ASSEMBLE -> SUCCEEDED

Any failure ends the task in FAILED; ``abort()`` ends it in ABORTED.

Jobs and the extractor signal completion from worker threads. Those signals
are only posted to an event queue, tagged with the token of the stage that
started the work. The thread that calls ``wait()`` (or ``run()``) is the
single driver: it blocks on the queue and advances the state machine one
event at a time. Signals whose token no longer matches the current stage
(late completions after an abort, duplicate deliveries) are dropped.

Files written by completed stages are left in place on failure; a failed
task's staging directory should be discarded before retrying.
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass
from enum import Enum
from functools import partial
from pathlib import Path, PurePosixPath
from typing import Callable, Optional

from ..config import InstallerConfig
from .assembler import assemble
from .cache import MetaCache
from .callbacks import NullCallback, ProgressCallback
from .classifier import Placement, Reject, Skip, classify, resolve_download_url
from .errors import ExtractionError, InstallError, NetworkError, UnknownAssetKindError, UnsafeAssetPathError
from .extractor import ArchiveExtractor, ExtractionHandle, ExtractionOutcome
from .jobs import ByteArrayDownload, CachedDownload, FileDownload, JobFactory, NetAction, make_job_factory
from .manifest import parse_manifest
from .models import AssetDescriptor, PackageRef, PipelineState, Stage, TaskOutcome, TaskResult

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "ATLauncherPacks"

_TERMINAL_STAGES = {
    TaskOutcome.SUCCEEDED: Stage.SUCCEEDED,
    TaskOutcome.FAILED: Stage.FAILED,
    TaskOutcome.ABORTED: Stage.ABORTED,
}


class _EventKind(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"
    PROGRESS = "progress"
    ABORT = "abort"


@dataclass(frozen=True)
class _Event:
    kind: _EventKind
    token: object = None
    error: Optional[InstallError] = None
    current: int = 0
    total: int = 0


class PackInstallTask:
    """Installs one pack version into a staging directory.

    Args:
        ref: Pack name and version to install.
        staging_path: Directory to assemble the instance in.
        instance_name: Display name written to the instance settings.
        instance_icon: Icon key written to the instance settings.
        config: Installer settings. Defaults to ``InstallerConfig.from_env()``.
        cache: Download cache. Defaults to one rooted at ``config.cache_root``.
        job_factory: Creates network jobs by name. Defaults to NetJobs
            configured from ``config``.
        extractor: Archive extractor (wrapping the extraction executor).
            Defaults to a private single-worker extractor owned by the task.
        callback: Progress callback.
    """

    def __init__(
        self,
        ref: PackageRef,
        staging_path: Path,
        instance_name: str,
        instance_icon: str = "default",
        *,
        config: Optional[InstallerConfig] = None,
        cache: Optional[MetaCache] = None,
        job_factory: Optional[JobFactory] = None,
        extractor: Optional[ArchiveExtractor] = None,
        callback: Optional[ProgressCallback] = None,
    ) -> None:
        self.ref = ref
        self.staging_path = Path(staging_path)
        self.instance_name = instance_name
        self.instance_icon = instance_icon
        self._config = config if config is not None else InstallerConfig.from_env()
        self._cache = cache if cache is not None else MetaCache(self._config.cache_root)
        self._job_factory = job_factory if job_factory is not None else make_job_factory(self._config)
        self._owns_extractor = extractor is None
        self._extractor = extractor if extractor is not None else ArchiveExtractor(max_workers=self._config.extract_workers)
        self._callback: ProgressCallback = callback if callback is not None else NullCallback()
        self._events: "queue.Queue[_Event]" = queue.Queue()
        self._state = PipelineState()
        self._lock = threading.Lock()
        self._result: Optional[TaskResult] = None
        self._start_time: Optional[float] = None
        self._abort_requested = False
        self.status = ""

    @property
    def name(self) -> str:
        return str(self.ref)

    @property
    def stage(self) -> Stage:
        with self._lock:
            return self._state.stage

    @property
    def result(self) -> Optional[TaskResult]:
        return self._result

    @property
    def jarmods(self) -> list[Path]:
        """Jar-mod destinations collected so far, in manifest order."""
        return list(self._state.jarmods)

    # ─── Public control ───────────────────────────────────────────────────

    def start(self) -> None:
        """Start the task. Returns once the manifest download is started."""
        with self._lock:
            if self._state.stage is not Stage.IDLE:
                raise RuntimeError(f"Install task for {self.name} already started")
        self._start_time = time.monotonic()
        logger.info("Installing %s into %s", self.name, self.staging_path)
        self._run_step(self._fetch_manifest)

    def wait(self, timeout: Optional[float] = None) -> TaskResult:
        """Drive the task until it reaches a terminal stage.

        Only one thread may drive a task.

        Args:
            timeout: Seconds to wait for the task to finish. None waits forever.

        Returns:
            The task result.

        Raises:
            RuntimeError: If the task was never started.
            TimeoutError: If the timeout elapsed first. The task keeps its
                state and can be waited on again.
        """
        if self._result is None and self.stage is Stage.IDLE:
            raise RuntimeError(f"Install task for {self.name} was not started")

        deadline = None if timeout is None else time.monotonic() + timeout
        while self._result is None:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            try:
                event = self._events.get(timeout=remaining)
            except queue.Empty:
                raise TimeoutError(f"Install task for {self.name} still in stage {self.stage.value}") from None
            self._dispatch(event)
        return self._result

    def run(self) -> TaskResult:
        """Start the task and drive it to completion."""
        self.start()
        return self.wait()

    def abort(self) -> bool:
        """Request cancellation. Thread-safe.

        The in-flight job is aborted or the extraction cancelled, and the
        task ends in ABORTED once the driver handles the request. Completion
        signals that arrive later are ignored.

        Returns:
            False if the task had already finished, True otherwise.
        """
        with self._lock:
            stage = self._state.stage
            if stage.is_terminal:
                return False
            job = self._state.job
            extraction = self._state.extraction
            self._abort_requested = True

        logger.info("Abort requested for %s during %s", self.name, stage.value)
        if stage is Stage.IDLE:
            self._finish(TaskOutcome.ABORTED)
            return True
        if extraction is not None:
            extraction.cancel()
        if job is not None:
            job.abort()
        self._events.put(_Event(_EventKind.ABORT))
        return True

    # ─── Driver ───────────────────────────────────────────────────────────

    def _dispatch(self, event: _Event) -> None:
        with self._lock:
            aborting = self._abort_requested
        # Completions queued ahead of the abort request must not advance the task.
        if event.kind is _EventKind.ABORT or aborting:
            if not self._state.stage.is_terminal:
                self._finish(TaskOutcome.ABORTED)
            return

        if event.token is not self._state.token:
            logger.debug("Ignoring late %s signal for %s (now %s)", event.kind.value, self.name, self._state.stage.value)
            return

        if event.kind is _EventKind.PROGRESS:
            self._callback.on_progress(self.name, self._state.stage, event.current, event.total, self.status)
            return

        with self._lock:
            self._state.job = None
            self._state.extraction = None

        if event.kind is _EventKind.FAILED:
            self._fail(event.error if event.error is not None else InstallError("Unknown error"))
        elif event.kind is _EventKind.CANCELED:
            self._finish(TaskOutcome.ABORTED)
        else:
            next_steps: dict[Stage, Callable[[], None]] = {
                Stage.FETCH_MANIFEST: self._on_manifest_fetched,
                Stage.FETCH_CONFIG_ARCHIVE: self._extract_configs,
                Stage.EXTRACT_CONFIG_ARCHIVE: self._install_mods,
                Stage.FETCH_ASSETS: self._install,
            }
            self._run_step(next_steps[self._state.stage])

    def _run_step(self, step: Callable[[], None]) -> None:
        try:
            step()
        except InstallError as e:
            self._fail(e)
        except Exception as e:
            logger.debug("Unexpected error installing %s", self.name, exc_info=True)
            self._fail(InstallError(f"{type(e).__name__}: {e}"))

    def _enter(self, stage: Stage, status: str) -> object:
        with self._lock:
            token = self._state.begin(stage)
        self.status = status
        logger.debug("%s: %s", self.name, status)
        self._callback.on_progress(self.name, stage, 0, 0, status)
        return token

    def _start_job(self, token: object, job_name: str, actions: list[NetAction], relay_progress: bool) -> None:
        with self._lock:
            if self._state.job is not None:
                raise RuntimeError(f"Cannot start '{job_name}' while another job is outstanding")
        job = self._job_factory(job_name)
        for action in actions:
            job.add_action(action)
        job.on_succeeded(partial(self._post, _EventKind.SUCCEEDED, token))
        job.on_failed(partial(self._post_job_failure, token))
        if relay_progress:
            job.on_progress(partial(self._post_progress, token))
        with self._lock:
            if self._abort_requested:
                logger.debug("Not starting '%s', abort already requested", job_name)
                return
            self._state.job = job
        job.start()

    def _post(self, kind: _EventKind, token: object) -> None:
        self._events.put(_Event(kind, token))

    def _post_job_failure(self, token: object, reason: str) -> None:
        self._events.put(_Event(_EventKind.FAILED, token, error=NetworkError(reason)))

    def _post_progress(self, token: object, current: int, total: int) -> None:
        self._events.put(_Event(_EventKind.PROGRESS, token, current=current, total=total))

    def _fail(self, error: InstallError) -> None:
        logger.error("Installing %s failed: %s", self.name, error)
        self._finish(TaskOutcome.FAILED, error)

    def _finish(self, outcome: TaskOutcome, error: Optional[InstallError] = None) -> None:
        terminal = _TERMINAL_STAGES[outcome]
        with self._lock:
            last_stage = self._state.stage
            self._state.begin(terminal)
            self._state.release()

        elapsed = time.monotonic() - self._start_time if self._start_time is not None else 0.0
        self._result = TaskResult(
            outcome=outcome,
            error=error,
            elapsed=elapsed,
            failed_stage=None if outcome is TaskOutcome.SUCCEEDED else last_stage,
        )
        if outcome is TaskOutcome.SUCCEEDED:
            self.status = f"Installed in {elapsed:.1f}s"
        else:
            self.status = self._result.reason
        logger.info("Install of %s %s after %.1fs", self.name, outcome.value, elapsed)
        self._callback.on_progress(self.name, terminal, 0, 0, self.status)

        if self._owns_extractor:
            self._extractor.shutdown(wait=False)

    # ─── Stages ───────────────────────────────────────────────────────────

    def _fetch_manifest(self) -> None:
        token = self._enter(Stage.FETCH_MANIFEST, "Fetching pack manifest...")
        download = ByteArrayDownload(self._config.manifest_url(self.ref.name, self.ref.version))
        self._state.manifest_download = download
        self._start_job(token, "Version fetch", [download], relay_progress=False)

    def _on_manifest_fetched(self) -> None:
        download = self._state.manifest_download
        self._state.manifest_download = None
        self._state.manifest = parse_manifest(download.data)
        self._install_configs()

    def _install_configs(self) -> None:
        token = self._enter(Stage.FETCH_CONFIG_ARCHIVE, "Downloading configs...")
        entry = self._cache.resolve_entry(CACHE_NAMESPACE, self.ref.cache_key)
        entry.set_stale(True)
        self._state.archive_path = entry.full_path
        url = self._config.config_archive_url(self.ref.name, self.ref.version)
        self._start_job(token, "Config download", [CachedDownload(url, entry)], relay_progress=True)

    def _extract_configs(self) -> None:
        token = self._enter(Stage.EXTRACT_CONFIG_ARCHIVE, "Extracting configs...")
        archive_path = self._state.archive_path
        assert archive_path is not None
        self._extractor.check_archive(archive_path)

        handle = self._extractor.extract(archive_path, self.staging_path / "minecraft")
        with self._lock:
            self._state.extraction = handle
            aborting = self._abort_requested
        if aborting:
            handle.cancel()
        handle.add_done_callback(partial(self._on_extraction_done, token))

    def _on_extraction_done(self, token: object, handle: ExtractionHandle) -> None:
        # Runs on the extraction worker (or inline if already resolved).
        outcome = handle.outcome
        if outcome is ExtractionOutcome.FINISHED:
            self._events.put(_Event(_EventKind.SUCCEEDED, token))
        elif outcome is ExtractionOutcome.CANCELED:
            self._events.put(_Event(_EventKind.CANCELED, token))
        else:
            error = ExtractionError(f"Failed to extract pack configs {handle.archive_path}: {handle.error}")
            self._events.put(_Event(_EventKind.FAILED, token, error=error))

    def _install_mods(self) -> None:
        token = self._enter(Stage.FETCH_ASSETS, "Downloading mods...")
        manifest = self._state.manifest
        assert manifest is not None

        jarmods: list[Path] = []
        actions: list[NetAction] = []
        for asset in manifest.assets:
            placement = classify(asset.kind, manifest.runtime_id)
            if isinstance(placement, Reject):
                raise UnknownAssetKindError(asset.raw_kind)
            if isinstance(placement, Skip):
                if placement.warn:
                    logger.warning("Unsupported mod type: %s (skipping %s)", asset.raw_kind, asset.file_name)
                else:
                    logger.debug("Skipping server-only %s", asset.file_name)
                continue

            path = self._asset_path(placement, asset)
            url = resolve_download_url(asset, self._config.download_server)
            logger.debug("Will download %s to %s", url, path)
            actions.append(FileDownload(url, path))
            if placement.jar_mod:
                logger.debug("Jarmod: %s", path)
                jarmods.append(path)

        self._state.jarmods = jarmods
        self._start_job(token, "Mod download", actions, relay_progress=True)

    def _asset_path(self, placement: Placement, asset: AssetDescriptor) -> Path:
        game_root = self.staging_path / "minecraft"
        name = asset.file_name
        path = game_root / placement.relative_dir / name
        resolved_root = game_root.resolve()
        # The name must end in a file component, and must not land on a directory.
        has_file_part = PurePosixPath(name.replace("\\", "/")).name not in ("", ".", "..") and not name.endswith(("/", "\\"))
        if not has_file_part or resolved_root not in path.resolve().parents or path.is_dir():
            raise UnsafeAssetPathError(name)
        return path

    def _install(self) -> None:
        self._enter(Stage.ASSEMBLE, "Installing modpack")
        manifest = self._state.manifest
        assert manifest is not None
        assemble(manifest, self.staging_path, self._state.jarmods, self.instance_name, self.instance_icon)
        self._finish(TaskOutcome.SUCCEEDED)
