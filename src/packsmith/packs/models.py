"""Data models for pack installation.

Defines the dataclasses and enums used throughout the install pipeline:
- PackageRef: Identity of the pack version being installed
- AssetKind / DownloadMode: Closed label sets from the version manifest
- Loader: Tagged mod-loader variant (none, forge, fabric, unrecognized)
- AssetDescriptor / Manifest: Parsed version manifest
- Stage / TaskOutcome / TaskResult: Pipeline progress and final result
- PipelineState: Mutable per-task state owned by the pipeline driver
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class PackageRef:
    """The pack version an install task targets.

    Attributes:
        name: Pack name as published on the download server (e.g. "SkyFactory4")
        version: Version label (e.g. "4.2.4")
    """

    name: str
    version: str

    @property
    def cache_key(self) -> str:
        """Relative cache key for this pack version."""
        return f"{self.name}/{self.version}"

    def __str__(self) -> str:
        return f"{self.name} {self.version}"


class AssetKind(Enum):
    """Asset type labels understood by the installer."""

    FORGE = "forge"
    JAR = "jar"
    MODS = "mods"
    FLAN = "flan"
    DEPENDENCY = "dependency"
    IC2LIB = "ic2lib"
    DENLIB = "denlib"
    COREMODS = "coremods"
    MCPC = "mcpc"
    PLUGINS = "plugins"
    EXTRACT = "extract"
    DECOMP = "decomp"
    RESOURCEPACK = "resourcepack"
    UNKNOWN = "unknown"

    @classmethod
    def from_label(cls, label: str) -> "AssetKind":
        """Map a manifest label to a kind. Unrecognized labels map to UNKNOWN."""
        normalized = label.strip().lower()
        for kind in cls:
            if kind is not cls.UNKNOWN and kind.value == normalized:
                return kind
        return cls.UNKNOWN


class DownloadMode(Enum):
    """How an asset is fetched."""

    SERVER = "server"
    BROWSER = "browser"
    DIRECT = "direct"
    UNKNOWN = "unknown"

    @classmethod
    def from_label(cls, label: str) -> "DownloadMode":
        normalized = label.strip().lower()
        for mode in cls:
            if mode is not cls.UNKNOWN and mode.value == normalized:
                return mode
        return cls.UNKNOWN


class LoaderFamily(Enum):
    NONE = "none"
    FORGE = "forge"
    FABRIC = "fabric"
    UNRECOGNIZED = "unrecognized"


@dataclass(frozen=True)
class Loader:
    """Mod loader requested by a manifest.

    Attributes:
        family: Which loader family this is
        raw_kind: Label as written in the manifest ("" when absent)
        version: Loader version ("" when absent)
    """

    family: LoaderFamily = LoaderFamily.NONE
    raw_kind: str = ""
    version: str = ""

    @classmethod
    def from_labels(cls, raw_kind: str, version: str) -> "Loader":
        normalized = raw_kind.strip().lower()
        if not normalized:
            family = LoaderFamily.NONE
        elif normalized == "forge":
            family = LoaderFamily.FORGE
        elif normalized == "fabric":
            family = LoaderFamily.FABRIC
        else:
            family = LoaderFamily.UNRECOGNIZED
        return cls(family=family, raw_kind=raw_kind, version=version)


@dataclass(frozen=True)
class AssetDescriptor:
    """One downloadable file listed in a version manifest.

    Attributes:
        name: Display name of the mod/asset
        kind: Parsed asset kind (UNKNOWN if the label was not recognized)
        raw_kind: Type label exactly as written in the manifest
        file_name: File name to write the asset as
        download_mode: Parsed download mode
        raw_download: Download label exactly as written in the manifest
        source_url: Relative path on the download server, or absolute URL for direct downloads
    """

    name: str
    kind: AssetKind
    raw_kind: str
    file_name: str
    download_mode: DownloadMode
    raw_download: str
    source_url: str


@dataclass(frozen=True)
class Manifest:
    """Parsed description of one pack version.

    Attributes:
        runtime_id: Minecraft version the pack targets (e.g. "1.12.2")
        loader: Requested mod loader
        assets: Assets in manifest order
        pack_version: Pack version as stated inside the document
    """

    runtime_id: str
    loader: Loader = field(default_factory=Loader)
    assets: tuple[AssetDescriptor, ...] = ()
    pack_version: str = ""


class Stage(Enum):
    """Stage of an install task."""

    IDLE = "idle"
    FETCH_MANIFEST = "fetch_manifest"
    FETCH_CONFIG_ARCHIVE = "fetch_config_archive"
    EXTRACT_CONFIG_ARCHIVE = "extract_config_archive"
    FETCH_ASSETS = "fetch_assets"
    ASSEMBLE = "assemble"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABORTED = "aborted"

    @property
    def is_terminal(self) -> bool:
        return self in (Stage.SUCCEEDED, Stage.FAILED, Stage.ABORTED)


# Working stages in the order the pipeline enters them.
WORK_STAGES: tuple[Stage, ...] = (
    Stage.FETCH_MANIFEST,
    Stage.FETCH_CONFIG_ARCHIVE,
    Stage.EXTRACT_CONFIG_ARCHIVE,
    Stage.FETCH_ASSETS,
    Stage.ASSEMBLE,
)


class TaskOutcome(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass
class TaskResult:
    """Final result of an install task.

    Attributes:
        outcome: How the task ended
        error: The failure, when outcome is FAILED
        elapsed: Wall-clock seconds from start to the terminal stage
        failed_stage: Stage that was active when the task failed or was aborted
    """

    outcome: TaskOutcome
    error: Exception | None = None
    elapsed: float = 0.0
    failed_stage: Stage | None = None

    @property
    def success(self) -> bool:
        return self.outcome == TaskOutcome.SUCCEEDED

    @property
    def reason(self) -> str:
        """Human-readable reason for a non-successful outcome."""
        if self.outcome == TaskOutcome.ABORTED:
            return "Aborted"
        if self.error is not None:
            return str(self.error)
        return ""

    @property
    def location(self) -> tuple[int, int] | None:
        """(line, column) of a manifest parse failure, if that is what failed."""
        line = getattr(self.error, "line", None)
        column = getattr(self.error, "column", None)
        if line is None or column is None:
            return None
        return (line, column)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary."""
        return {
            "outcome": self.outcome.value,
            "reason": self.reason,
            "error_type": type(self.error).__name__ if self.error is not None else None,
            "location": list(self.location) if self.location is not None else None,
            "elapsed": self.elapsed,
            "failed_stage": self.failed_stage.value if self.failed_stage is not None else None,
        }


@dataclass
class PipelineState:
    """Mutable state of one install task. Owned by the pipeline driver.

    ``token`` identifies the current stage instance; completion events carry
    the token of the stage that started them so late ones can be told apart.
    Per-stage handles are cleared when their stage completes.
    """

    stage: Stage = Stage.IDLE
    token: object = field(default_factory=object)
    job: Any = None
    extraction: Any = None
    manifest: Manifest | None = None
    manifest_download: Any = None
    archive_path: Path | None = None
    jarmods: list[Path] = field(default_factory=list)

    def begin(self, stage: Stage) -> object:
        """Enter a stage and return its fresh token."""
        self.stage = stage
        self.token = object()
        return self.token

    def release(self) -> None:
        """Drop everything the finished task was holding."""
        self.job = None
        self.extraction = None
        self.manifest = None
        self.manifest_download = None
        self.archive_path = None
        self.jarmods = []
