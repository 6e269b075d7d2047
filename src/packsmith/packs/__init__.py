"""Pack installation: manifest, downloads, extraction and instance assembly.

Public API:
    PackInstallTask: Installs one pack version into a staging directory.
    parse_manifest: Parses a version manifest document.
    classify: Decides where an asset goes inside the instance.
    assemble: Writes the instance records for a downloaded pack.
"""

from .assembler import assemble
from .cache import CacheEntry, MetaCache
from .callbacks import NullCallback, ProgressCallback
from .classifier import Placement, Reject, Skip, classify, resolve_download_url
from .errors import (
    ArchiveOpenError,
    ExtractionError,
    InstallError,
    ManifestParseError,
    NetworkError,
    UnknownAssetKindError,
    UnknownLoaderError,
    UnsafeAssetPathError,
    UnsupportedDownloadModeError,
)
from .extractor import ArchiveExtractor, ExtractionHandle, ExtractionOutcome
from .jobs import ByteArrayDownload, CachedDownload, FileDownload, NetJob, make_job_factory
from .manifest import parse_manifest
from .models import (
    AssetDescriptor,
    AssetKind,
    DownloadMode,
    Loader,
    LoaderFamily,
    Manifest,
    PackageRef,
    Stage,
    TaskOutcome,
    TaskResult,
)
from .pipeline import PackInstallTask
from .progress_display import InstallProgressDisplay

__all__ = [
    "ArchiveExtractor",
    "ArchiveOpenError",
    "AssetDescriptor",
    "AssetKind",
    "ByteArrayDownload",
    "CacheEntry",
    "CachedDownload",
    "DownloadMode",
    "ExtractionError",
    "ExtractionHandle",
    "ExtractionOutcome",
    "FileDownload",
    "InstallError",
    "InstallProgressDisplay",
    "Loader",
    "LoaderFamily",
    "Manifest",
    "ManifestParseError",
    "MetaCache",
    "NetJob",
    "NetworkError",
    "NullCallback",
    "PackInstallTask",
    "PackageRef",
    "Placement",
    "ProgressCallback",
    "Reject",
    "Skip",
    "Stage",
    "TaskOutcome",
    "TaskResult",
    "UnknownAssetKindError",
    "UnknownLoaderError",
    "UnsafeAssetPathError",
    "UnsupportedDownloadModeError",
    "assemble",
    "classify",
    "make_job_factory",
    "parse_manifest",
    "resolve_download_url",
]
