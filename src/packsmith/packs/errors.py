"""Error taxonomy for pack installation.

Every failure that ends an install task is an ``InstallError``. The task
reports ``str(error)`` to the user; parse errors additionally carry a
location. Abort is not an error and has no class here: it is the ABORTED
outcome of a task result.
"""

from pathlib import Path


class InstallError(Exception):
    """Base class for failures that end an install task."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class NetworkError(InstallError):
    """A network job reported failure. The job's reason is kept verbatim."""

    pass


class ManifestParseError(InstallError):
    """The version manifest is not a well-formed pack document."""

    def __init__(self, message: str, line: int = -1, column: int = -1) -> None:
        super().__init__(f"Failed to fetch modpack data: {message} (line {line}, column {column})")
        self.message = message
        self.line = line
        self.column = column


class UnknownAssetKindError(InstallError):
    """A manifest asset has a type label this installer does not know."""

    def __init__(self, raw_kind: str) -> None:
        super().__init__(f"Unknown mod type: {raw_kind}")
        self.raw_kind = raw_kind


class UnsupportedDownloadModeError(InstallError):
    """An asset can only be fetched in a way this installer cannot do."""

    def __init__(self, raw_mode: str, known: bool) -> None:
        prefix = "Unsupported download type" if known else "Unknown download type"
        super().__init__(f"{prefix}: {raw_mode}")
        self.raw_mode = raw_mode
        self.known = known


class UnknownLoaderError(InstallError):
    """The manifest names a mod loader that cannot be registered."""

    def __init__(self, raw_kind: str) -> None:
        super().__init__(f"Unknown loader type: {raw_kind}")
        self.raw_kind = raw_kind


class ArchiveOpenError(InstallError):
    """The downloaded config archive cannot be opened."""

    def __init__(self, path: Path, detail: str = "") -> None:
        reason = f"Failed to open pack configs {path}!"
        if detail:
            reason = f"{reason} ({detail})"
        super().__init__(reason)
        self.path = path


class ExtractionError(InstallError):
    """The config archive opened but could not be extracted."""

    pass


class UnsafeAssetPathError(InstallError):
    """An asset's file name does not name a file inside the staging directory."""

    def __init__(self, file_name: str) -> None:
        super().__init__(f"Refusing to write asset to unsafe path: {file_name!r}")
        self.file_name = file_name
