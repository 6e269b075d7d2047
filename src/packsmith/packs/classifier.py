"""Asset placement rules.

``classify`` decides where an asset goes inside ``<staging>/minecraft``:
placed into a subdirectory, skipped, or rejected. It is a total function over
AssetKind; adding a kind without a branch here is flagged by the type checker
through ``assert_never``.

``resolve_download_url`` decides where an asset is fetched from.
"""

from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Union, assert_never

from .errors import UnsupportedDownloadModeError
from .models import AssetDescriptor, AssetKind, DownloadMode


@dataclass(frozen=True)
class Placement:
    """Place the asset under ``relative_dir``.

    Attributes:
        relative_dir: Directory relative to ``<staging>/minecraft``
        jar_mod: True if the asset must also be merged into the game jar
    """

    relative_dir: PurePosixPath
    jar_mod: bool = False


@dataclass(frozen=True)
class Skip:
    """Do not download the asset.

    Attributes:
        warn: True if the kind is unsupported and skipping it deserves a warning
    """

    warn: bool = False


@dataclass(frozen=True)
class Reject:
    """The asset kind is unknown; the whole install must fail."""

    pass


Classification = Union[Placement, Skip, Reject]


def classify(kind: AssetKind, runtime_id: str) -> Classification:
    """Map an asset kind to its placement.

    Args:
        kind: Asset kind from the manifest.
        runtime_id: Minecraft version of the pack; dependency libraries are
            isolated per version under ``mods/<runtime_id>``.

    Returns:
        Placement, Skip or Reject.
    """
    if kind is AssetKind.FORGE or kind is AssetKind.JAR:
        # Forge is shipped as a jar-mod until it is installed as a component.
        return Placement(PurePosixPath("jarmods"), jar_mod=True)
    elif kind is AssetKind.MODS:
        return Placement(PurePosixPath("mods"))
    elif kind is AssetKind.FLAN:
        return Placement(PurePosixPath("Flan"))
    elif kind is AssetKind.DEPENDENCY:
        return Placement(PurePosixPath("mods") / runtime_id)
    elif kind is AssetKind.IC2LIB:
        return Placement(PurePosixPath("mods/ic2"))
    elif kind is AssetKind.DENLIB:
        return Placement(PurePosixPath("mods/denlib"))
    elif kind is AssetKind.COREMODS:
        return Placement(PurePosixPath("coremods"))
    elif kind is AssetKind.MCPC:
        # Server jar, never needed on the client.
        return Skip()
    elif kind is AssetKind.PLUGINS:
        return Placement(PurePosixPath("plugins"))
    elif kind is AssetKind.EXTRACT or kind is AssetKind.DECOMP:
        return Skip(warn=True)
    elif kind is AssetKind.RESOURCEPACK:
        return Placement(PurePosixPath("resourcepacks"))
    elif kind is AssetKind.UNKNOWN:
        return Reject()
    else:
        assert_never(kind)


def resolve_download_url(asset: AssetDescriptor, download_server: str) -> str:
    """Work out the URL an asset is downloaded from.

    Args:
        asset: The asset to download.
        download_server: Base URL of the pack server, ending with "/".

    Returns:
        Absolute download URL.

    Raises:
        UnsupportedDownloadModeError: For browser-only or unknown download modes.
    """
    mode = asset.download_mode
    if mode is DownloadMode.SERVER:
        return download_server + asset.source_url
    elif mode is DownloadMode.DIRECT:
        return asset.source_url
    elif mode is DownloadMode.BROWSER:
        raise UnsupportedDownloadModeError(asset.raw_download, known=True)
    elif mode is DownloadMode.UNKNOWN:
        raise UnsupportedDownloadModeError(asset.raw_download, known=False)
    else:
        assert_never(mode)
