"""Installer configuration.

Holds the remote download server, the cache location and the worker/retry
knobs used by network jobs and archive extraction. Values come from keyword
arguments or, through ``InstallerConfig.from_env()``, from the environment:

    PACKSMITH_DOWNLOAD_SERVER   base URL of the pack server (trailing slash added)
    PACKSMITH_CACHE_DIR         explicit cache root
    PACKSMITH_DEV_MODE=1        use ~/.packsmith/cache_dev instead of ~/.packsmith/cache
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

DEFAULT_DOWNLOAD_SERVER = "https://download.nodecdn.net/containers/atl/"


def get_cache_root(environ: Optional[Mapping[str, str]] = None) -> Path:
    """Determine the packsmith cache root directory.

    Priority: PACKSMITH_CACHE_DIR > PACKSMITH_DEV_MODE > default.

    Args:
        environ: Environment mapping to read (defaults to os.environ).

    Returns:
        Path to the cache root directory.
    """
    env = os.environ if environ is None else environ
    cache_env = env.get("PACKSMITH_CACHE_DIR")
    if cache_env:
        return Path(cache_env).resolve()
    if env.get("PACKSMITH_DEV_MODE") == "1":
        return Path.home() / ".packsmith" / "cache_dev"
    return Path.home() / ".packsmith" / "cache"


def _normalize_server(url: str) -> str:
    return url if url.endswith("/") else url + "/"


@dataclass
class InstallerConfig:
    """Settings shared by every install task.

    Attributes:
        download_server: Base URL of the pack server, always ending with "/".
        cache_root: Directory holding cached downloads (config archives).
        download_workers: Concurrent transfers inside one network job.
        extract_workers: Worker threads for archive extraction.
        request_timeout: Per-request socket timeout in seconds.
        max_retries: Attempts per transfer on transient connection errors.
    """

    download_server: str = DEFAULT_DOWNLOAD_SERVER
    cache_root: Path = field(default_factory=get_cache_root)
    download_workers: int = 4
    extract_workers: int = 1
    request_timeout: float = 30.0
    max_retries: int = 3

    def __post_init__(self) -> None:
        self.download_server = _normalize_server(self.download_server)
        self.cache_root = Path(self.cache_root)
        if self.download_workers < 1:
            raise ValueError(f"download_workers must be at least 1, got {self.download_workers}")
        if self.extract_workers < 1:
            raise ValueError(f"extract_workers must be at least 1, got {self.extract_workers}")
        if self.max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {self.max_retries}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides: object) -> "InstallerConfig":
        """Build a config from environment variables.

        Keyword overrides that are not None win over the environment.
        """
        env = os.environ if environ is None else environ
        values: dict[str, object] = {
            "download_server": env.get("PACKSMITH_DOWNLOAD_SERVER") or DEFAULT_DOWNLOAD_SERVER,
            "cache_root": get_cache_root(env),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)  # type: ignore[arg-type]

    def pack_version_url(self, pack: str, version: str, filename: str) -> str:
        """URL of a file published under a pack version on the download server."""
        return f"{self.download_server}packs/{pack}/versions/{version}/{filename}"

    def manifest_url(self, pack: str, version: str) -> str:
        return self.pack_version_url(pack, version, "Configs.xml")

    def config_archive_url(self, pack: str, version: str) -> str:
        return self.pack_version_url(pack, version, "Configs.zip")
