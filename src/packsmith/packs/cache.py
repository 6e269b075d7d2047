"""Download cache for pack files.

Cached files live under ``<cache_root>/<namespace>/<relative_key>``. An entry
is stale when it must be fetched again even if a copy exists on disk; fresh
entries with an existing file are reused by ``CachedDownload``.
"""

import logging
import threading
from pathlib import Path, PurePosixPath

logger = logging.getLogger(__name__)


class CacheEntry:
    """One cached file.

    Thread-safe: the download job marks the entry fresh from a worker thread.
    """

    def __init__(self, namespace: str, relative_key: str, full_path: Path) -> None:
        self.namespace = namespace
        self.relative_key = relative_key
        self.full_path = full_path
        self._stale = not full_path.exists()
        self._lock = threading.Lock()

    @property
    def stale(self) -> bool:
        with self._lock:
            return self._stale

    def set_stale(self, stale: bool) -> None:
        """Mark the entry stale (force re-fetch) or fresh."""
        with self._lock:
            self._stale = stale

    def is_usable(self) -> bool:
        """True if the cached file can be used without fetching it again."""
        return not self.stale and self.full_path.is_file()

    def __repr__(self) -> str:
        return f"CacheEntry({self.namespace!r}, {self.relative_key!r}, stale={self.stale})"


class MetaCache:
    """Resolves cache entries under a root directory.

    Args:
        root: Cache root directory (see ``packsmith.config.get_cache_root``).
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self._entries: dict[tuple[str, str], CacheEntry] = {}
        self._lock = threading.Lock()

    def resolve_entry(self, namespace: str, relative_key: str) -> CacheEntry:
        """Return the entry for ``relative_key`` in ``namespace``.

        The same entry object is returned for the same key, so a stale mark
        set by one caller is seen by the next.

        Raises:
            ValueError: If the key is absolute or climbs out of the namespace.
        """
        key = PurePosixPath(relative_key)
        if key.is_absolute() or ".." in key.parts or not key.parts:
            raise ValueError(f"Invalid cache key: {relative_key!r}")

        with self._lock:
            entry = self._entries.get((namespace, relative_key))
            if entry is None:
                full_path = self.root / namespace / Path(*key.parts)
                entry = CacheEntry(namespace, relative_key, full_path)
                self._entries[(namespace, relative_key)] = entry
                logger.debug("Resolved cache entry %s/%s -> %s", namespace, relative_key, full_path)
            return entry
