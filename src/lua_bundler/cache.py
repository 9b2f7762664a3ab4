"""Cache for remote module downloads.

Fetched sources are keyed by URL. The fetcher only talks to a cache through
the narrow FetchCache protocol, so the storage backend can be swapped out
(in-memory for tests, on disk for the CLI).
"""

import hashlib
import logging
import os
import time
from pathlib import Path
from typing import Protocol

from lua_bundler.exceptions import CacheError

logger = logging.getLogger(__name__)

CACHE_DIR_ENV = "LUA_BUNDLER_CACHE_DIR"
DEFAULT_CACHE_DIR = Path.home() / ".lua-bundler" / "cache"


def default_cache_dir() -> Path:
    """Return the cache directory, honouring LUA_BUNDLER_CACHE_DIR."""
    override = os.environ.get(CACHE_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return DEFAULT_CACHE_DIR


class FetchCache(Protocol):
    """Protocol for remote fetch caches.

    Callers must check is_enabled() first and never call get/set on a
    disabled cache.
    """

    def get(self, key: str) -> str | None:
        """Return the cached value, or None on a miss.

        Raises:
            CacheError: If the backing store cannot be read
        """
        ...

    def set(self, key: str, value: str) -> None:
        """Store a value.

        Raises:
            CacheError: If the backing store cannot be written
        """
        ...

    def is_enabled(self) -> bool:
        ...


class MemoryCache:
    """Dictionary-backed cache, lives as long as the object."""

    def __init__(self, enabled: bool = True) -> None:
        self._enabled = enabled
        self._entries: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._entries.get(key)

    def set(self, key: str, value: str) -> None:
        self._entries[key] = value

    def is_enabled(self) -> bool:
        return self._enabled

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries


class FileCache:
    """On-disk cache storing one file per URL.

    Entries are named by the SHA256 of the key so any URL maps to a safe
    file name.

    Attributes:
        cache_dir: Directory holding cache entries
        ttl: Maximum entry age in seconds, None for no expiry
    """

    def __init__(
        self,
        cache_dir: str | Path | None = None,
        enabled: bool = True,
        ttl: float | None = None,
    ) -> None:
        self.cache_dir = Path(cache_dir).expanduser() if cache_dir else default_cache_dir()
        self.ttl = ttl
        self._enabled = enabled
        logger.debug(f"FileCache initialized with cache_dir={self.cache_dir}, enabled={enabled}")

    def entry_path(self, key: str) -> Path:
        """Path of the file backing a cache key."""
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self.cache_dir / f"{digest}.lua"

    def is_enabled(self) -> bool:
        return self._enabled

    def get(self, key: str) -> str | None:
        path = self.entry_path(key)
        try:
            if not path.exists():
                return None
            if self.ttl is not None and time.time() - path.stat().st_mtime > self.ttl:
                logger.debug(f"Cache entry expired: {key}")
                return None
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise CacheError(key, e) from e

    def set(self, key: str, value: str) -> None:
        path = self.entry_path(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(value, encoding="utf-8")
        except OSError as e:
            raise CacheError(key, e) from e

    def clear(self) -> int:
        """Remove every cache entry.

        Returns:
            Number of entries removed
        """
        if not self.cache_dir.exists():
            return 0

        removed = 0
        for path in self.cache_dir.glob("*.lua"):
            path.unlink()
            removed += 1

        logger.info(f"Cleared {removed} cache entries from {self.cache_dir}")
        return removed

    def __len__(self) -> int:
        if not self.cache_dir.exists():
            return 0
        return sum(1 for _ in self.cache_dir.glob("*.lua"))
