"""Content-addressed, disk-backed cache of byte ranges.

Each cached range lives in its own file under the cache directory, named
by a key derived from the content hash of the logical source plus the
buffer name (never from the byte offsets).  The first request for a key
copies the range out of the source; every later request, including from
a later process, memory-maps the cache file read-only.
"""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from urllib.parse import quote

from vimkit.container.decoder import NamedBuffer
from vimkit.container.source import ByteSource
from vimkit.storage.disk import DiskStorage

logger = logging.getLogger(__name__)

CACHE_DIR_ENV = "VIMKIT_CACHE_DIR"
_DEFAULT_CACHE_DIR = Path("~/.cache/vimkit")
LOCK_STRIPES = 64


class CacheError(Exception):
    """A cache file could not be written or mapped.

    Never escapes :meth:`ByteRangeCache.materialize`; callers fall back
    to an in-memory copy.
    """

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        self.message = (
            f"Cache write failed for {key}: {message}"
            if message
            else f"Cache write failed for {key}"
        )
        super().__init__(self.message)


def default_cache_dir() -> Path:
    env = os.environ.get(CACHE_DIR_ENV)
    if env:
        return Path(env).expanduser()
    return _DEFAULT_CACHE_DIR.expanduser()


def make_cache_key(content_hash: str, name: str) -> str:
    """Return ``"<content_hash>.<name>"`` with path separators escaped."""
    return f"{content_hash}.{quote(name, safe='')}"


class ByteRangeCache:
    """Process-wide cache of materialized byte ranges.

    Writes for one key are serialised by a striped lock and land through
    an atomic rename, so concurrent callers (threads or processes) never
    observe a half-written cache file.
    """

    def __init__(self, storage: DiskStorage | None = None) -> None:
        self._storage = storage or DiskStorage(str(default_cache_dir()))
        self._locks = tuple(threading.Lock() for _ in range(LOCK_STRIPES))
        self.hits = 0
        self.misses = 0
        self.fallbacks = 0

    @classmethod
    def from_config(cls, config: dict) -> ByteRangeCache:
        directory = config.get("dir")
        if directory:
            return cls(DiskStorage(directory))
        return cls()

    @property
    def storage(self) -> DiskStorage:
        return self._storage

    @property
    def directory(self) -> Path:
        return self._storage.base_path

    def _lock_for(self, key: str) -> threading.Lock:
        """Same key, same lock; unrelated keys may share a stripe."""
        return self._locks[hash(key) % LOCK_STRIPES]

    # ---- interface ----

    def materialize(
        self,
        source: ByteSource,
        byte_range: tuple[int, int],
        cache_key: str,
    ) -> memoryview:
        """Return a read-only view of ``source[start:end]`` backed by the cache.

        Failure to create or map the cache file is logged and degraded to
        an in-memory copy; it never fails the read.
        """
        start, end = byte_range
        if end < start:
            raise ValueError(f"Invalid byte range {byte_range}")
        if start == end:
            return memoryview(b"")

        with self._lock_for(cache_key):
            try:
                return self._mapped(source, start, end, cache_key)
            except CacheError as exc:
                logger.warning("%s; falling back to an in-memory copy", exc.message)
                self.fallbacks += 1
                return memoryview(source.read(start, end))

    def materialize_buffer(self, buffer: NamedBuffer, content_hash: str) -> memoryview:
        """Materialize a decoded buffer under ``make_cache_key(content_hash, name)``."""
        return self.materialize(
            buffer.source,
            (buffer.start, buffer.end),
            make_cache_key(content_hash, buffer.name),
        )

    def contains(self, cache_key: str) -> bool:
        return self._storage.exists(cache_key)

    def remove(self, prefix: str) -> int:
        """Delete every cache file whose key starts with *prefix*."""
        keys = [k for k in self._storage.list_keys("") if k.startswith(prefix)]
        for key in keys:
            self._storage.delete(key)
        logger.info("Removed %d cached ranges for %s", len(keys), prefix)
        return len(keys)

    def _mapped(
        self, source: ByteSource, start: int, end: int, cache_key: str
    ) -> memoryview:
        length = end - start
        try:
            if self._storage.exists(cache_key) and self._storage.size(cache_key) == length:
                self.hits += 1
            else:
                self._storage.write(cache_key, source.view(start, end))
                self.misses += 1
                logger.debug("Cached %d bytes as %s", length, cache_key)
            mapped = self._storage.open_mapped(cache_key)
        except OSError as exc:
            raise CacheError(cache_key, str(exc)) from exc
        return mapped.view(0, mapped.size)
