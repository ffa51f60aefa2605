"""Read-only byte arenas shared by every view decoded from one file."""

from __future__ import annotations

import hashlib
import logging
import mmap
from functools import cached_property
from pathlib import Path

logger = logging.getLogger(__name__)

_HASH_CHUNK_SIZE = 1024 * 1024


class ByteSource:
    """A single long-lived, read-only allocation.

    Wraps either a memory-mapped file or an in-memory buffer.  Every
    :class:`~vimkit.container.decoder.NamedBuffer` and cached view is a
    ``memoryview`` slice over this arena; the underlying mapping is
    released by the interpreter once the last slice is dropped, so the
    arena has no explicit ``close()``.
    """

    def __init__(
        self,
        data: bytes | bytearray | memoryview | mmap.mmap,
        *,
        name: str = "<memory>",
        path: Path | None = None,
    ) -> None:
        self._view = memoryview(data).cast("B").toreadonly()
        self.name = name
        self.path = path

    @classmethod
    def from_path(cls, path: str | Path) -> ByteSource:
        """Memory-map *path* read-only.

        Empty files cannot be mapped and are served from an empty buffer.
        """
        path = Path(path)
        with open(path, "rb") as f:
            size = path.stat().st_size
            if size == 0:
                return cls(b"", name=path.name, path=path)
            mapped = mmap.mmap(f.fileno(), 0, access=mmap.ACCESS_READ)
        logger.debug("Mapped %s (%d bytes)", path, size)
        return cls(mapped, name=path.name, path=path)

    @classmethod
    def from_bytes(cls, data: bytes | bytearray, *, name: str = "<memory>") -> ByteSource:
        return cls(data, name=name)

    # ---- interface ----

    @property
    def size(self) -> int:
        return self._view.nbytes

    def __len__(self) -> int:
        return self.size

    def view(self, start: int, end: int) -> memoryview:
        """Return a non-owning slice of ``[start, end)``."""
        if start < 0 or end < start or end > self.size:
            raise ValueError(
                f"Range [{start}, {end}) is outside {self.name} ({self.size} bytes)"
            )
        return self._view[start:end]

    def read(self, start: int, end: int) -> bytes:
        """Copy ``[start, end)`` into a new ``bytes`` object."""
        return self.view(start, end).tobytes()

    @cached_property
    def content_hash(self) -> str:
        """SHA-256 of the whole arena, computed once in fixed-size chunks."""
        h = hashlib.sha256()
        for offset in range(0, self.size, _HASH_CHUNK_SIZE):
            h.update(self._view[offset : offset + _HASH_CHUNK_SIZE])
        return h.hexdigest()

    def __repr__(self) -> str:
        return f"ByteSource({self.name!r}, size={self.size})"
