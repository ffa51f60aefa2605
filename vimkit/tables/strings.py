from __future__ import annotations

import numpy as np

from vimkit.container.decoder import NamedBuffer

_SEPARATOR = 0


class StringPool:
    """Shared NUL-separated UTF-8 string blob.

    Slice boundaries are located once with a single vectorised scan; each
    string is decoded on first access.  A trailing NUL terminates the last
    string, and empty strings between consecutive NULs keep their index.
    """

    def __init__(self, blob: memoryview) -> None:
        self._blob = blob
        raw = np.frombuffer(blob, dtype=np.uint8) if blob.nbytes else np.empty(0, np.uint8)
        ends = np.flatnonzero(raw == _SEPARATOR)
        if raw.size and (ends.size == 0 or ends[-1] != raw.size - 1):
            ends = np.append(ends, raw.size)
        starts = np.concatenate(([0], ends[:-1] + 1)) if ends.size else ends
        self._starts = starts.astype(np.int64)
        self._ends = ends.astype(np.int64)
        self._decoded: dict[int, str] = {}

    @classmethod
    def from_buffer(cls, buffer: NamedBuffer) -> StringPool:
        return cls(buffer.view())

    def __len__(self) -> int:
        return int(self._ends.size)

    def get(self, index: int) -> str | None:
        """Return the string at *index*, or ``None`` for ``-1``/out of range."""
        if index < 0 or index >= len(self):
            return None
        value = self._decoded.get(index)
        if value is None:
            start, end = int(self._starts[index]), int(self._ends[index])
            value = str(self._blob[start:end], "utf-8", "replace")
            self._decoded[index] = value
        return value

    def __getitem__(self, index: int) -> str | None:
        return self.get(index)
