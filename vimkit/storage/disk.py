from __future__ import annotations

import os
import tempfile
from collections.abc import Iterable
from pathlib import Path

from vimkit.container.source import ByteSource
from vimkit.storage.base import StorageBackend


class DiskStorage(StorageBackend):
    """Local filesystem storage backend.

    The base directory is created on the first write rather than at
    construction.  Writes go to a temporary file in the target directory
    and are renamed into place, so readers never observe a partial value.
    """

    def __init__(self, base_path: str) -> None:
        self._base = Path(base_path).expanduser()

    @property
    def base_path(self) -> Path:
        return self._base

    def _resolve(self, key: str) -> Path:
        return self._base / key

    def _replace_from_chunks(self, path: Path, chunks: Iterable[bytes | memoryview]) -> int:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        written = 0
        try:
            with os.fdopen(fd, "wb") as f:
                for chunk in chunks:
                    f.write(chunk)
                    written += len(chunk)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        return written

    # ---- interface ----

    def write(self, key: str, data: bytes | memoryview) -> None:
        self._replace_from_chunks(self._resolve(key), [data])

    def write_stream(self, key: str, chunks: Iterable[bytes]) -> int:
        return self._replace_from_chunks(self._resolve(key), chunks)

    def read(self, key: str) -> bytes:
        return self._resolve(key).read_bytes()

    def open_mapped(self, key: str) -> ByteSource:
        return ByteSource.from_path(self._resolve(key))

    def size(self, key: str) -> int:
        return self._resolve(key).stat().st_size

    def list_keys(self, prefix: str) -> list[str]:
        if not self._base.is_dir():
            return []
        prefix_path = self._resolve(prefix)
        if prefix_path.is_file():
            return [prefix]
        if prefix_path.is_dir():
            root, name_prefix = prefix_path, ""
        else:
            root, name_prefix = prefix_path.parent, prefix_path.name
        if not root.is_dir():
            return []
        keys: list[str] = []
        for p in root.rglob("*"):
            if not p.is_file() or p.name.startswith("."):
                continue
            rel = p.relative_to(root)
            if name_prefix and not rel.parts[0].startswith(name_prefix):
                continue
            keys.append(str(p.relative_to(self._base)))
        return sorted(keys)

    def exists(self, key: str) -> bool:
        return self._resolve(key).exists()

    def delete(self, key: str) -> None:
        path = self._resolve(key)
        if path.is_file():
            path.unlink()

    def resolve_uri(self, key: str) -> str:
        return self._resolve(key).resolve().as_uri()
