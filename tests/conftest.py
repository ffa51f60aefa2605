from __future__ import annotations

import struct
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path

import numpy as np
import pytest

from vimkit.cache.range_cache import ByteRangeCache
from vimkit.container.decoder import MAGIC, SUPPORTED_VERSION, Container, decode
from vimkit.container.source import ByteSource
from vimkit.storage.disk import DiskStorage
from vimkit.tables.reader import TableSource
from vimkit.tables.strings import StringPool


def build_container(
    entries: Mapping[str, bytes] | Iterable[tuple[str, bytes]],
    *,
    magic: int = MAGIC,
    version: int = SUPPORTED_VERSION,
) -> bytes:
    """Serialise ``(name, payload)`` entries into a container, data in entry order."""
    items = list(entries.items()) if isinstance(entries, Mapping) else list(entries)
    encoded = [name.encode("utf-8") for name, _ in items]
    offset = 16 + sum(4 + len(name) + 16 for name in encoded)

    directory = bytearray(struct.pack("<QII", magic, version, len(items)))
    data = bytearray()
    for name, (_, payload) in zip(encoded, items, strict=True):
        directory += struct.pack("<I", len(name)) + name
        directory += struct.pack("<QQ", offset, offset + len(payload))
        data += payload
        offset += len(payload)
    return bytes(directory + data)


def decode_bytes(data: bytes) -> Container:
    return decode(ByteSource.from_bytes(data))


# ── Columns ──────────────────────────────────────────────────────────


def ints(values: Sequence[int]) -> bytes:
    return np.asarray(values, dtype="<i4").tobytes()


def longs(values: Sequence[int]) -> bytes:
    return np.asarray(values, dtype="<i8").tobytes()


def doubles(values: Sequence[float]) -> bytes:
    return np.asarray(values, dtype="<f8").tobytes()


def floats(values: Sequence[float]) -> bytes:
    return np.asarray(values, dtype="<f4").tobytes()


def flags(values: Sequence[bool]) -> bytes:
    return np.asarray(values, dtype="<u1").tobytes()


class Strings:
    """Builds a NUL-separated string pool, handing out indices."""

    def __init__(self) -> None:
        self.values: list[str] = []
        self._index: dict[str, int] = {}

    def __call__(self, values: Sequence[str | None]) -> bytes:
        return ints([-1 if v is None else self.add(v) for v in values])

    def add(self, value: str) -> int:
        if value not in self._index:
            self._index[value] = len(self.values)
            self.values.append(value)
        return self._index[value]

    def blob(self) -> bytes:
        return b"".join(v.encode("utf-8") + b"\0" for v in self.values)


def table_buffers(tables: Mapping[str, Mapping[str, bytes]]) -> dict[str, bytes]:
    """``{"Element": {"Id:long": ...}}`` -> ``{"table/Element/Id:long": ...}``."""
    return {
        f"table/{table}/{column}": payload
        for table, columns in tables.items()
        for column, payload in columns.items()
    }


def table_source(
    tables: Mapping[str, Mapping[str, bytes]], strings: Strings | None = None
) -> TableSource:
    container = decode_bytes(build_container(table_buffers(tables)))
    pool = None
    if strings is not None:
        pool = StringPool(memoryview(strings.blob()))
    return TableSource.from_container(container, pool)


# ── Sample model ─────────────────────────────────────────────────────


def sample_tables(strings: Strings) -> dict[str, dict[str, bytes]]:
    """Two categories, two families, three family instances.

    Elements reach their family by name only (no ``Family`` index
    column) and carry no level at all.
    """
    return {
        "Category": {
            "Name:string": strings(["Doors", "Walls"]),
        },
        "Family": {
            "Name:string": strings(["Single Flush", "Basic Wall"]),
            "FamilyCategory:index.Category": ints([0, 1]),
            "IsSystemFamily:byte": flags([False, True]),
        },
        "FamilyType": {
            "Name:string": strings(["36x84", "Generic 200mm"]),
            "Family:index": ints([0, 1]),
        },
        "Element": {
            "Id:long": longs([100, 200, 201]),
            "Name:string": strings(["Door A", "Wall A", "Wall B"]),
            "FamilyName:string": strings(["Single Flush", "Basic Wall", "Basic Wall"]),
            "Category:index": ints([0, 1, 1]),
        },
        "FamilyInstance": {
            "FamilyType:index": ints([0, 1, 1]),
            "Element:index": ints([0, 1, 2]),
            "Host:index.Element": ints([-1, -1, 1]),
            "FacingFlipped:byte": flags([False, True, False]),
        },
    }


def geometry_buffers(positions: np.ndarray, indices: Sequence[int]) -> dict[str, bytes]:
    return {
        "meta": b"sample geometry",
        "g3d:vertex:position:0:float32:3": np.asarray(positions, dtype="<f4").tobytes(),
        "g3d:corner:index:0:int32:1": ints(indices),
    }


SAMPLE_POSITIONS = np.array(
    [[0.0, 0.0, 0.0], [2.0, -1.0, 0.5], [1.0, 3.0, -2.0]], dtype="<f4"
)


def build_vim_file(
    *,
    header: str = "vim=1.0.0\ngenerator=tests\n",
    include_geometry: bool = True,
) -> bytes:
    strings = Strings()
    entities = build_container(table_buffers(sample_tables(strings)))
    entries: list[tuple[str, bytes]] = [
        ("header", header.encode("utf-8")),
        ("assets", build_container({"textures/wood.png": b"\x89PNG..."})),
        ("entities", entities),
        ("strings", strings.blob()),
    ]
    if include_geometry:
        entries.append(
            ("geometry", build_container(geometry_buffers(SAMPLE_POSITIONS, [0, 1, 2])))
        )
    return build_container(entries)


@pytest.fixture()
def cache(tmp_path: Path) -> ByteRangeCache:
    return ByteRangeCache(DiskStorage(str(tmp_path / "cache")))


@pytest.fixture()
def vim_file(tmp_path: Path) -> Path:
    path = tmp_path / "sample.vim"
    path.write_bytes(build_vim_file())
    return path


# ── HTTP ─────────────────────────────────────────────────────────────


class FakeResponse:
    def __init__(self, status_code: int, body: bytes = b"", chunk_size: int = 7) -> None:
        self.status_code = status_code
        self.headers = {"Content-Length": str(len(body))}
        self._body = body
        self._chunk_size = chunk_size

    def iter_content(self, chunk_size: int = 1):
        for i in range(0, len(self._body), self._chunk_size):
            yield self._body[i : i + self._chunk_size]

    def __enter__(self) -> FakeResponse:
        return self

    def __exit__(self, *exc: object) -> None:
        pass


class FakeSession:
    """Stands in for ``requests.Session``; replays queued responses."""

    def __init__(self, *responses: FakeResponse) -> None:
        self.responses = list(responses)
        self.requests: list[str] = []

    def get(self, url: str, **kwargs: object) -> FakeResponse:
        self.requests.append(url)
        return self.responses.pop(0)
