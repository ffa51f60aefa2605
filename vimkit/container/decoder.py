"""Decoder for the BFast binary container.

Layout (little-endian)::

    preamble   magic u64 | version u32 | entry count u32
    directory  entry count x { name length u32 | name utf-8 | start u64 | end u64 }
    data       raw bytes addressed by each entry's [start, end)

Offsets are relative to the start of the container, so a container
nested inside another container's buffer decodes the same way.  Decoding
never copies buffer data: every :class:`NamedBuffer` is a view into the
shared :class:`ByteSource`.
"""

from __future__ import annotations

import logging
import struct
from collections.abc import Iterator
from dataclasses import dataclass, field

from vimkit.container.exceptions import (
    BadMagicError,
    MalformedContainerError,
    TruncatedContainerError,
    UnsupportedVersionError,
)
from vimkit.container.source import ByteSource

logger = logging.getLogger(__name__)

MAGIC = 0xBFA5
SUPPORTED_VERSION = 1

_PREAMBLE = struct.Struct("<QII")
_NAME_LENGTH = struct.Struct("<I")
_RANGE = struct.Struct("<QQ")


@dataclass(frozen=True)
class BufferRange:
    """One directory entry, offsets relative to the container start."""

    name: str
    start: int
    end: int

    @property
    def byte_length(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class ContainerHeader:
    magic: int
    version: int
    count: int
    directory: tuple[BufferRange, ...]
    directory_end: int
    """Offset of the first byte after the directory."""


@dataclass(frozen=True)
class NamedBuffer:
    """A named, non-owning view of ``[start, end)`` in *source*.

    ``start`` and ``end`` are absolute offsets into the arena, even for
    buffers of a nested container.
    """

    name: str
    start: int
    end: int
    source: ByteSource = field(repr=False, compare=False)

    @property
    def byte_length(self) -> int:
        return self.end - self.start

    def __len__(self) -> int:
        return self.byte_length

    def view(self) -> memoryview:
        return self.source.view(self.start, self.end)

    def tobytes(self) -> bytes:
        return self.source.read(self.start, self.end)


class Container:
    """Decoded container: the header plus its buffers in directory order."""

    def __init__(
        self,
        header: ContainerHeader,
        buffers: list[NamedBuffer],
        source: ByteSource,
    ) -> None:
        self.header = header
        self.source = source
        self._buffers = {b.name: b for b in buffers}

    @property
    def buffers(self) -> dict[str, NamedBuffer]:
        return dict(self._buffers)

    @property
    def names(self) -> list[str]:
        return list(self._buffers)

    def get(self, name: str) -> NamedBuffer | None:
        return self._buffers.get(name)

    def __getitem__(self, name: str) -> NamedBuffer:
        return self._buffers[name]

    def __contains__(self, name: object) -> bool:
        return name in self._buffers

    def __iter__(self) -> Iterator[NamedBuffer]:
        return iter(self._buffers.values())

    def __len__(self) -> int:
        return len(self._buffers)

    @property
    def total_byte_size(self) -> int:
        return sum(b.byte_length for b in self._buffers.values())

    def buffer_byte_size(self, name: str) -> int:
        """Byte length of *name*, or ``0`` when the buffer is absent."""
        buffer = self._buffers.get(name)
        return buffer.byte_length if buffer is not None else 0

    @property
    def sha256_hash(self) -> str:
        """Content identity of the arena this container was decoded from."""
        return self.source.content_hash

    def __repr__(self) -> str:
        return f"Container({len(self)} buffers, {self.total_byte_size} bytes)"


def decode(source: ByteSource) -> Container:
    """Decode a top-level container spanning all of *source*."""
    return _decode_span(source, 0, source.size)


def decode_nested(buffer: NamedBuffer) -> Container:
    """Decode a container stored inside *buffer*, sharing its arena."""
    return _decode_span(buffer.source, buffer.start, buffer.end)


def _decode_span(source: ByteSource, base: int, limit: int) -> Container:
    length = limit - base
    data = source.view(base, limit)

    if length < _PREAMBLE.size:
        raise TruncatedContainerError("preamble", offset=0, length=length)
    magic, version, count = _PREAMBLE.unpack_from(data, 0)
    if magic != MAGIC:
        raise BadMagicError(magic, MAGIC)
    if version > SUPPORTED_VERSION:
        raise UnsupportedVersionError(version, SUPPORTED_VERSION)

    pos = _PREAMBLE.size
    entries: list[BufferRange] = []
    for i in range(count):
        if pos + _NAME_LENGTH.size > length:
            raise TruncatedContainerError(
                f"directory entry {i} name length", offset=pos, length=length
            )
        (name_length,) = _NAME_LENGTH.unpack_from(data, pos)
        pos += _NAME_LENGTH.size

        if pos + name_length + _RANGE.size > length:
            raise TruncatedContainerError(
                f"directory entry {i}", offset=pos, length=length
            )
        try:
            name = str(data[pos : pos + name_length], "utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedContainerError(
                f"directory entry {i} has a name that is not UTF-8"
            ) from exc
        pos += name_length

        start, end = _RANGE.unpack_from(data, pos)
        pos += _RANGE.size
        entries.append(BufferRange(name, start, end))

    _validate_directory(entries, directory_end=pos, length=length)

    header = ContainerHeader(
        magic=magic,
        version=version,
        count=count,
        directory=tuple(entries),
        directory_end=pos,
    )
    buffers = [
        NamedBuffer(e.name, base + e.start, base + e.end, source) for e in entries
    ]
    logger.debug(
        "Decoded container at offset %d: %d buffers, version %d",
        base,
        count,
        version,
    )
    return Container(header, buffers, source)


def _validate_directory(
    entries: list[BufferRange], *, directory_end: int, length: int
) -> None:
    # Truncation wins over every ordering error.
    for entry in entries:
        if entry.end > length or entry.start > length:
            raise TruncatedContainerError(
                f"buffer {entry.name!r} ends past the source",
                offset=entry.end,
                length=length,
            )

    seen: set[str] = set()
    previous_end = directory_end
    for entry in entries:
        if entry.name in seen:
            raise MalformedContainerError(f"duplicate buffer name {entry.name!r}")
        seen.add(entry.name)
        if entry.start > entry.end:
            raise MalformedContainerError(
                f"buffer {entry.name!r} has start {entry.start} after end {entry.end}"
            )
        if entry.start < directory_end:
            raise MalformedContainerError(
                f"buffer {entry.name!r} starts inside the directory"
            )
        if entry.start < previous_end:
            raise MalformedContainerError(
                f"buffer {entry.name!r} overlaps or precedes the previous buffer"
            )
        previous_end = entry.end
