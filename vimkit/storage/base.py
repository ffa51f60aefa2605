from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable

from vimkit.container.source import ByteSource


class StorageBackend(ABC):
    """Flat key/value byte storage backing the range cache and downloads.

    Keys are relative names; a backend decides how they map onto its
    medium.  Writers must never expose a partially written value.
    """

    @abstractmethod
    def write(self, key: str, data: bytes | memoryview) -> None:
        """Store *data* under *key*, replacing any previous value atomically."""
        ...

    @abstractmethod
    def write_stream(self, key: str, chunks: Iterable[bytes]) -> int:
        """Store the concatenated *chunks* under *key*; return the byte count."""
        ...

    @abstractmethod
    def read(self, key: str) -> bytes: ...

    @abstractmethod
    def open_mapped(self, key: str) -> ByteSource:
        """Open *key* as a read-only memory-mapped arena."""
        ...

    @abstractmethod
    def size(self, key: str) -> int: ...

    @abstractmethod
    def list_keys(self, prefix: str) -> list[str]:
        """Keys starting with *prefix*, in no particular order."""
        ...

    @abstractmethod
    def exists(self, key: str) -> bool: ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove *key*; a missing key is not an error."""
        ...

    @abstractmethod
    def resolve_uri(self, key: str) -> str:
        """``file://`` (or backend-specific) URI of the stored value."""
        ...
