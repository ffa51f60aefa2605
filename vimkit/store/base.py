from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from types import TracebackType

from vimkit.etl.core.types import EntityRow
from vimkit.models import ImportRecord


class Store(ABC):
    """Abstract sink for imported entities and import records.

    Implementations must override every ``@abstractmethod``.  Writes made
    inside ``atomic()`` are committed together when the block exits
    normally and discarded when it raises or is cancelled.
    """

    # ── Lifecycle ────────────────────────────────────────────────────

    @abstractmethod
    async def init(self) -> None:
        """Create tables / indices (idempotent)."""
        ...

    @abstractmethod
    async def reset(self) -> None:
        """Drop all data and recreate from scratch."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release any held resources (connections, file handles)."""
        ...

    async def __aenter__(self) -> Store:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        """Wrap multiple operations in a single commit.

        The default implementation is a no-op (each operation is
        auto-committed).  Stores that can stage writes override this to
        commit on success and discard on error.
        """
        yield

    # ── Entities ─────────────────────────────────────────────────────

    @abstractmethod
    async def insert_entities(self, entity: str, rows: list[EntityRow]) -> int:
        """Append *rows* of *entity*; returns the number of rows written."""
        ...

    @abstractmethod
    async def count_entities(self, entity: str) -> int:
        """Count the stored rows of *entity*."""
        ...

    @abstractmethod
    async def get_entity(self, entity: str, index: int) -> EntityRow | None:
        """Return the row of *entity* imported from source row *index*, or ``None``."""
        ...

    @abstractmethod
    async def list_entities(
        self, entity: str, *, limit: int | None = None
    ) -> list[EntityRow]:
        """Return rows of *entity* ordered by source row index."""
        ...

    # ── Imports ──────────────────────────────────────────────────────

    @abstractmethod
    async def create_import(self, record: ImportRecord) -> ImportRecord:
        """Persist a new import record and return it."""
        ...

    @abstractmethod
    async def get_import(self, import_id: str) -> ImportRecord | None:
        """Return an import record by ID, or ``None``."""
        ...

    @abstractmethod
    async def update_import(self, record: ImportRecord) -> None:
        """Persist changes to an existing import record."""
        ...

    @abstractmethod
    async def list_imports(self, *, source_hash: str | None = None) -> list[ImportRecord]:
        """Return import records, optionally filtered by source hash."""
        ...
