from __future__ import annotations

import dataclasses
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from vimkit.etl.core.types import EntityRow
from vimkit.models import ImportRecord
from vimkit.store.base import Store


class InMemoryStore(Store):
    """Store backed by plain Python dicts.

    Thread-safe within a single asyncio event loop (no concurrent
    mutation).  ``atomic()`` stages entity rows and only appends them
    to the committed set when the block exits cleanly.
    """

    def __init__(self) -> None:
        self._entities: dict[str, list[EntityRow]] = defaultdict(list)
        self._imports: dict[str, ImportRecord] = {}
        self._pending: dict[str, list[EntityRow]] | None = None

    # ── Lifecycle ────────────────────────────────────────────────────

    async def init(self) -> None:
        pass

    async def reset(self) -> None:
        self.__init__()  # type: ignore[misc]

    async def close(self) -> None:
        pass

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        if self._pending is not None:
            yield
            return
        self._pending = defaultdict(list)
        try:
            yield
            for entity, rows in self._pending.items():
                self._entities[entity].extend(rows)
        finally:
            self._pending = None

    # ── Entities ─────────────────────────────────────────────────────

    async def insert_entities(self, entity: str, rows: list[EntityRow]) -> int:
        target = self._pending if self._pending is not None else self._entities
        target[entity].extend(dataclasses.replace(row) for row in rows)
        return len(rows)

    async def count_entities(self, entity: str) -> int:
        return len(self._entities.get(entity, []))

    async def get_entity(self, entity: str, index: int) -> EntityRow | None:
        return next(
            (row for row in self._entities.get(entity, []) if row.index == index),
            None,
        )

    async def list_entities(
        self, entity: str, *, limit: int | None = None
    ) -> list[EntityRow]:
        rows = sorted(self._entities.get(entity, []), key=lambda r: r.index)
        return rows if limit is None else rows[:limit]

    # ── Imports ──────────────────────────────────────────────────────

    async def create_import(self, record: ImportRecord) -> ImportRecord:
        self._imports[record.id] = record
        return record

    async def get_import(self, import_id: str) -> ImportRecord | None:
        return self._imports.get(import_id)

    async def update_import(self, record: ImportRecord) -> None:
        self._imports[record.id] = record

    async def list_imports(self, *, source_hash: str | None = None) -> list[ImportRecord]:
        records = list(self._imports.values())
        if source_hash is not None:
            records = [r for r in records if r.source_hash == source_hash]
        return sorted(records, key=lambda r: r.created_at)
