"""Chunked, cancellable import of entity tables into a store.

The pipeline is a single asyncio task.  Tables are parsed concurrently
on a small thread pool, then written one table at a time in chunks of
``chunk_size`` rows, each chunk inside its own ``store.atomic()``
transaction.  Progress advances once per committed chunk.
"""

from __future__ import annotations

import asyncio
import logging
import os
import threading
from collections.abc import AsyncIterator, Callable, Sequence

from vimkit.errors import classify_error
from vimkit.etl.core.exceptions import (
    ImportCancelledError,
    ReferenceMismatch,
    ReferenceTypeMismatchError,
    StoreWriteFailedError,
)
from vimkit.etl.core.pipe import EntityPipe
from vimkit.etl.core.resolver import ReferenceResolver
from vimkit.etl.core.states import (
    FailedState,
    FinishedState,
    PipelineState,
    ReadingTablesState,
    ResolvingReferencesState,
    WritingEntitiesState,
    pipeline_state_machine,
)
from vimkit.etl.core.types import ImportProgress, ImportResult, ProgressSnapshot
from vimkit.store.base import Store
from vimkit.tables.reader import Table, TableSource

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 100
MAX_DEFAULT_WORKERS = 4


def default_max_workers() -> int:
    return max(1, min(os.cpu_count() or 1, MAX_DEFAULT_WORKERS))


class ImportPipeline:
    """Import every pipe whose table is present in the source.

    Usage::

        pipeline = ImportPipeline(default_pipes(), chunk_size=100)
        result = await pipeline.run(tables, store)

    or, to observe progress::

        async for snapshot in pipeline.progress_updates(tables, store):
            print(f"{snapshot.fraction_completed:.0%}")
        result = pipeline.result
    """

    def __init__(
        self,
        pipes: Sequence[EntityPipe],
        *,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_workers: int | None = None,
        limit: int | None = None,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self.pipes = list(pipes)
        self.chunk_size = chunk_size
        self.max_workers = max_workers or default_max_workers()
        self.limit = limit
        self.progress = ImportProgress()
        self.machine = pipeline_state_machine()
        self.result: ImportResult | None = None
        self._cancelled = threading.Event()
        self._progress_listeners: list[Callable[[ProgressSnapshot], None]] = []

    # ── Observation / control ────────────────────────────────────────

    @property
    def state(self) -> PipelineState:
        return self.machine.state

    def cancel(self) -> None:
        """Request cancellation; honoured at the next chunk or table boundary."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def on_progress(
        self, listener: Callable[[ProgressSnapshot], None]
    ) -> Callable[[], None]:
        """Call *listener* after every committed chunk; returns an unsubscriber."""
        self._progress_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._progress_listeners:
                self._progress_listeners.remove(listener)

        return unsubscribe

    async def progress_updates(
        self, source: TableSource, store: Store
    ) -> AsyncIterator[ProgressSnapshot]:
        """Run the import, yielding a snapshot after every committed chunk.

        The final :class:`ImportResult` is left on :attr:`result`; import
        errors propagate out of the iteration.
        """
        queue: asyncio.Queue[ProgressSnapshot | None] = asyncio.Queue()
        unsubscribe = self.on_progress(queue.put_nowait)
        task = asyncio.create_task(self.run(source, store))
        task.add_done_callback(lambda _: queue.put_nowait(None))
        try:
            while (snapshot := await queue.get()) is not None:
                yield snapshot
            await task
        finally:
            unsubscribe()
            if not task.done():
                task.cancel()

    # ── Run ──────────────────────────────────────────────────────────

    async def run(self, source: TableSource, store: Store) -> ImportResult:
        result = ImportResult()
        try:
            pipes = [p for p in self.pipes if p.table in source]
            result.skipped_tables = [p.table for p in self.pipes if p.table not in source]
            for name in result.skipped_tables:
                logger.info("Table %s not present in source, skipping", name)

            tables = await self._read_tables(source, pipes)
            total = sum(self._row_limit(tables[p.table]) for p in pipes)
            self.progress.start(total)
            result.total_units = total
            self.machine.advance(ResolvingReferencesState(total_units=total))
            self._check_references(pipes, tables)

            for pipe in pipes:
                self._raise_if_cancelled()
                self.machine.advance(WritingEntitiesState(entity=pipe.entity))
                written = await self._write_table(pipe, tables, store)
                result.entity_counts[pipe.entity] = written

            result.completed_units = self.progress.completed_units
            self.machine.advance(FinishedState(completed_units=result.completed_units))
            logger.info(
                "Import finished: %d rows across %d tables",
                result.completed_units,
                len(pipes),
            )
        except (Exception, asyncio.CancelledError) as exc:
            self._fail(exc)
            raise
        self.result = result
        return result

    def _fail(self, exc: BaseException) -> None:
        if self.machine.is_terminal:
            return
        kind = classify_error(exc)
        message = getattr(exc, "message", None) or str(exc) or type(exc).__name__
        logger.error("Import failed (%s): %s", kind, message)
        self.machine.advance(
            FailedState(
                kind=kind,
                error_message=message,
                previous_status=self.machine.status,
            )
        )

    def _row_limit(self, table: Table) -> int:
        if self.limit is None:
            return table.row_count
        return min(table.row_count, self.limit)

    def _raise_if_cancelled(self) -> None:
        if self._cancelled.is_set():
            snapshot = self.progress.snapshot()
            raise ImportCancelledError(snapshot.completed_units, snapshot.total_units)

    async def _read_tables(
        self, source: TableSource, pipes: list[EntityPipe]
    ) -> dict[str, Table]:
        names: dict[str, None] = {}
        for pipe in pipes:
            for name in pipe.required_tables():
                if name in source:
                    names.setdefault(name, None)
        for pipe in pipes:
            for ref in pipe.references:
                if ref.target in source:
                    names.setdefault(ref.target, None)

        self.machine.advance(ReadingTablesState(tables=list(names)))
        semaphore = asyncio.Semaphore(self.max_workers)

        async def read(name: str) -> Table:
            async with semaphore:
                return await asyncio.to_thread(source.read, name)

        tables = await asyncio.gather(*(read(name) for name in names))
        logger.info("Read %d tables on %d workers", len(tables), self.max_workers)
        return {table.name: table for table in tables}

    def _check_references(
        self, pipes: list[EntityPipe], tables: dict[str, Table]
    ) -> None:
        mismatches: list[ReferenceMismatch] = []
        for pipe in pipes:
            mismatches.extend(pipe.check_references(tables[pipe.table]))
        if mismatches:
            raise ReferenceTypeMismatchError(mismatches)

    async def _write_table(
        self,
        pipe: EntityPipe,
        tables: dict[str, Table],
        store: Store,
    ) -> int:
        table = tables[pipe.table]
        stop = self._row_limit(table)
        resolver = ReferenceResolver(pipe, table, tables)
        written = 0

        for chunk_start in range(0, stop, self.chunk_size):
            self._raise_if_cancelled()
            chunk_stop = min(chunk_start + self.chunk_size, stop)
            rows = list(pipe.run(table, resolver, chunk_start, chunk_stop))
            try:
                async with store.atomic():
                    await store.insert_entities(pipe.entity, rows)
            except Exception as exc:
                raise StoreWriteFailedError(pipe.entity, chunk_start, str(exc)) from exc

            written += len(rows)
            snapshot = self.progress.advance(len(rows))
            logger.debug(
                "%s: committed rows %d-%d (%.0f%%)",
                pipe.entity,
                chunk_start,
                chunk_stop - 1,
                snapshot.fraction_completed * 100,
            )
            for listener in list(self._progress_listeners):
                listener(snapshot)
            await asyncio.sleep(0)

        logger.info("Imported %d %s rows", written, pipe.entity)
        return written
