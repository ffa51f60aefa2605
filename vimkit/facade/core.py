"""Main facade for the vimkit library."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlparse

from vimkit.cache.range_cache import ByteRangeCache
from vimkit.config import ImportSettings, parse_config
from vimkit.container.decoder import Container, NamedBuffer, decode, decode_nested
from vimkit.container.exceptions import MalformedContainerError
from vimkit.container.source import ByteSource
from vimkit.downloader import Downloader
from vimkit.errors import classify_error
from vimkit.etl.core.pipeline import ImportPipeline
from vimkit.etl.core.types import EntityRow, ImportProgress, ProgressSnapshot
from vimkit.etl.registry import Entity, default_pipes
from vimkit.facade.types import ImportSummary, Sections
from vimkit.geometry.assembler import DEFAULT_MIN_ZERO_COPY_BYTES
from vimkit.geometry.geometry import Geometry
from vimkit.models import ImportRecord, ImportStatus
from vimkit.state import (
    DownloadingState,
    ErrorState,
    ImportState,
    InitializingState,
    InvalidTransitionError,
    LoadingState,
    ReadyState,
    import_state_machine,
)
from vimkit.store.base import Store
from vimkit.tables.reader import TableSource
from vimkit.tables.strings import StringPool
from vimkit.tree import Tree

logger = logging.getLogger(__name__)

HEADER = "header"
STRINGS = "strings"
ENTITIES = "entities"
GEOMETRY = "geometry"
ASSETS = "assets"
SECTIONS = (HEADER, ASSETS, ENTITIES, STRINGS, GEOMETRY)


class NotLoadedError(Exception):
    def __init__(self, status: str):
        self.status = status
        self.message = f"File is not ready (status: {status})"
        super().__init__(self.message)


def parse_header(data: bytes | memoryview) -> dict[str, str]:
    """Parse newline-separated ``key=value`` lines; lines without ``=`` are skipped."""
    try:
        text = str(data, "utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedContainerError(
            f"header is not valid UTF-8: {exc.reason}"
        ) from exc
    header: dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition("=")
        if sep and key:
            header[key.strip()] = value.strip()
    return header


def resolve_location(location: str | Path) -> tuple[str, str]:
    """Classify *location* as ``("path", path)`` or ``("url", url)``."""
    if isinstance(location, Path):
        return "path", str(location)
    parsed = urlparse(location)
    if parsed.scheme in ("http", "https"):
        return "url", location
    if parsed.scheme == "file":
        return "path", unquote(parsed.path)
    if parsed.scheme and len(parsed.scheme) > 1:
        raise ValueError(
            f"Unsupported location scheme '{parsed.scheme}'; "
            "use a path, file:// or https://"
        )
    return "path", location


class Vim:
    """Entry point for loading a container file and importing its entities.

    Usage::

        vim = Vim.from_config({"cache": {"dir": "~/.cache/vimkit"}})
        await vim.load("https://example.com/model.vim")
        positions = vim.geometry.positions()

        store = SQLStore(sqlite_url("model.db"))
        await store.init()
        summary = await vim.import_entities(store)

    The load lifecycle is observable through :meth:`subscribe`; listeners
    receive ``(previous, new)`` state pairs.
    """

    def __init__(
        self,
        cache: ByteRangeCache,
        downloader: Downloader | None = None,
        *,
        store: Store | None = None,
        import_settings: ImportSettings | None = None,
        min_zero_copy_bytes: int = DEFAULT_MIN_ZERO_COPY_BYTES,
    ) -> None:
        self._cache = cache
        self._downloader = downloader or Downloader(cache.storage)
        self._store = store
        self._settings = import_settings or ImportSettings()
        self.min_zero_copy_bytes = min_zero_copy_bytes
        self.machine = import_state_machine()
        self.progress = ImportProgress()
        self.location: str | None = None
        self._sections: Sections | None = None
        self._pipeline: ImportPipeline | None = None

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> Vim:
        """Construct a Vim instance from a configuration dict."""
        cache, store, settings = parse_config(config)
        return cls(cache, store=store, import_settings=settings)

    # ── State ────────────────────────────────────────────────────────

    @property
    def state(self) -> ImportState:
        return self.machine.state

    @property
    def status(self) -> str:
        return self.machine.status

    def subscribe(
        self, listener: Callable[[ImportState, ImportState], None]
    ) -> Callable[[], None]:
        return self.machine.subscribe(listener)

    @property
    def store(self) -> Store | None:
        return self._store

    @property
    def cache(self) -> ByteRangeCache:
        return self._cache

    # ── Sections ─────────────────────────────────────────────────────

    def _ready(self) -> Sections:
        if self._sections is None or self.machine.status != "ready":
            raise NotLoadedError(self.machine.status)
        return self._sections

    @property
    def container(self) -> Container:
        return self._ready().container

    @property
    def sha256_hash(self) -> str:
        return self._ready().content_hash

    @property
    def header(self) -> dict[str, str]:
        return self._ready().header

    @property
    def strings(self) -> StringPool | None:
        return self._ready().strings

    @property
    def tables(self) -> TableSource | None:
        return self._ready().tables

    @property
    def geometry(self) -> Geometry | None:
        return self._ready().geometry

    @property
    def assets(self) -> dict[str, NamedBuffer]:
        return self._ready().assets

    # ── Load ─────────────────────────────────────────────────────────

    async def load(self, location: str | Path) -> None:
        """Fetch (if remote) and decode *location*, driving the file lifecycle.

        Failures leave the instance in an ``error`` state carrying the
        error kind, and are re-raised.
        """
        if self.machine.status != "initializing":
            raise InvalidTransitionError(self.machine.status, "loading")
        self.location = str(location)
        try:
            kind, target = resolve_location(location)
            if kind == "url":
                self.machine.advance(DownloadingState(url=target))
                path = await asyncio.to_thread(self._downloader.download, target)
            else:
                path = Path(target).expanduser()
            self.machine.advance(LoadingState(path=str(path)))
            self.progress.start(len(SECTIONS))
            self._sections = await asyncio.to_thread(self._load_sections, path)
            self.machine.advance(ReadyState())
        except (Exception, asyncio.CancelledError) as exc:
            self._fail(exc)
            raise
        logger.info("Loaded %s (%s)", self.location, self._sections.content_hash[:12])

    def _fail(self, exc: BaseException) -> None:
        if self.machine.is_terminal:
            return
        kind = classify_error(exc)
        message = getattr(exc, "message", None) or str(exc) or type(exc).__name__
        logger.error("Loading %s failed (%s): %s", self.location, kind, message)
        self.machine.advance(
            ErrorState(
                kind=kind,
                error_message=message,
                previous_status=self.machine.status,
            )
        )

    def _load_sections(self, path: Path) -> Sections:
        source = ByteSource.from_path(path)
        container = decode(source)
        sections = Sections(container=container, content_hash=source.content_hash)

        header = container.get(HEADER)
        if header is not None:
            sections.header = parse_header(header.view())
        self.progress.advance(1)

        assets = container.get(ASSETS)
        if assets is not None:
            sections.assets = decode_nested(assets).buffers
        self.progress.advance(1)

        # Strings precede entities so string columns resolve on first read.
        strings = container.get(STRINGS)
        if strings is not None:
            sections.strings = StringPool.from_buffer(strings)
        self.progress.advance(1)

        entities = container.get(ENTITIES)
        if entities is not None:
            sections.tables = TableSource.from_container(
                decode_nested(entities), sections.strings
            )
        self.progress.advance(1)

        geometry = container.get(GEOMETRY)
        if geometry is not None:
            sections.geometry = Geometry(
                decode_nested(geometry),
                min_zero_copy_bytes=self.min_zero_copy_bytes,
                cache=self._cache,
                content_hash=sections.content_hash,
            )
        self.progress.advance(1)
        return sections

    # ── Import ───────────────────────────────────────────────────────

    @property
    def pipeline(self) -> ImportPipeline | None:
        """The pipeline of the current or last import, for progress and cancel."""
        return self._pipeline

    def cancel_import(self) -> None:
        if self._pipeline is not None:
            self._pipeline.cancel()

    async def import_entities(
        self,
        store: Store | None = None,
        *,
        chunk_size: int | None = None,
        limit: int | None = None,
        entities: list[Entity] | None = None,
        on_progress: Callable[[ProgressSnapshot], None] | None = None,
    ) -> ImportSummary:
        """Import the entity tables into *store* (default: the configured store).

        An :class:`ImportRecord` tracks the run; it is marked failed and
        the error re-raised when the pipeline fails or is cancelled.
        """
        sections = self._ready()
        store = store or self._store
        if store is None:
            raise ValueError("No store configured; pass one to import_entities()")
        tables = sections.tables
        if tables is None:
            tables = TableSource({}, sections.strings)

        pipeline = ImportPipeline(
            default_pipes(entities),
            chunk_size=chunk_size or self._settings.chunk_size,
            max_workers=self._settings.max_workers,
            limit=limit if limit is not None else self._settings.limit,
        )
        self._pipeline = pipeline
        if on_progress is not None:
            pipeline.on_progress(on_progress)

        record = await store.create_import(
            ImportRecord(
                source_hash=sections.content_hash,
                source_name=self.location or "",
                status=ImportStatus.IMPORTING.value,
            )
        )
        try:
            result = await pipeline.run(tables, store)
        except (Exception, asyncio.CancelledError) as exc:
            snapshot = pipeline.progress.snapshot()
            record.status = ImportStatus.FAILED.value
            record.total_units = snapshot.total_units
            record.completed_units = snapshot.completed_units
            record.error_kind = classify_error(exc).value
            record.error_message = getattr(exc, "message", None) or str(exc)
            await store.update_import(record)
            raise

        record.status = ImportStatus.IMPORTED.value
        record.total_units = result.total_units
        record.completed_units = result.completed_units
        record.entity_counts = dict(result.entity_counts)
        await store.update_import(record)

        return ImportSummary(
            import_id=record.id,
            total_units=result.total_units,
            completed_units=result.completed_units,
            entity_counts=dict(result.entity_counts),
            skipped_tables=list(result.skipped_tables),
        )

    async def model_tree(self, store: Store | None = None) -> Tree:
        """Category > Family > Type > Instance hierarchy of imported instances."""
        store = store or self._store
        if store is None:
            raise ValueError("No store configured; pass one to model_tree()")
        return await build_model_tree(store)

    # ── Cache ────────────────────────────────────────────────────────

    def remove(self) -> int:
        """Delete cached ranges of the loaded file and return to ``initializing``."""
        removed = 0
        if self._sections is not None:
            removed = self._cache.remove(self._sections.content_hash)
        self._sections = None
        self._pipeline = None
        self.progress = ImportProgress()
        self.machine.force(InitializingState())
        return removed


UNKNOWN_LABEL = "Unknown"


async def build_model_tree(store: Store) -> Tree:
    """Build the instance hierarchy from imported entities.

    Each family instance contributes the path ``category / family /
    type / "<element name> [<element id>]"`` with the element's row index
    as the leaf id.  Instances without an element are skipped.
    """

    async def by_index(entity: Entity) -> dict[int, EntityRow]:
        return {row.index: row for row in await store.list_entities(entity)}

    categories = await by_index(Entity.CATEGORY)
    families = await by_index(Entity.FAMILY)
    family_types = await by_index(Entity.FAMILY_TYPE)
    elements = await by_index(Entity.ELEMENT)

    def name_of(row: EntityRow | None) -> str:
        if row is None:
            return UNKNOWN_LABEL
        return row.fields.get("name") or UNKNOWN_LABEL

    def lookup(rows: dict[int, EntityRow], index: int | None) -> EntityRow | None:
        return rows.get(index) if index is not None else None

    paths: list[tuple[list[str], int | None]] = []
    for instance in await store.list_entities(Entity.FAMILY_INSTANCE):
        element_index = instance.references.get("element")
        element = lookup(elements, element_index)
        if element is None:
            continue
        family_type = lookup(family_types, instance.references.get("family_type"))
        family = lookup(
            families,
            family_type.references.get("family") if family_type else None,
        )
        if family is None:
            family = lookup(families, element.references.get("family"))
        category = lookup(
            categories,
            family.references.get("category") if family else None,
        )
        if category is None:
            category = lookup(categories, element.references.get("category"))
        leaf = f"{name_of(element)} [{element.fields.get('element_id')}]"
        paths.append(
            ([name_of(category), name_of(family), name_of(family_type), leaf], element_index)
        )
    return Tree.build(paths)
