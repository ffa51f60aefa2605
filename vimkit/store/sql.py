from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from vimkit.db.models import ENTITY_MODELS, Base, EntityMixin
from vimkit.db.models import ImportRecord as OrmImportRecord
from vimkit.etl.core.types import EntityRow
from vimkit.etl.registry import get_pipe_class
from vimkit.models import ImportRecord
from vimkit.store.base import Store

logger = logging.getLogger(__name__)

DEFAULT_URL = "sqlite+aiosqlite:///:memory:"


def sqlite_url(path: str) -> str:
    return f"sqlite+aiosqlite:///{path}"


class SQLStore(Store):
    """Store backed by any SQLAlchemy async engine (SQLite via aiosqlite by default).

    Wraps the ORM models in :mod:`vimkit.db.models` and translates
    to/from :class:`EntityRow` and :class:`ImportRecord` at the boundary.
    """

    def __init__(self, url: str = DEFAULT_URL, *, echo: bool = False) -> None:
        kwargs: dict[str, Any] = {}
        if url.startswith("sqlite") and ":memory:" in url:
            # One shared connection, otherwise every pooled connection
            # would open its own empty database.
            kwargs["poolclass"] = StaticPool
        self._engine = create_async_engine(url, echo=echo, **kwargs)
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)
        self._scoped_session: AsyncSession | None = None

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> SQLStore:
        if config.get("url"):
            return cls(config["url"], echo=bool(config.get("echo", False)))
        if config.get("path"):
            return cls(sqlite_url(config["path"]), echo=bool(config.get("echo", False)))
        return cls(echo=bool(config.get("echo", False)))

    @asynccontextmanager
    async def _auto_session(self) -> AsyncIterator[AsyncSession]:
        """Yield the scoped session if inside ``atomic()``, else a fresh
        auto-committing session that is closed after use."""
        if self._scoped_session is not None:
            yield self._scoped_session
            return
        session = self._session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    # ── Lifecycle ────────────────────────────────────────────────────

    async def init(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def reset(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await self.init()

    async def close(self) -> None:
        await self._engine.dispose()

    @asynccontextmanager
    async def atomic(self) -> AsyncIterator[None]:
        session = self._session_factory()
        self._scoped_session = session
        try:
            yield
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
            self._scoped_session = None

    # ── Entities ─────────────────────────────────────────────────────

    @staticmethod
    def _model(entity: str) -> type[EntityMixin]:
        try:
            return ENTITY_MODELS[entity]
        except KeyError:
            raise ValueError(f"Unknown entity {entity!r}") from None

    @staticmethod
    def _to_row(entity: str, obj: EntityMixin) -> EntityRow:
        pipe = get_pipe_class(entity)
        return EntityRow(
            entity=entity,
            index=obj.row_index,
            fields={name: getattr(obj, name) for name in pipe.field_names()},
            references={
                name: getattr(obj, f"{name}_index") for name in pipe.reference_fields()
            },
        )

    async def insert_entities(self, entity: str, rows: list[EntityRow]) -> int:
        model = self._model(entity)
        async with self._auto_session() as s:
            s.add_all(
                model(
                    row_index=row.index,
                    **row.fields,
                    **{f"{name}_index": value for name, value in row.references.items()},
                )
                for row in rows
            )
            await s.flush()
        return len(rows)

    async def count_entities(self, entity: str) -> int:
        model = self._model(entity)
        async with self._auto_session() as s:
            result = await s.execute(select(func.count()).select_from(model))
            return result.scalar_one()

    async def get_entity(self, entity: str, index: int) -> EntityRow | None:
        model = self._model(entity)
        async with self._auto_session() as s:
            result = await s.execute(
                select(model).where(model.row_index == index).limit(1)
            )
            obj = result.scalar_one_or_none()
            return self._to_row(entity, obj) if obj is not None else None

    async def list_entities(
        self, entity: str, *, limit: int | None = None
    ) -> list[EntityRow]:
        model = self._model(entity)
        stmt = select(model).order_by(model.row_index)
        if limit is not None:
            stmt = stmt.limit(limit)
        async with self._auto_session() as s:
            result = await s.execute(stmt)
            return [self._to_row(entity, obj) for obj in result.scalars()]

    # ── Imports ──────────────────────────────────────────────────────

    @staticmethod
    def _to_import(row: OrmImportRecord) -> ImportRecord:
        return ImportRecord(
            id=row.id,
            source_hash=row.source_hash,
            source_name=row.source_name,
            status=row.status,
            total_units=row.total_units,
            completed_units=row.completed_units,
            entity_counts=dict(row.entity_counts or {}),
            error_kind=row.error_kind,
            error_message=row.error_message,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    async def create_import(self, record: ImportRecord) -> ImportRecord:
        async with self._auto_session() as s:
            s.add(
                OrmImportRecord(
                    id=record.id,
                    source_hash=record.source_hash,
                    source_name=record.source_name,
                    status=record.status,
                    total_units=record.total_units,
                    completed_units=record.completed_units,
                    entity_counts=dict(record.entity_counts),
                    error_kind=record.error_kind,
                    error_message=record.error_message,
                    created_at=record.created_at,
                    updated_at=record.updated_at,
                )
            )
        return record

    async def get_import(self, import_id: str) -> ImportRecord | None:
        async with self._auto_session() as s:
            row = await s.get(OrmImportRecord, import_id)
            return self._to_import(row) if row is not None else None

    async def update_import(self, record: ImportRecord) -> None:
        async with self._auto_session() as s:
            row = await s.get(OrmImportRecord, record.id)
            if row is None:
                raise ValueError(f"Import {record.id} not found")
            row.status = record.status
            row.total_units = record.total_units
            row.completed_units = record.completed_units
            row.entity_counts = dict(record.entity_counts)
            row.error_kind = record.error_kind
            row.error_message = record.error_message

    async def list_imports(self, *, source_hash: str | None = None) -> list[ImportRecord]:
        stmt = select(OrmImportRecord).order_by(OrmImportRecord.created_at)
        if source_hash is not None:
            stmt = stmt.where(OrmImportRecord.source_hash == source_hash)
        async with self._auto_session() as s:
            result = await s.execute(stmt)
            return [self._to_import(row) for row in result.scalars()]
