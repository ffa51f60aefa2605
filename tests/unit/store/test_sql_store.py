from __future__ import annotations

import uuid
from collections.abc import AsyncIterator
from pathlib import Path

import pytest
from sqlalchemy import inspect, select

from tests.conftest import Strings, sample_tables, table_source
from vimkit.db.models import Category
from vimkit.etl.core.pipeline import ImportPipeline
from vimkit.etl.core.types import EntityRow
from vimkit.etl.registry import default_pipes
from vimkit.models import ImportRecord, ImportStatus
from vimkit.store.sql import SQLStore, sqlite_url


@pytest.fixture()
async def store(tmp_path: Path) -> AsyncIterator[SQLStore]:
    s = SQLStore(sqlite_url(str(tmp_path / "vim.db")))
    await s.init()
    yield s
    await s.close()


def _category(index: int, name: str, parent: int | None = None) -> EntityRow:
    return EntityRow(
        entity="Category",
        index=index,
        fields={"name": name, "category_type": "Model", "built_in_category": None},
        references={"parent": parent, "material": None},
    )


class TestLifecycle:
    async def test_init_creates_tables(self, store: SQLStore):
        async with store._engine.connect() as conn:
            names = await conn.run_sync(lambda c: inspect(c).get_table_names())
        assert "imports" in names
        assert "elements" in names
        assert "family_instances" in names

    async def test_reset(self, store: SQLStore):
        await store.insert_entities("Category", [_category(0, "Doors")])
        await store.reset()
        assert await store.count_entities("Category") == 0

    async def test_from_config_in_memory(self):
        store = SQLStore.from_config({})
        await store.init()
        try:
            await store.insert_entities("Category", [_category(0, "Doors")])
            assert await store.count_entities("Category") == 1
        finally:
            await store.close()

    async def test_from_config_path(self, tmp_path: Path):
        store = SQLStore.from_config({"path": str(tmp_path / "cfg.db")})
        await store.init()
        await store.close()
        assert (tmp_path / "cfg.db").is_file()


class TestEntities:
    async def test_round_trip(self, store: SQLStore):
        await store.insert_entities(
            "Category", [_category(1, "Walls"), _category(0, "Doors", parent=1)]
        )
        row = await store.get_entity("Category", 0)
        assert row == _category(0, "Doors", parent=1)
        assert [r.index for r in await store.list_entities("Category")] == [0, 1]
        assert len(await store.list_entities("Category", limit=1)) == 1
        assert await store.get_entity("Category", 9) is None

    async def test_rows_get_generated_ids(self, store: SQLStore):
        await store.insert_entities("Category", [_category(0, "Doors"), _category(1, "Walls")])
        async with store._engine.connect() as conn:
            ids = (await conn.execute(select(Category.id))).scalars().all()
        assert len(ids) == 2
        assert len(set(ids)) == 2
        assert all(uuid.UUID(i).version == 4 for i in ids)

    async def test_unknown_entity(self, store: SQLStore):
        with pytest.raises(ValueError):
            await store.count_entities("Spaceship")

    async def test_atomic_rolls_back(self, store: SQLStore):
        with pytest.raises(RuntimeError):
            async with store.atomic():
                await store.insert_entities("Category", [_category(0, "Doors")])
                raise RuntimeError("boom")
        assert await store.count_entities("Category") == 0

        async with store.atomic():
            await store.insert_entities("Category", [_category(0, "Doors")])
        assert await store.count_entities("Category") == 1

    async def test_pipeline_into_sqlite(self, store: SQLStore):
        strings = Strings()
        source = table_source(sample_tables(strings), strings)
        result = await ImportPipeline(default_pipes(), chunk_size=2).run(source, store)

        assert result.completed_units == 12
        assert await store.count_entities("FamilyInstance") == 3
        element = await store.get_entity("Element", 2)
        assert element["element_id"] == 201
        assert element["family"] == 1
        family = await store.get_entity("Family", 1)
        assert family["is_system_family"] is True


class TestImports:
    async def test_crud(self, store: SQLStore):
        record = ImportRecord(source_hash="f" * 64, source_name="model.vim")
        await store.create_import(record)

        record.status = ImportStatus.FAILED.value
        record.error_kind = "malformed"
        record.error_message = "bad magic"
        await store.update_import(record)

        fetched = await store.get_import(record.id)
        assert fetched is not None
        assert fetched.status == "failed"
        assert fetched.error_kind == "malformed"
        assert fetched.source_name == "model.vim"
        assert await store.get_import("missing") is None

    async def test_update_missing_import(self, store: SQLStore):
        with pytest.raises(ValueError):
            await store.update_import(ImportRecord(source_hash="x"))

    async def test_list_filters_by_hash(self, store: SQLStore):
        await store.create_import(ImportRecord(source_hash="a" * 64))
        await store.create_import(ImportRecord(source_hash="b" * 64))
        assert len(await store.list_imports()) == 2
        assert len(await store.list_imports(source_hash="a" * 64)) == 1
