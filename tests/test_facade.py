from __future__ import annotations

import hashlib
from pathlib import Path

import numpy as np
import pytest

from tests.conftest import (
    SAMPLE_POSITIONS,
    FakeResponse,
    FakeSession,
    build_container,
    build_vim_file,
)
from vimkit import NotLoadedError, Vim
from vimkit.cache import ByteRangeCache
from vimkit.container import DecodeError, MalformedContainerError
from vimkit.downloader import Downloader
from vimkit.errors import ErrorKind
from vimkit.etl.core import EntityRow, ImportCancelledError, StoreWriteFailedError
from vimkit.etl.registry import Entity
from vimkit.models import ImportStatus
from vimkit.state import InvalidTransitionError
from vimkit.store import InMemoryStore


class BrokenStore(InMemoryStore):
    async def insert_entities(self, entity: str, rows: list[EntityRow]) -> int:
        raise OSError("connection reset")


def _track(vim: Vim) -> list[str]:
    statuses: list[str] = []
    vim.subscribe(lambda _prev, new: statuses.append(new.status))
    return statuses


@pytest.fixture()
def vim(cache: ByteRangeCache) -> Vim:
    return Vim(cache, store=InMemoryStore())


@pytest.fixture()
async def loaded(vim: Vim, vim_file: Path) -> Vim:
    await vim.load(vim_file)
    return vim


# ── Load ─────────────────────────────────────────────────────────────


class TestLoad:
    async def test_local_file(self, vim: Vim, vim_file: Path):
        statuses = _track(vim)
        await vim.load(vim_file)

        assert statuses == ["loading", "ready"]
        assert vim.header == {"vim": "1.0.0", "generator": "tests"}
        assert vim.sha256_hash == hashlib.sha256(vim_file.read_bytes()).hexdigest()
        assert vim.container.names == ["header", "assets", "entities", "strings", "geometry"]
        assert vim.progress.is_finished
        assert vim.progress.total_units == 5

    async def test_sections(self, loaded: Vim):
        assert "Element" in loaded.tables
        assert loaded.tables.read("Category").column("Name").tolist() == ["Doors", "Walls"]
        assert loaded.strings is not None
        np.testing.assert_array_equal(loaded.geometry.positions(), SAMPLE_POSITIONS)
        assert loaded.geometry.meta == "sample geometry"
        assert list(loaded.assets) == ["textures/wood.png"]

    async def test_file_uri(self, vim: Vim, vim_file: Path):
        await vim.load(vim_file.as_uri())
        assert vim.status == "ready"

    async def test_string_path(self, vim: Vim, vim_file: Path):
        await vim.load(str(vim_file))
        assert vim.status == "ready"

    async def test_without_geometry(self, vim: Vim, tmp_path: Path):
        path = tmp_path / "no-geometry.vim"
        path.write_bytes(build_vim_file(include_geometry=False))
        await vim.load(path)
        assert vim.geometry is None
        assert vim.progress.is_finished

    async def test_url_goes_through_download(self, cache: ByteRangeCache):
        session = FakeSession(FakeResponse(200, build_vim_file()))
        vim = Vim(cache, Downloader(cache.storage, session=session))
        statuses = _track(vim)

        await vim.load("https://example.com/house.vim")

        assert statuses == ["downloading", "loading", "ready"]
        assert session.requests == ["https://example.com/house.vim"]
        assert vim.header["generator"] == "tests"

    async def test_sections_before_load(self, vim: Vim):
        with pytest.raises(NotLoadedError) as exc_info:
            _ = vim.geometry
        assert exc_info.value.status == "initializing"

    async def test_load_twice(self, loaded: Vim, vim_file: Path):
        with pytest.raises(InvalidTransitionError):
            await loaded.load(vim_file)


class TestLoadErrors:
    async def test_malformed_file(self, vim: Vim, tmp_path: Path):
        path = tmp_path / "bad.vim"
        path.write_bytes(b"this is not a container")

        with pytest.raises(DecodeError):
            await vim.load(path)

        assert vim.status == "error"
        assert vim.state.kind is ErrorKind.MALFORMED
        assert vim.state.previous_status == "loading"
        assert not vim.state.retryable

    async def test_header_not_utf8_is_malformed(self, vim: Vim, tmp_path: Path):
        path = tmp_path / "bad-header.vim"
        path.write_bytes(build_container([("header", b"\xff\xfe=bad")]))

        with pytest.raises(MalformedContainerError):
            await vim.load(path)

        assert vim.state.kind is ErrorKind.MALFORMED
        assert not vim.state.retryable

    async def test_missing_file_is_retryable(self, vim: Vim, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            await vim.load(tmp_path / "missing.vim")
        assert vim.state.kind is ErrorKind.TRANSIENT_IO
        assert vim.state.retryable

    async def test_unsupported_scheme(self, vim: Vim):
        with pytest.raises(ValueError, match="ftp"):
            await vim.load("ftp://example.com/house.vim")
        assert vim.state.previous_status == "initializing"

    async def test_remove_after_error_allows_retry(self, vim: Vim, vim_file: Path):
        with pytest.raises(ValueError):
            await vim.load("ftp://example.com/house.vim")
        vim.remove()
        await vim.load(vim_file)
        assert vim.status == "ready"


# ── Import ───────────────────────────────────────────────────────────


class TestImport:
    async def test_import_records_outcome(self, loaded: Vim):
        summary = await loaded.import_entities(chunk_size=2)

        assert summary.entity_counts["Element"] == 3
        assert summary.entities_created == 12
        assert summary.completed_units == summary.total_units == 12
        assert "Level" in summary.skipped_tables

        record = await loaded.store.get_import(summary.import_id)
        assert record.status == ImportStatus.IMPORTED.value
        assert record.source_hash == loaded.sha256_hash
        assert record.entity_counts == summary.entity_counts

    async def test_import_subset_with_limit(self, loaded: Vim):
        summary = await loaded.import_entities(entities=[Entity.ELEMENT], limit=2)
        assert summary.entity_counts == {"Element": 2}

    async def test_progress_callback(self, loaded: Vim):
        seen: list[float] = []
        await loaded.import_entities(
            chunk_size=1, on_progress=lambda s: seen.append(s.fraction_completed)
        )
        assert len(seen) == 12
        assert seen[-1] == 1.0
        assert loaded.pipeline.progress.is_finished

    async def test_cancel_marks_record(self, loaded: Vim):
        def cancel_early(snapshot) -> None:
            if snapshot.completed_units >= 2:
                loaded.cancel_import()

        with pytest.raises(ImportCancelledError):
            await loaded.import_entities(chunk_size=1, on_progress=cancel_early)

        (record,) = await loaded.store.list_imports()
        assert record.status == ImportStatus.FAILED.value
        assert record.error_kind == "cancelled"
        assert record.completed_units == 2

    async def test_store_failure_marks_record(self, loaded: Vim):
        store = BrokenStore()
        with pytest.raises(StoreWriteFailedError):
            await loaded.import_entities(store)

        (record,) = await store.list_imports()
        assert record.status == ImportStatus.FAILED.value
        assert record.error_kind == "transient_io"
        assert "connection reset" in record.error_message

    async def test_import_requires_store(self, cache: ByteRangeCache, vim_file: Path):
        vim = Vim(cache)
        await vim.load(vim_file)
        with pytest.raises(ValueError, match="No store"):
            await vim.import_entities()

    async def test_import_before_load(self, vim: Vim):
        with pytest.raises(NotLoadedError):
            await vim.import_entities()


# ── Tree & cache ─────────────────────────────────────────────────────


class TestModelTree:
    async def test_category_family_type_instance(self, loaded: Vim):
        await loaded.import_entities()
        tree = await loaded.model_tree()

        assert [c.name for c in tree.root.children] == ["Doors", "Walls"]
        doors = tree.root.child("Doors")
        door = doors.child("Single Flush").child("36x84").child("Door A [100]")
        assert door.id == 0
        assert doors.ids == {0}
        assert tree.root.child("Walls").ids == {1, 2}
        assert tree.root.child("Generic 200mm").child("Wall B [201]").id == 2

    async def test_empty_store(self, loaded: Vim):
        tree = await loaded.model_tree(InMemoryStore())
        assert tree.root.children == []


class TestRemove:
    async def test_remove_clears_cache_and_resets(self, cache: ByteRangeCache, vim_file: Path):
        vim = Vim(cache, min_zero_copy_bytes=16)
        await vim.load(vim_file)
        content_hash = vim.sha256_hash

        assert vim.remove() >= 1
        assert cache.storage.list_keys(content_hash) == []
        assert vim.status == "initializing"
        assert vim.progress.total_units == 0
        with pytest.raises(NotLoadedError):
            _ = vim.header

    async def test_from_config(self, tmp_path: Path, vim_file: Path):
        vim = Vim.from_config({"cache": {"dir": str(tmp_path / "c")}})
        assert isinstance(vim.store, InMemoryStore)
        assert vim.cache.directory == tmp_path / "c"
        await vim.load(vim_file)
        summary = await vim.import_entities()
        assert summary.entities_created == 12
