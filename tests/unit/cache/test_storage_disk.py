"""Unit tests for DiskStorage."""

from pathlib import Path

import pytest

from vimkit.storage.disk import DiskStorage


class TestDiskStorage:
    def test_write_read(self, tmp_path: Path):
        s = DiskStorage(str(tmp_path / "store"))
        s.write("a/b.bin", b"hello")
        assert s.read("a/b.bin") == b"hello"

    def test_base_dir_created_lazily(self, tmp_path: Path):
        s = DiskStorage(str(tmp_path / "lazy"))
        assert not (tmp_path / "lazy").exists()
        s.write("k", b"v")
        assert (tmp_path / "lazy" / "k").is_file()

    def test_write_replaces_without_leftovers(self, tmp_path: Path):
        s = DiskStorage(str(tmp_path))
        s.write("k", b"first")
        s.write("k", memoryview(b"second"))
        assert s.read("k") == b"second"
        assert [p.name for p in tmp_path.iterdir()] == ["k"]

    def test_write_stream(self, tmp_path: Path):
        s = DiskStorage(str(tmp_path))
        assert s.write_stream("big", [b"ab", b"cd", b"e"]) == 5
        assert s.size("big") == 5

    def test_failed_stream_leaves_no_file(self, tmp_path: Path):
        s = DiskStorage(str(tmp_path))

        def chunks():
            yield b"partial"
            raise RuntimeError("connection dropped")

        with pytest.raises(RuntimeError):
            s.write_stream("broken", chunks())
        assert not s.exists("broken")
        assert list(tmp_path.iterdir()) == []

    def test_open_mapped(self, tmp_path: Path):
        s = DiskStorage(str(tmp_path))
        s.write("m", b"mapped bytes")
        source = s.open_mapped("m")
        assert source.read(0, 6) == b"mapped"

    def test_list_keys_skips_temp_files(self, tmp_path: Path):
        s = DiskStorage(str(tmp_path))
        s.write("abc.one", b"1")
        s.write("abc.two", b"2")
        s.write("xyz", b"3")
        (tmp_path / ".abc.three.tmp").write_bytes(b"partial")
        assert s.list_keys("abc") == ["abc.one", "abc.two"]
        assert s.list_keys("") == ["abc.one", "abc.two", "xyz"]

    def test_list_keys_missing_base(self, tmp_path: Path):
        assert DiskStorage(str(tmp_path / "nope")).list_keys("") == []

    def test_delete(self, tmp_path: Path):
        s = DiskStorage(str(tmp_path))
        s.write("del", b"bye")
        s.delete("del")
        assert not s.exists("del")
        s.delete("del")

    def test_resolve_uri(self, tmp_path: Path):
        s = DiskStorage(str(tmp_path))
        s.write("k", b"v")
        assert s.resolve_uri("k").startswith("file://")
