from __future__ import annotations

from vimkit.tables import StringPool


def _pool(blob: bytes) -> StringPool:
    return StringPool(memoryview(blob))


class TestStringPool:
    def test_trailing_nul_terminates(self):
        pool = _pool(b"alpha\0beta\0")
        assert len(pool) == 2
        assert pool[0] == "alpha"
        assert pool[1] == "beta"

    def test_missing_trailing_nul(self):
        pool = _pool(b"alpha\0beta")
        assert len(pool) == 2
        assert pool[1] == "beta"

    def test_empty_strings_keep_their_index(self):
        pool = _pool(b"a\0\0c\0")
        assert [pool[i] for i in range(len(pool))] == ["a", "", "c"]

    def test_sentinel_and_out_of_range(self):
        pool = _pool(b"only\0")
        assert pool.get(-1) is None
        assert pool.get(1) is None
        assert pool.get(99) is None

    def test_empty_blob(self):
        pool = _pool(b"")
        assert len(pool) == 0
        assert pool.get(0) is None

    def test_utf8(self):
        pool = _pool("Türe\0壁\0".encode())
        assert pool[0] == "Türe"
        assert pool[1] == "壁"

    def test_decoded_value_is_reused(self):
        pool = _pool(b"same\0")
        assert pool[0] is pool[0]
