from __future__ import annotations

import sys
from pathlib import Path

import pytest

from vimkit.cli.app import main
from vimkit.cli.config import CONFIG_ENV, DB_URL_ENV, Config, load_config
from vimkit.store.sql import sqlite_url


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    monkeypatch.setenv(CONFIG_ENV, str(tmp_path / "config.toml"))
    monkeypatch.setenv("VIMKIT_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.delenv(DB_URL_ENV, raising=False)
    return tmp_path


def _run(monkeypatch: pytest.MonkeyPatch, *argv: str) -> None:
    monkeypatch.setattr(sys, "argv", ["vimkit", *argv])
    main()


# ── Config ───────────────────────────────────────────────────────────


class TestLoadConfig:
    def test_defaults(self, tmp_path: Path):
        cfg = load_config()
        assert cfg.store_provider == "memory"
        assert cfg.cache_dir == str(tmp_path / "cache")
        assert not cfg.uses_sql

    def test_toml_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.delenv("VIMKIT_CACHE_DIR")
        (tmp_path / "config.toml").write_text(
            '[cache]\ndir = "/var/cache/vim"\n\n'
            '[store]\nprovider = "sql"\nurl = "sqlite+aiosqlite:///m.db"\n\n'
            "[import]\nchunk_size = 250\n"
        )
        cfg = load_config()
        assert cfg.cache_dir == "/var/cache/vim"
        assert cfg.uses_sql
        assert cfg.db_url == "sqlite+aiosqlite:///m.db"
        assert cfg.chunk_size == 250

    def test_db_url_env_selects_sql(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv(DB_URL_ENV, "sqlite+aiosqlite:///env.db")
        cfg = load_config()
        assert cfg.store_provider == "sql"
        assert cfg.to_dict()["store"] == {
            "provider": "sql",
            "config": {"url": "sqlite+aiosqlite:///env.db"},
        }

    def test_to_dict_memory(self):
        data = Config(cache_dir="/c", chunk_size=10).to_dict()
        assert data == {
            "cache": {"dir": "/c"},
            "store": {"provider": "memory", "config": {}},
            "import": {"chunk_size": 10},
        }


# ── Commands ─────────────────────────────────────────────────────────


class TestCommands:
    def test_inspect(self, vim_file: Path, monkeypatch, capsys):
        _run(monkeypatch, "inspect", str(vim_file))
        stdout = capsys.readouterr().out
        assert "SHA-256" in stdout
        assert "generator" in stdout
        assert "Vertices:  3" in stdout
        assert "textures/wood.png" in stdout

    def test_tables_with_columns(self, vim_file: Path, monkeypatch, capsys):
        _run(monkeypatch, "tables", str(vim_file), "--columns")
        stdout = capsys.readouterr().out
        assert "FamilyInstance" in stdout
        assert "index -> Element" in stdout

    def test_tree(self, vim_file: Path, monkeypatch, capsys):
        _run(monkeypatch, "tree", str(vim_file))
        stdout = capsys.readouterr().out
        assert "3 instances" in stdout
        assert "└── Door A [100]" in stdout

    def test_tree_search(self, vim_file: Path, monkeypatch, capsys):
        _run(monkeypatch, "tree", str(vim_file), "--search", "Door")
        stdout = capsys.readouterr().out
        assert stdout.splitlines()[0] == "  Doors:  0.80"
        assert "instances" not in stdout

    def test_import_into_sqlite(self, vim_file: Path, tmp_path: Path, monkeypatch, capsys):
        db = tmp_path / "model.db"
        _run(monkeypatch, "import", str(vim_file), "--db", sqlite_url(str(db)))
        stdout = capsys.readouterr().out
        assert "Import finished" in stdout
        assert db.is_file()

    def test_import_in_memory_warns(self, vim_file: Path, monkeypatch, capsys):
        _run(monkeypatch, "import", str(vim_file), "--limit", "1")
        stdout = capsys.readouterr().out
        assert "in memory only" in stdout
        assert "Import finished" in stdout

    def test_load_failure_exits(self, tmp_path: Path, monkeypatch, capsys):
        bad = tmp_path / "bad.vim"
        bad.write_bytes(b"garbage garbage garbage")
        with pytest.raises(SystemExit) as exc_info:
            _run(monkeypatch, "inspect", str(bad))
        assert exc_info.value.code == 1
        captured = capsys.readouterr()
        assert "Could not load" in captured.err
        assert "malformed" in captured.out

    def test_cache_path(self, tmp_path: Path, monkeypatch, capsys):
        _run(monkeypatch, "cache", "path")
        assert capsys.readouterr().out.strip() == str(tmp_path / "cache")

    def test_cache_clear(self, vim_file: Path, tmp_path: Path, monkeypatch, capsys):
        cache_dir = tmp_path / "cache"
        cache_dir.mkdir()
        (cache_dir / "abc.geometry").write_bytes(b"x")
        _run(monkeypatch, "cache", "clear")
        assert "Removed 1 cached file(s)" in capsys.readouterr().out

    def test_config(self, monkeypatch, capsys):
        _run(monkeypatch, "config")
        stdout = capsys.readouterr().out
        assert "Config file" in stdout
        assert "memory" in stdout

    def test_no_command_prints_help(self, monkeypatch, capsys):
        _run(monkeypatch)
        assert "usage: vimkit" in capsys.readouterr().out
