"""Configuration for the vimkit CLI.

Reads a TOML config file into a typed Config dataclass.
Default location: ``~/.config/vimkit/config.toml``.
Override with the ``VIMKIT_CONFIG`` environment variable.

Example::

    [cache]
    dir = "~/.cache/vimkit"

    [store]
    provider = "sql"
    url = "sqlite+aiosqlite:///model.db"

    [import]
    chunk_size = 100
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from vimkit.cache.range_cache import CACHE_DIR_ENV, default_cache_dir
from vimkit.etl.core.pipeline import DEFAULT_CHUNK_SIZE

CONFIG_ENV = "VIMKIT_CONFIG"
DB_URL_ENV = "VIMKIT_DB_URL"
_DEFAULT_CONFIG_DIR = Path("~/.config/vimkit").expanduser()


def _config_path() -> Path:
    env = os.environ.get(CONFIG_ENV)
    if env:
        return Path(env).expanduser()
    return _DEFAULT_CONFIG_DIR / "config.toml"


@dataclass
class Config:
    cache_dir: str = ""

    # Store backend: "memory" (default) or "sql"
    store_provider: str = "memory"
    db_url: str = ""

    chunk_size: int = DEFAULT_CHUNK_SIZE

    @property
    def uses_sql(self) -> bool:
        return self.store_provider == "sql"

    def to_dict(self) -> dict[str, Any]:
        """Convert into the config dict accepted by :meth:`Vim.from_config`."""
        store_config: dict[str, Any] = {}
        if self.uses_sql and self.db_url:
            store_config = {"url": self.db_url}
        return {
            "cache": {"dir": self.cache_dir or str(default_cache_dir())},
            "store": {"provider": self.store_provider, "config": store_config},
            "import": {"chunk_size": self.chunk_size},
        }


def load_config() -> Config:
    """Load config from disk, falling back to defaults + env overrides."""
    path = _config_path()
    cfg = Config()

    if path.exists():
        with open(path, "rb") as f:
            data = tomllib.load(f)
        cache_section = data.get("cache", {})
        store_section = data.get("store", {})
        import_section = data.get("import", {})

        cfg.cache_dir = cache_section.get("dir", cfg.cache_dir)
        cfg.store_provider = store_section.get("provider", cfg.store_provider)
        cfg.db_url = store_section.get("url", cfg.db_url)
        cfg.chunk_size = int(import_section.get("chunk_size", cfg.chunk_size))

    # Environment variables always take precedence
    cfg.cache_dir = os.environ.get(CACHE_DIR_ENV, cfg.cache_dir)
    db_url = os.environ.get(DB_URL_ENV)
    if db_url:
        cfg.db_url = db_url
        cfg.store_provider = "sql"

    return cfg


def config_path_display() -> str:
    return str(_config_path())
