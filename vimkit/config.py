from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from vimkit.cache.range_cache import ByteRangeCache, default_cache_dir
from vimkit.etl.core.pipeline import DEFAULT_CHUNK_SIZE
from vimkit.storage.base import StorageBackend
from vimkit.storage.disk import DiskStorage
from vimkit.store.base import Store


T = TypeVar("T")


class _Registry(Generic[T]):
    """Lazily-populated factory registry.

    Each backend module registers itself via :meth:`register`.
    :meth:`build` resolves a provider name to a factory, calling
    ``factory.from_config(config)`` if available, otherwise
    ``factory(**config)``.
    """

    def __init__(self, label: str) -> None:
        self._label = label
        self._factories: dict[str, type[T]] = {}
        self._defaults_loaded = False

    def register(self, name: str, cls: type[T]) -> None:
        self._factories[name] = cls

    @property
    def providers(self) -> list[str]:
        self._ensure_defaults()
        return list(self._factories)

    def build(self, provider: str, config: dict[str, Any]) -> T:
        self._ensure_defaults()
        factory = self._factories.get(provider)
        if factory is None:
            raise ValueError(
                f"Unknown {self._label} provider '{provider}'. "
                f"Available: {list(self._factories)}"
            )
        if hasattr(factory, "from_config"):
            return factory.from_config(config)  # type: ignore[return-value]
        return factory(**config)  # type: ignore[return-value]

    def _ensure_defaults(self) -> None:
        if not self._defaults_loaded:
            self._load_defaults()
            self._defaults_loaded = True

    def _load_defaults(self) -> None:
        """Override point: subclasses populate built-in factories here."""


class _StorageRegistry(_Registry[StorageBackend]):
    def _load_defaults(self) -> None:
        self.register("disk", DiskStorage)


class _StoreRegistry(_Registry[Store]):
    def _load_defaults(self) -> None:
        from vimkit.store.memory import InMemoryStore

        self.register("memory", InMemoryStore)

        try:
            from vimkit.store.sql import SQLStore

            self.register("sql", SQLStore)
        except ImportError:
            pass


# Singleton instances
storage_registry = _StorageRegistry("storage")
store_registry = _StoreRegistry("store")


@dataclass(frozen=True)
class ImportSettings:
    chunk_size: int = DEFAULT_CHUNK_SIZE
    max_workers: int | None = None
    limit: int | None = None

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> ImportSettings:
        chunk_size = int(config.get("chunk_size", DEFAULT_CHUNK_SIZE))
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        max_workers = config.get("max_workers")
        limit = config.get("limit")
        return cls(
            chunk_size=chunk_size,
            max_workers=int(max_workers) if max_workers is not None else None,
            limit=int(limit) if limit is not None else None,
        )


def build_cache(cache_cfg: dict[str, Any]) -> ByteRangeCache:
    """Build the byte-range cache from a ``cache`` section.

    ``{"dir": "..."}`` is shorthand for a disk provider rooted there.
    """
    provider = cache_cfg.get("provider", "disk")
    storage_cfg = dict(cache_cfg.get("config", {}))
    if provider == "disk":
        storage_cfg.setdefault("base_path", cache_cfg.get("dir") or str(default_cache_dir()))
    storage = storage_registry.build(provider, storage_cfg)
    if not isinstance(storage, DiskStorage):
        raise ValueError(f"Cache provider '{provider}' must be a local disk backend")
    return ByteRangeCache(storage)


def parse_config(
    config: dict[str, Any],
) -> tuple[ByteRangeCache, Store, ImportSettings]:
    """Parse a user config dict and return (cache, store, import_settings).

    Expected shape::

        {
            "cache": {"dir": "~/.cache/vimkit"},
            "store": {"provider": "sql", "config": {"path": "model.db"}},
            "import": {"chunk_size": 100},
        }

    Every section is optional.  Without a ``store`` key entities go to
    an in-memory store.
    """
    cache = build_cache(config.get("cache", {}))
    store_cfg = config.get("store", {})
    store = store_registry.build(
        store_cfg.get("provider", "memory"),
        store_cfg.get("config", {}),
    )
    settings = ImportSettings.from_config(config.get("import", {}))
    return cache, store, settings
