from vimkit.cache.range_cache import (
    CACHE_DIR_ENV,
    ByteRangeCache,
    CacheError,
    default_cache_dir,
    make_cache_key,
)

__all__ = [
    "CACHE_DIR_ENV",
    "ByteRangeCache",
    "CacheError",
    "default_cache_dir",
    "make_cache_key",
]
