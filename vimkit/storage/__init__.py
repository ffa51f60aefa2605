from vimkit.storage.base import StorageBackend
from vimkit.storage.disk import DiskStorage

__all__ = ["DiskStorage", "StorageBackend"]
