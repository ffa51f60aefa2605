from vimkit.store.base import Store
from vimkit.store.memory import InMemoryStore

__all__ = ["InMemoryStore", "Store"]
