"""Storage package for flashdeck.

Key-value backends plus the JSON document codec for the application state.
"""

from .kv_store import DuckDBKeyValueStore, KeyValueStore, MemoryKeyValueStore
from .persistence import StatePersistence

__all__ = [
    "DuckDBKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "StatePersistence",
]
