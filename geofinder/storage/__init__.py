from .backend import KeyValueStorage, MemoryStorage, NamespacedStorage
from .snapshot_store import SnapshotStore, now_ms

__all__ = [
    "KeyValueStorage",
    "MemoryStorage",
    "NamespacedStorage",
    "SnapshotStore",
    "now_ms",
]
