"""Storage backend protocol for durable key-value state.

Defines the interface every backend implements, so the snapshot store can
swap between in-memory, Redis or SQL storage without changing its callers.
All operations may fail; callers treat a failure as "absent".
"""

from typing import Dict, List, Optional, Protocol


class KeyValueStorage(Protocol):
    """Durable string key-value storage.

    Implementations:
    - MemoryStorage: dict-based, process-local (tests, single process)
    - RedisStorage: redis.asyncio backed
    - SqlStorage: SQLAlchemy async backed
    """

    async def get(self, key: str) -> Optional[str]:
        """Return the stored string, None if absent."""
        ...

    async def set(self, key: str, value: str) -> None:
        """Store or overwrite a value."""
        ...

    async def remove(self, key: str) -> None:
        """Delete a value. No-op if absent."""
        ...

    async def keys(self) -> List[str]:
        """Return every stored key."""
        ...


class MemoryStorage:
    """Dict-based storage. State lives as long as the instance does."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self) -> List[str]:
        return list(self._data)


class NamespacedStorage:
    """View of a shared backend restricted to keys under one prefix.

    Each client device gets its own namespace, so screen keys never collide
    between devices sharing a backend.
    """

    def __init__(self, storage: KeyValueStorage, namespace: str) -> None:
        self.storage = storage
        self.prefix = f"{namespace}:"

    async def get(self, key: str) -> Optional[str]:
        return await self.storage.get(self.prefix + key)

    async def set(self, key: str, value: str) -> None:
        await self.storage.set(self.prefix + key, value)

    async def remove(self, key: str) -> None:
        await self.storage.remove(self.prefix + key)

    async def keys(self) -> List[str]:
        return [k[len(self.prefix):] for k in await self.storage.keys() if k.startswith(self.prefix)]
