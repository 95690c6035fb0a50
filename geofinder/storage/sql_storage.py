from typing import List, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from geofinder.crud import CreateData, ReadData, DeleteData


class SqlStorage:
    """Key-value storage on the key_value_store table.

    This layer owns session boundaries; the CRUD helpers stay session-scoped.
    """

    def __init__(self, Session: async_sessionmaker) -> None:
        self.Session: async_sessionmaker = Session

    async def get(self, key: str) -> Optional[str]:
        async with self.Session() as session:
            return await ReadData.read_value(key, session)

    async def set(self, key: str, value: str) -> None:
        async with self.Session() as session:
            success = await CreateData.upsert_value(key, value, session)
            if not success:
                raise RuntimeError(f"Failed to store value for {key}")

    async def remove(self, key: str) -> None:
        async with self.Session() as session:
            await DeleteData.delete_value(key, session)

    async def keys(self) -> List[str]:
        async with self.Session() as session:
            return await ReadData.read_keys(session)
