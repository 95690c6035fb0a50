from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession
from sqlalchemy.exc import IntegrityError
from sqlalchemy import select, delete, desc
from typing import List
import logging
from uuid import UUID

from geofinder.models.schemas import Base, KeyValueEntry, GameSessionRecord, ScoreRecord

logging.getLogger("aiosqlite").setLevel(logging.WARNING)


class CreateData:
    @staticmethod
    async def create_table(engine: AsyncEngine) -> None:
        """Create tables if not exists"""
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except IntegrityError as e:
            logging.warning(f"Table already exists or other integrity error: {e}")

    @staticmethod
    async def upsert_value(key: str, value: str, session: AsyncSession) -> bool:
        """Insert or overwrite the value stored under key

        Args:
            key (str): Storage key
            value (str): Serialized value
            session (AsyncSession): AsyncSession object to interact with database
        """
        async with session:
            try:
                entry = await session.get(KeyValueEntry, key)
                if entry is None:
                    session.add(KeyValueEntry(key=key, value=value))
                else:
                    entry.value = value
                await session.commit()
                return True
            except Exception as e:
                logging.error(f"Failed to store value for {key}: {e}")
                await session.rollback()
                return False

    @staticmethod
    async def create_game_session(game_session_id: UUID, session: AsyncSession) -> bool:
        """Register a new game session

        Args:
            game_session_id (UUID): To identify the game session
        """
        async with session:
            try:
                session.add(GameSessionRecord(game_session_id=game_session_id))
                await session.commit()
                return True
            except Exception as e:
                logging.error(f"Failed to create game session: {e}")
                await session.rollback()
                return False

    @staticmethod
    async def create_score(score: ScoreRecord, session: AsyncSession) -> bool:
        """Store a submitted score

        Args:
            score (ScoreRecord): Score with the per-session stats
        """
        async with session:
            try:
                session.add(score)
                await session.commit()
                return True
            except Exception as e:
                logging.error(f"Failed to create score data: {e}")
                await session.rollback()
                return False


class ReadData:
    @staticmethod
    async def read_value(key: str, session: AsyncSession) -> str | None:
        """Read the value stored under key

        Args:
            key (str): Storage key

        Returns:
            str | None: Serialized value, None when absent
        """
        async with session:
            entry = await session.get(KeyValueEntry, key)
            if entry is None:
                return None
            return entry.value

    @staticmethod
    async def read_keys(session: AsyncSession) -> List[str]:
        async with session:
            result = await session.execute(select(KeyValueEntry.key))
            return list(result.scalars().all())

    @staticmethod
    async def read_game_session(game_session_id: UUID, session: AsyncSession) -> bool:
        """Check the game session exists

        Args:
            game_session_id (UUID): To identify the game session

        Returns:
            bool: True if the game session was registered
        """
        async with session:
            try:
                result = await session.get(GameSessionRecord, game_session_id)
                return result is not None
            except Exception as e:
                logging.error(f"Failed to read game session: {e}")
                return False

    @staticmethod
    async def read_top_scores(limit: int, session: AsyncSession) -> List[ScoreRecord]:
        """Read the best scores, highest first

        Args:
            limit (int): Maximum number of rows

        Returns:
            List[ScoreRecord]: Scores ordered by score then submission time
        """
        async with session:
            try:
                stmt = (
                    select(ScoreRecord)
                    .order_by(desc(ScoreRecord.score), ScoreRecord.created_at)
                    .limit(limit)
                )
                result = await session.execute(stmt)
                return list(result.scalars().all())
            except Exception as e:
                logging.error(f"Failed to read leaderboard: {e}")
                return []


class DeleteData:
    @staticmethod
    async def delete_value(key: str, session: AsyncSession) -> None:
        """Delete the value stored under key, no-op if absent

        Args:
            key (str): Storage key
        """
        async with session:
            await session.execute(delete(KeyValueEntry).where(KeyValueEntry.key == key))
            await session.commit()
