"""Leaderboard service: game session registration, score submission, ranking.

- Controllers only see the SessionRegistrar / ScoreSubmitter protocols.
- This layer owns session/transaction boundaries; CRUD helpers stay session-scoped.
"""

import logging
from typing import List, Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import async_sessionmaker
from uuid6 import uuid7

from geofinder.crud import CreateData, ReadData
from geofinder.models.dc_models import ScoreStatsModel
from geofinder.models.schema_models import LeaderboardEntrySchema
from geofinder.models.schemas import ScoreRecord


class SessionRegistrar(Protocol):
    async def start_session(self) -> str:
        """Return a new session id. Failure downgrades the caller to offline play."""
        ...


class ScoreSubmitter(Protocol):
    async def submit(self, session_id: str, score: int, stats: ScoreStatsModel) -> None:
        """Record a final score. Raises on failure; callers do not retry."""
        ...


class LeaderboardReader(Protocol):
    async def get_leaderboard(self, limit: int) -> List[LeaderboardEntrySchema]:
        ...


class SqlLeaderboard:
    def __init__(self, Session: async_sessionmaker) -> None:
        self.Session: async_sessionmaker = Session

    async def start_session(self) -> str:
        game_session_id = uuid7()
        async with self.Session() as session:
            success = await CreateData.create_game_session(game_session_id, session)
        if not success:
            raise RuntimeError("Failed to create game session")
        logging.info(f"Game session started: {game_session_id}")
        return str(game_session_id)

    async def submit(self, session_id: str, score: int, stats: ScoreStatsModel) -> None:
        try:
            game_session_id = UUID(session_id)
        except ValueError as e:
            raise ValueError(f"Invalid game session id: {session_id}") from e

        async with self.Session() as session:
            exists = await ReadData.read_game_session(game_session_id, session)
        if not exists:
            raise ValueError(f"Unknown game session: {session_id}")

        record = ScoreRecord(
            score_id=uuid7(),
            game_session_id=game_session_id,
            score=score,
            correct_answers=stats.correct_answers,
            total_rounds=stats.total_rounds,
            rounds_played=stats.rounds_played,
        )
        async with self.Session() as session:
            success = await CreateData.create_score(record, session)
        if not success:
            raise RuntimeError("Failed to create score data")

    async def get_leaderboard(self, limit: int) -> List[LeaderboardEntrySchema]:
        async with self.Session() as session:
            rows = await ReadData.read_top_scores(limit, session)
        return [
            LeaderboardEntrySchema(
                rank=rank,
                score=row.score,
                created_at=row.created_at.isoformat() if row.created_at else "",
                game_session_id=str(row.game_session_id),
            )
            for rank, row in enumerate(rows, start=1)
        ]
