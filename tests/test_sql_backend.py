import asyncio

import pytest
from sqlalchemy.ext.asyncio import create_async_engine

from geofinder.crud import CreateData
from geofinder.db import make_sessionmaker
from geofinder.models.dc_models import ScoreStatsModel
from geofinder.models.schema_models import GameSnapshot
from geofinder.services.leaderboard import SqlLeaderboard
from geofinder.storage.snapshot_store import SnapshotStore
from geofinder.storage.sql_storage import SqlStorage

from conftest import make_round


def run_with_db(tmp_path, body):
    async def scenario():
        engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.sqlite3'}")
        await CreateData.create_table(engine)
        try:
            return await body(make_sessionmaker(engine))
        finally:
            await engine.dispose()

    return asyncio.run(scenario())


def test_sql_storage_set_get_overwrite_remove(tmp_path):
    async def body(Session):
        storage = SqlStorage(Session)
        await storage.set("highScore", "3")
        await storage.set("highScore", "7")
        await storage.set("gameSessionIds", "[]")
        value = await storage.get("highScore")
        keys = sorted(await storage.keys())
        await storage.remove("highScore")
        await storage.remove("never-stored")
        return value, keys, await storage.get("highScore")

    assert run_with_db(tmp_path, body) == ("7", ["gameSessionIds", "highScore"], None)


def test_snapshot_round_trip_through_sql(tmp_path, clock):
    async def body(Session):
        store = SnapshotStore(SqlStorage(Session), clock)
        await store.save("geofinder.gameState.v1", GameSnapshot(current_round=make_round(), current_score=4))
        return await store.try_restore("geofinder.gameState.v1", GameSnapshot, 1000)

    restored = run_with_db(tmp_path, body)
    assert restored.current_score == 4
    assert restored.current_round.country_info.country_code == "FR"


def test_leaderboard_ranks_submitted_scores(tmp_path):
    async def body(Session):
        leaderboard = SqlLeaderboard(Session)
        first = await leaderboard.start_session()
        second = await leaderboard.start_session()
        await leaderboard.submit(first, 12, ScoreStatsModel(correct_answers=5, total_rounds=10, rounds_played=10))
        await leaderboard.submit(second, 20, ScoreStatsModel(correct_answers=8, total_rounds=10, rounds_played=10))
        return first, second, await leaderboard.get_leaderboard(50)

    first, second, board = run_with_db(tmp_path, body)
    assert [(e.rank, e.score, e.game_session_id) for e in board] == [(1, 20, second), (2, 12, first)]
    assert board[0].created_at


def test_leaderboard_rejects_unknown_sessions(tmp_path):
    stats = ScoreStatsModel(correct_answers=1, total_rounds=10, rounds_played=1)

    async def body(Session):
        leaderboard = SqlLeaderboard(Session)
        with pytest.raises(ValueError):
            await leaderboard.submit("not-a-uuid", 3, stats)
        with pytest.raises(ValueError):
            await leaderboard.submit("0190a0a0-0000-7000-8000-000000000000", 3, stats)
        return await leaderboard.get_leaderboard(10)

    assert run_with_db(tmp_path, body) == []
