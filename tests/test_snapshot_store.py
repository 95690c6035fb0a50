import asyncio
import json

from conftest import HOUR_MS, FailingStorage, make_round
from geofinder.models.schema_models import GameSnapshot, MainMenuSnapshot
from geofinder.storage.backend import MemoryStorage
from geofinder.storage.snapshot_store import SnapshotStore

KEY = "geofinder.gameState.v1"
MAX_AGE = 8 * HOUR_MS


def game_snapshot(**overrides) -> GameSnapshot:
    values = dict(
        current_round=make_round(),
        guess="fra",
        guess_count=1,
        incorrect_guesses=["spain"],
        feedback="❌ Not quite. Try again! (Guess 1/3)",
        current_score=5,
        high_score=9,
        next_round=make_round(country="japan", code="JP", display_name="Japan"),
        round_number=4,
        correct_answers=2,
        completed_rounds=3,
        game_session_id="session-1",
    )
    values.update(overrides)
    return GameSnapshot(**values)


def test_round_trip_within_max_age(store, clock):
    async def scenario():
        saved = game_snapshot()
        await store.save(KEY, saved)
        clock.advance(7 * HOUR_MS)
        restored = await store.try_restore(KEY, GameSnapshot, MAX_AGE)
        return saved, restored

    saved, restored = asyncio.run(scenario())
    assert restored.model_dump() == saved.model_dump()


def test_record_uses_camel_case_and_saved_at(store, storage, clock):
    asyncio.run(store.save(KEY, game_snapshot()))
    record = json.loads(storage._data[KEY])
    assert record["savedAt"] == clock.now
    assert record["currentRound"]["countryInfo"]["countryCode"] == "FR"
    assert record["incorrectGuesses"] == ["spain"]
    assert record["gameSessionId"] == "session-1"


def test_restore_after_max_age_returns_nothing_and_empties_store(store, storage, clock):
    async def scenario():
        await store.save(KEY, game_snapshot())
        clock.advance(9 * HOUR_MS)
        return await store.try_restore(KEY, GameSnapshot, MAX_AGE)

    assert asyncio.run(scenario()) is None
    assert storage._data == {}


def test_record_exactly_at_max_age_is_restored(store, clock):
    async def scenario():
        await store.save(KEY, game_snapshot())
        clock.advance(MAX_AGE)
        at_limit = await store.try_restore(KEY, GameSnapshot, MAX_AGE)
        await store.save(KEY, game_snapshot())
        clock.advance(MAX_AGE + 1)
        past_limit = await store.try_restore(KEY, GameSnapshot, MAX_AGE)
        return at_limit, past_limit

    at_limit, past_limit = asyncio.run(scenario())
    assert at_limit is not None
    assert past_limit is None


def test_successful_restore_consumes_record(store, storage):
    async def scenario():
        await store.save(KEY, game_snapshot())
        first = await store.try_restore(KEY, GameSnapshot, MAX_AGE)
        second = await store.try_restore(KEY, GameSnapshot, MAX_AGE)
        return first, second

    first, second = asyncio.run(scenario())
    assert first is not None
    assert second is None
    assert KEY not in storage._data


def test_absent_key_returns_nothing(store):
    assert asyncio.run(store.try_restore(KEY, GameSnapshot, MAX_AGE)) is None


def test_malformed_records_are_rejected_and_deleted(storage, clock):
    store = SnapshotStore(storage, clock)
    bad_records = [
        "{not json",
        json.dumps([1, 2, 3]),
        json.dumps({"currentRound": None}),
        json.dumps({"savedAt": "yesterday", "currentScore": 1}),
        json.dumps({"savedAt": True, "currentScore": 1}),
    ]
    for raw in bad_records:
        storage._data[KEY] = raw
        assert asyncio.run(store.try_restore(KEY, GameSnapshot, MAX_AGE)) is None
        assert KEY not in storage._data


def test_garbled_fields_fall_back_to_defaults(storage, clock):
    store = SnapshotStore(storage, clock)
    record = game_snapshot().to_record()
    record.update(
        {
            "savedAt": clock.now,
            "guessCount": "three",
            "incorrectGuesses": ["italy", 7, None],
            "gameOver": {"nested": True},
            "highScore": "lots",
            "nextRound": {"image": "not an image"},
            "submitToLeaderboard": [],
        }
    )
    storage._data[KEY] = json.dumps(record)

    restored = asyncio.run(store.try_restore(KEY, GameSnapshot, MAX_AGE))
    assert restored is not None
    assert restored.guess_count == 0
    assert restored.incorrect_guesses == ["italy"]
    assert restored.game_over is False
    assert restored.high_score is None
    assert restored.next_round is None
    assert restored.submit_to_leaderboard is True
    assert restored.current_score == 5


def test_snapshot_without_round_is_not_written(store, storage):
    async def scenario():
        await store.save(KEY, game_snapshot())
        await store.save(KEY, game_snapshot(current_round=None))

    asyncio.run(scenario())
    assert KEY not in storage._data


def test_stored_record_without_round_is_rejected(storage, clock):
    store = SnapshotStore(storage, clock)
    storage._data[KEY] = json.dumps({"savedAt": clock.now, "currentScore": 12})
    assert asyncio.run(store.try_restore(KEY, GameSnapshot, MAX_AGE)) is None
    assert KEY not in storage._data


def test_purge_expired_keeps_fresh_records(store, storage, clock):
    async def scenario():
        await store.save(KEY, game_snapshot())
        await store.save("geofinder.mainMenuState.v1", MainMenuSnapshot(current_index=2))
        clock.advance(HOUR_MS)
        fresh = await store.purge_expired(KEY, GameSnapshot, MAX_AGE)
        clock.advance(8 * HOUR_MS)
        stale = await store.purge_expired("geofinder.mainMenuState.v1", MainMenuSnapshot, MAX_AGE)
        return fresh, stale

    fresh, stale = asyncio.run(scenario())
    assert fresh is False
    assert stale is True
    assert KEY in storage._data
    assert "geofinder.mainMenuState.v1" not in storage._data


def test_storage_failures_are_swallowed(clock):
    store = SnapshotStore(FailingStorage(), clock)

    async def scenario():
        await store.save(KEY, game_snapshot())
        await store.remove(KEY)
        await store.write_text("highScore", "3")
        return await store.try_restore(KEY, GameSnapshot, MAX_AGE), await store.read_text("highScore")

    assert asyncio.run(scenario()) == (None, None)


class RewritingStorage(MemoryStorage):
    """Another writer replaces a record right after it is first read."""

    def __init__(self, initial, key: str, replacement: str) -> None:
        super().__init__(initial)
        self.key = key
        self.replacement = replacement

    async def get(self, key):
        value = await super().get(key)
        if key == self.key and self.replacement is not None:
            self._data[key], self.replacement = self.replacement, None
        return value


def test_purge_keeps_record_rewritten_while_checking(clock):
    fresh = {**game_snapshot().to_record(), "savedAt": clock.now}
    storage = RewritingStorage(
        {KEY: json.dumps({**fresh, "savedAt": clock.now - 9 * HOUR_MS})},
        KEY,
        json.dumps(fresh),
    )
    store = SnapshotStore(storage, clock)

    purged = asyncio.run(store.purge_expired(KEY, GameSnapshot, MAX_AGE))
    assert purged is False
    assert json.loads(storage._data[KEY])["savedAt"] == clock.now
