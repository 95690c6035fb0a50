import asyncio
from typing import List, Optional

import pytest

from conftest import FakeNavigator, make_round
from geofinder.controllers.ai_duel import AI_DUEL_STATE_STORAGE_KEY, AiDuelController
from geofinder.controllers.base import SessionStateError
from geofinder.lifecycle import AppState, AppStateSource
from geofinder.models.dc_models import ScreenName
from geofinder.models.schema_models import AiDuelGuessResult, AiDuelMatch, AiDuelRound, AiDuelScores
from geofinder.services.ai_duel import AiDuelApiError


class FakeAiDuelClient:
    def __init__(self, results: Optional[List[object]] = None, fail_start: bool = False) -> None:
        self.results = list(results or [])
        self.fail_start = fail_start
        self.matches = 0
        self.guesses = []

    async def start_match(self) -> AiDuelMatch:
        if self.fail_start:
            raise RuntimeError("offline")
        self.matches += 1
        return AiDuelMatch(
            match_id=f"match-{self.matches}",
            round=AiDuelRound(round_index=0, image_url="https://img.example/duel-0.jpg"),
            total_rounds=5,
            scores=AiDuelScores(player=0, ai=0),
            status="in-progress",
        )

    async def submit_guess(self, match_id: str, round_index: int, guess: str) -> AiDuelGuessResult:
        self.guesses.append((match_id, round_index, guess))
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


def guess_result(**overrides) -> AiDuelGuessResult:
    values = dict(
        round_index=0,
        player_guess="france",
        player_correct=True,
        ai_guess="belgium",
        ai_correct=False,
        correct_country="france",
        scores=AiDuelScores(player=1, ai=0),
        status="in-progress",
        history=[],
        next_round=AiDuelRound(round_index=1, image_url="https://img.example/duel-1.jpg"),
    )
    values.update(overrides)
    return AiDuelGuessResult(**values)


def build_duel(store, client, initial_round=None) -> AiDuelController:
    return AiDuelController(store, AppStateSource(), FakeNavigator(), client, initial_round=initial_round)


def test_bootstrap_starts_match(store):
    async def scenario():
        ctrl = build_duel(store, FakeAiDuelClient(), initial_round=make_round(url="https://img.example/warm.jpg"))
        before = ctrl.view()["displayedImageUrl"]
        await ctrl.start()
        return ctrl, before

    ctrl, before = asyncio.run(scenario())
    assert before == "https://img.example/warm.jpg"
    assert ctrl.match_id == "match-1"
    assert ctrl.current_round.round_index == 0
    assert ctrl.total_rounds == 5
    assert ctrl.prefetched_image_url is None
    assert not ctrl.loading


def test_start_failure_sets_error_message(store):
    async def scenario():
        ctrl = build_duel(store, FakeAiDuelClient(fail_start=True))
        await ctrl.start()
        return ctrl

    ctrl = asyncio.run(scenario())
    assert ctrl.match_id is None
    assert ctrl.error_message.startswith("Couldn't start a match right now.")
    assert not ctrl.loading


def test_guess_updates_scores_and_queues_next_round(store):
    async def scenario():
        client = FakeAiDuelClient([guess_result()])
        ctrl = build_duel(store, client)
        await ctrl.start()
        accepted = await ctrl.submit_guess("  france ")
        return ctrl, client, accepted

    ctrl, client, accepted = asyncio.run(scenario())
    assert accepted
    assert client.guesses == [("match-1", 0, "france")]
    assert ctrl.scores.player == 1
    assert ctrl.queued_round.round_index == 1
    assert ctrl.latest_result is not None
    assert not ctrl.can_submit

    ctrl.next_round()
    assert ctrl.current_round.round_index == 1
    assert ctrl.queued_round is None
    assert ctrl.latest_result is None
    assert ctrl.can_submit


def test_blank_guess_is_not_sent(store):
    async def scenario():
        client = FakeAiDuelClient()
        ctrl = build_duel(store, client)
        await ctrl.start()
        accepted = await ctrl.submit_guess("   ")
        return ctrl, client, accepted

    ctrl, client, accepted = asyncio.run(scenario())
    assert not accepted
    assert client.guesses == []
    assert ctrl.error_message == "Enter a country before submitting your guess."


def test_round_out_of_sync_resynchronizes(store):
    error = AiDuelApiError(
        "Round mismatch",
        code="round_out_of_sync",
        payload={
            "expectedRound": {"roundIndex": 2, "imageUrl": "https://img.example/duel-2.jpg"},
            "scores": {"player": 2, "ai": 1},
            "history": [{"roundIndex": 0, "playerCorrect": True}, {"roundIndex": 1}],
            "status": "in-progress",
        },
    )

    async def scenario():
        ctrl = build_duel(store, FakeAiDuelClient([error]))
        await ctrl.start()
        await ctrl.submit_guess("japan")
        return ctrl

    ctrl = asyncio.run(scenario())
    assert ctrl.current_round.round_index == 2
    assert (ctrl.scores.player, ctrl.scores.ai) == (2, 1)
    assert len(ctrl.history) == 2
    assert ctrl.queued_round is None
    assert ctrl.latest_result is None
    assert ctrl.guess == ""
    assert ctrl.error_message == "The match messed up and got behind. Try guessing again!"


def test_match_completed_marks_status(store):
    error = AiDuelApiError("Done", code="match_completed", payload={"scores": {"player": 3, "ai": 4}})

    async def scenario():
        ctrl = build_duel(store, FakeAiDuelClient([error]))
        await ctrl.start()
        await ctrl.submit_guess("japan")
        return ctrl

    ctrl = asyncio.run(scenario())
    assert ctrl.completed
    assert ctrl.scores.ai == 4
    assert ctrl.error_message == "This match already wrapped up. Start a new duel!"


@pytest.mark.parametrize(
    "error, message",
    [
        (
            AiDuelApiError("Forbidden", code="missing_app_check_token"),
            "App Check verification failed. Please try again or restart the app.",
        ),
        (AiDuelApiError("Server exploded", code="internal"), "Server exploded"),
        (RuntimeError("socket closed"), "Something went wrong submitting your guess. Please try again."),
    ],
)
def test_other_errors_become_messages(store, error, message):
    async def scenario():
        ctrl = build_duel(store, FakeAiDuelClient([error]))
        await ctrl.start()
        await ctrl.submit_guess("japan")
        return ctrl

    ctrl = asyncio.run(scenario())
    assert ctrl.error_message == message
    assert not ctrl.submitting


def test_next_round_without_queue_is_rejected(store):
    async def scenario():
        ctrl = build_duel(store, FakeAiDuelClient())
        await ctrl.start()
        return ctrl

    ctrl = asyncio.run(scenario())
    with pytest.raises(SessionStateError):
        ctrl.next_round()


def test_background_and_resume_keeps_match(store, storage):
    async def scenario():
        client = FakeAiDuelClient([guess_result()])
        first = build_duel(store, client)
        await first.start()
        await first.submit_guess("france")
        await first.observer.source.emit(AppState.background)
        assert AI_DUEL_STATE_STORAGE_KEY in storage._data

        second = build_duel(store, client)
        await second.start()
        return second, client

    second, client = asyncio.run(scenario())
    assert client.matches == 1
    assert second.match_id == "match-1"
    assert second.queued_round.round_index == 1
    assert second.scores.player == 1
    assert not second.loading


def test_rematch_starts_new_match(store):
    async def scenario():
        client = FakeAiDuelClient([guess_result()])
        ctrl = build_duel(store, client)
        await ctrl.start()
        await ctrl.submit_guess("france")
        await ctrl.rematch()
        return ctrl

    ctrl = asyncio.run(scenario())
    assert ctrl.match_id == "match-2"
    assert ctrl.scores.player == 0
    assert ctrl.queued_round is None
    assert ctrl.history == []


def test_return_to_menu_suppresses_persist(store, storage):
    async def scenario():
        ctrl = build_duel(store, FakeAiDuelClient())
        await ctrl.start()
        await ctrl.return_to_menu()
        await ctrl.dispose()
        return ctrl

    ctrl = asyncio.run(scenario())
    assert ctrl.navigator.visits == [(ScreenName.main_menu, None)]
    assert AI_DUEL_STATE_STORAGE_KEY not in storage._data


def test_resume_keeps_handed_over_round_url(store):
    warm = make_round(url="https://img.example/warm.jpg")

    async def scenario():
        client = FakeAiDuelClient()
        first = build_duel(store, client, initial_round=warm)
        await first.start()
        await first.observer.source.emit(AppState.background)
        second = build_duel(store, client)
        await second.start()
        return first, second

    first, second = asyncio.run(scenario())
    assert second.prefetched_round_url == "https://img.example/warm.jpg"
    assert second.snapshot().model_dump() == first.snapshot().model_dump()
