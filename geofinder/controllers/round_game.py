"""Round game controllers (classic image and panorama).

State machine of one play-through:

    BOOTSTRAPPING -> AWAITING_INPUT -> EVALUATING -> ROUND_COMPLETE
        -> (advance) AWAITING_INPUT
        -> (last round, after a short delay) SESSION_COMPLETE
    SESSION_COMPLETE -> (continue) AWAITING_INPUT
    SESSION_COMPLETE -> (new game) BOOTSTRAPPING
    any -> (return to menu) ABANDONED

While a round is being loaded the session is back in BOOTSTRAPPING, so a
second advance, continue or retry is rejected until the round lands.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from geofinder import load_settings
from geofinder.controllers.base import Navigator, Notifier, ScreenController, SessionStateError
from geofinder.domain.guess_rules import (
    CONTINUED_MISS_PENALTY,
    MAX_GUESSES,
    correct_feedback,
    match_guess,
    normalize_country,
    points_for_attempt,
    retry_feedback,
    reveal_feedback,
)
from geofinder.lifecycle import AppStateSource
from geofinder.models.dc_models import ScoreStatsModel, ScreenName
from geofinder.models.schema_models import GameSnapshot, RoundPayload
from geofinder.prefetch import PrefetchSlot
from geofinder.services.leaderboard import ScoreSubmitter, SessionRegistrar
from geofinder.services.round_source import RoundSource
from geofinder.session_ids import SessionIdLedger
from geofinder.storage.snapshot_store import SnapshotStore
from geofinder.summary_timer import SummaryTimer

GAME_STATE_STORAGE_KEY = "geofinder.gameState.v1"
PANO_GAME_STATE_STORAGE_KEY = "geofinder.panoGameState.v1"


class SessionState(str, Enum):
    bootstrapping = "BOOTSTRAPPING"
    awaiting_input = "AWAITING_INPUT"
    evaluating = "EVALUATING"
    round_complete = "ROUND_COMPLETE"
    session_complete = "SESSION_COMPLETE"
    abandoned = "ABANDONED"


class GameController(ScreenController):
    screen_name = ScreenName.game
    storage_key = GAME_STATE_STORAGE_KEY
    snapshot_model = GameSnapshot
    high_score_key = "highScore"
    media_label = "image"

    def __init__(
        self,
        store: SnapshotStore,
        app_state: AppStateSource,
        navigator: Navigator,
        round_source: RoundSource,
        registrar: SessionRegistrar,
        submitter: ScoreSubmitter,
        notifier: Optional[Notifier] = None,
        *,
        ledger: Optional[SessionIdLedger] = None,
        initial_round: Optional[RoundPayload] = None,
        total_rounds: int = load_settings.total_rounds,
        summary_delay_seconds: float = load_settings.summary_delay_seconds,
        max_age_ms: int = load_settings.snapshot_max_age_ms,
    ) -> None:
        super().__init__(store, app_state, navigator, notifier, max_age_ms=max_age_ms)
        self.round_source = round_source
        self.registrar = registrar
        self.submitter = submitter
        self.ledger = ledger or SessionIdLedger(store)
        self.total_rounds = total_rounds
        self.summary_timer = SummaryTimer(summary_delay_seconds)
        self.prefetch: PrefetchSlot[RoundPayload] = PrefetchSlot(f"{self.screen_name.value} next round")
        if initial_round is not None:
            self.prefetch.fill(initial_round)

        self.state = SessionState.bootstrapping
        self.loading = False
        self.error_message = ""
        self._retry_advance = False

        self.current_score = 0
        self.high_score = 0
        self.round_number = 1
        self.correct_answers = 0
        self.completed_rounds = 0
        self.show_game_summary = False
        self.game_session_id: Optional[str] = None
        self.submit_to_leaderboard = True
        self.is_continued = False
        self._reset_round()

    def _reset_round(self) -> None:
        self.current_round: Optional[RoundPayload] = None
        self.guess = ""
        self.guess_count = 0
        self.incorrect_guesses: List[str] = []
        self.feedback = ""
        self.game_over = False

    @property
    def display_name(self) -> str:
        if self.current_round is None or self.current_round.country_info is None:
            return "Unknown"
        return self.current_round.country_info.display_name

    # Persistence

    def snapshot(self) -> GameSnapshot:
        return GameSnapshot(
            current_round=None if self.state == SessionState.abandoned else self.current_round,
            guess=self.guess,
            guess_count=self.guess_count,
            incorrect_guesses=list(self.incorrect_guesses),
            feedback=self.feedback,
            game_over=self.game_over,
            current_score=self.current_score,
            high_score=self.high_score,
            next_round=self.prefetch.peek(),
            round_number=self.round_number,
            correct_answers=self.correct_answers,
            completed_rounds=self.completed_rounds,
            show_game_summary=self.show_game_summary,
            game_session_id=self.game_session_id,
            submit_to_leaderboard=self.submit_to_leaderboard,
            is_continued=self.is_continued,
        )

    def hydrate(self, snapshot: GameSnapshot) -> None:
        self.summary_timer.cancel()
        self.current_round = snapshot.current_round
        self.guess = snapshot.guess
        self.guess_count = snapshot.guess_count
        self.incorrect_guesses = list(snapshot.incorrect_guesses)
        self.feedback = snapshot.feedback
        self.game_over = snapshot.game_over
        self.current_score = snapshot.current_score
        if snapshot.high_score is not None:
            self.high_score = snapshot.high_score
        if snapshot.next_round is not None:
            self.prefetch.fill(snapshot.next_round)
        self.round_number = snapshot.round_number
        self.correct_answers = snapshot.correct_answers
        self.completed_rounds = snapshot.completed_rounds
        self.show_game_summary = snapshot.show_game_summary
        self.game_session_id = snapshot.game_session_id
        self.submit_to_leaderboard = snapshot.submit_to_leaderboard
        self.is_continued = snapshot.is_continued
        self.loading = False
        self.error_message = ""

        if self.show_game_summary:
            self.state = SessionState.session_complete
        elif self.game_over:
            self.state = SessionState.round_complete
            if self.completed_rounds >= self.total_rounds:
                self._schedule_summary()
        else:
            self.state = SessionState.awaiting_input

    async def restore(self) -> bool:
        if not await super().restore():
            return False
        if self.prefetch.peek() is None and not self.prefetch.is_fetching:
            self._begin_prefetch()
        return True

    def cancel_pending(self) -> None:
        self.summary_timer.cancel()

    async def dispose(self) -> None:
        await super().dispose()
        self.prefetch.invalidate()

    # Bootstrapping

    async def bootstrap(self) -> None:
        self.state = SessionState.bootstrapping
        await self._load_high_score()
        if await self.restore():
            logging.info(f"{self.screen_name.value}: resumed round {self.round_number}")
            return
        await self.clear_persisted()
        await self.initialize_session()

    async def _load_high_score(self) -> None:
        raw = await self.store.read_text(self.high_score_key)
        if raw is None:
            return
        try:
            self.high_score = int(raw)
        except ValueError:
            logging.error(f"Ignoring unreadable high score {raw!r}")

    async def initialize_session(self) -> None:
        """Acquire a session id (offline on failure) and start the first round."""
        self.state = SessionState.bootstrapping
        self.game_session_id = None
        try:
            session_id = await self.registrar.start_session()
        except Exception as e:
            logging.error(f"Error starting game session: {e}")
            session_id = None
        if session_id:
            self.game_session_id = session_id
            await self.ledger.remember(session_id)
        else:
            self.notifier.alert("Warning", "Could not start game session. Playing in offline mode.")
        await self.start_round()

    # Rounds

    def _begin_prefetch(self) -> None:
        self.prefetch.begin_fetch(self.round_source.fetch_round)

    async def start_round(self, *, advance: bool = False) -> bool:
        """Put the next round on screen

        Uses the prefetched round when one is ready, otherwise fetches now.

        Args:
            advance (bool): Count this as moving to the next round number

        Returns:
            bool: False when no round could be fetched
        """
        self.state = SessionState.bootstrapping
        self.summary_timer.cancel()
        self.show_game_summary = False
        round_data = self.prefetch.consume()
        if round_data is None:
            self.loading = True
            try:
                round_data = await self.round_source.fetch_round()
            except Exception as e:
                logging.error(f"Failed to fetch {self.media_label}: {e}")
                round_data = None
            finally:
                self.loading = False
        if self.state == SessionState.abandoned:
            return False

        self._reset_round()
        if round_data is None:
            self._retry_advance = advance
            self.error_message = f"Could not fetch {self.media_label}. Try again."
            self.notifier.alert("Error", self.error_message)
            self.state = SessionState.awaiting_input
            return False

        self.error_message = ""
        self.current_round = round_data
        if advance:
            self.round_number += 1
        self.state = SessionState.awaiting_input
        self._begin_prefetch()
        return True

    async def retry(self) -> bool:
        if self.state != SessionState.awaiting_input or self.current_round is not None:
            raise SessionStateError("Nothing to retry")
        return await self.start_round(advance=self._retry_advance)

    def set_guess(self, text: str) -> None:
        self.guess = text

    def toggle_leaderboard(self) -> bool:
        self.submit_to_leaderboard = not self.submit_to_leaderboard
        return self.submit_to_leaderboard

    async def submit_guess(self, guess: Optional[str] = None) -> None:
        """Evaluate a guess against the current round

        Blank guesses are ignored.

        Args:
            guess (Optional[str]): Guess text, the current draft if omitted
        """
        if self.state != SessionState.awaiting_input or self.current_round is None:
            raise SessionStateError(f"Cannot guess while {self.state.value}")
        text = self.guess if guess is None else guess
        if not text.strip():
            return

        self.state = SessionState.evaluating
        info = self.current_round.country_info
        is_correct = match_guess(
            normalize_country(text),
            info.country if info else None,
            info.country_code if info else None,
        )
        self.guess_count += 1

        if is_correct:
            self.feedback = correct_feedback(self.display_name)
            self.game_over = True
            self.correct_answers += 1
            self.current_score += points_for_attempt(self.guess_count)
            if self.current_score > self.high_score:
                self.high_score = self.current_score
                await self.store.write_text(self.high_score_key, str(self.high_score))
        else:
            self.incorrect_guesses.append(text)
            if self.guess_count >= MAX_GUESSES:
                self.feedback = reveal_feedback(self.display_name, self.current_round.image.coord)
                self.game_over = True
                if self.is_continued:
                    self.current_score -= CONTINUED_MISS_PENALTY
            else:
                self.feedback = retry_feedback(self.guess_count)
        self.guess = ""

        if not self.game_over:
            self.state = SessionState.awaiting_input
            return
        self.completed_rounds += 1
        self.state = SessionState.round_complete
        if self.completed_rounds >= self.total_rounds:
            self._schedule_summary()

    def _schedule_summary(self) -> None:
        self.summary_timer.schedule(self._show_summary)

    def _show_summary(self) -> None:
        if self.state != SessionState.round_complete:
            return
        self.show_game_summary = True
        self.state = SessionState.session_complete

    async def advance(self) -> bool:
        if self.state != SessionState.round_complete or self.completed_rounds >= self.total_rounds:
            raise SessionStateError(f"Cannot advance while {self.state.value}")
        return await self.start_round(advance=True)

    # End of session

    async def continue_session(self) -> bool:
        """Keep the score and play another set of rounds."""
        if self.state != SessionState.session_complete:
            raise SessionStateError(f"Cannot continue while {self.state.value}")
        self.round_number = 1
        self.completed_rounds = 0
        self.is_continued = True
        return await self.start_round()

    async def new_game(self) -> None:
        if self.state != SessionState.session_complete:
            raise SessionStateError(f"Cannot start a new game while {self.state.value}")
        self.state = SessionState.bootstrapping
        self.summary_timer.cancel()
        submitted = await self._submit_score()
        if submitted:
            self.notifier.alert("Success", "Score submitted to leaderboard! Starting fresh game...")
        elif submitted is False:
            self.notifier.alert("Error", "Failed to submit score. Starting fresh game anyway.")

        self.current_score = 0
        self.correct_answers = 0
        self.completed_rounds = 0
        self.round_number = 1
        self.is_continued = False
        self.show_game_summary = False
        self._reset_round()
        await self.initialize_session()

    async def return_to_menu(self) -> None:
        if self.state == SessionState.abandoned:
            raise SessionStateError("Session already left")
        self.suppression.set()
        self.summary_timer.cancel()
        self.state = SessionState.abandoned
        submitted = await self._submit_score()
        if submitted is False:
            self.notifier.alert("Warning", "Failed to submit score to leaderboard")
        await self.clear_persisted()
        self.show_game_summary = False
        self.prefetch.invalidate()
        await self.navigator.navigate(ScreenName.main_menu)

    async def _submit_score(self) -> Optional[bool]:
        """Submit the score when allowed; None when nothing was submitted."""
        if not self.submit_to_leaderboard:
            if self.current_score > 0:
                logging.info("Skipping leaderboard submission per user choice")
            return None
        if not self.game_session_id or self.current_score <= 0:
            return None
        stats = ScoreStatsModel(
            correct_answers=self.correct_answers,
            total_rounds=self.total_rounds,
            rounds_played=self.completed_rounds,
        )
        try:
            await self.submitter.submit(self.game_session_id, self.current_score, stats)
        except Exception as e:
            logging.error(f"Error submitting score: {e}")
            return False
        logging.info(f"Score {self.current_score} submitted for session {self.game_session_id}")
        return True

    def view(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "loading": self.loading,
            "errorMessage": self.error_message,
            "totalRounds": self.total_rounds,
            **self.snapshot().to_record(),
        }


class PanoGameController(GameController):
    screen_name = ScreenName.pano_game
    storage_key = PANO_GAME_STATE_STORAGE_KEY
    high_score_key = "highScorePano"
    media_label = "panorama"
