import logging
from typing import Any, Dict, List, Optional

from pydantic import TypeAdapter, ValidationError

from geofinder import load_settings
from geofinder.controllers.base import Navigator, Notifier, ScreenController, SessionStateError
from geofinder.lifecycle import AppStateSource
from geofinder.models.dc_models import ScreenName
from geofinder.models.schema_models import (
    AiDuelGuessResult,
    AiDuelHistoryEntry,
    AiDuelRound,
    AiDuelScores,
    AiDuelSnapshot,
    AiDuelStatus,
    RoundPayload,
)
from geofinder.services.ai_duel import (
    MATCH_COMPLETED,
    MISSING_APP_CHECK_TOKEN,
    ROUND_OUT_OF_SYNC,
    AiDuelApiError,
    AiDuelClient,
)
from geofinder.storage.snapshot_store import SnapshotStore

AI_DUEL_STATE_STORAGE_KEY = "geofinder.aiDuelState.v1"

_history_adapter = TypeAdapter(List[AiDuelHistoryEntry])
_status_adapter = TypeAdapter(AiDuelStatus)
_round_adapter = TypeAdapter(AiDuelRound)
_scores_adapter = TypeAdapter(AiDuelScores)


def _payload_field(adapter: Any, value: Any) -> Any:
    """Validate one field of an error payload; None when absent or garbled."""
    if value is None:
        return None
    try:
        return adapter.validate_python(value)
    except ValidationError:
        return None


class AiDuelController(ScreenController):
    """Match against the remote AI opponent; rounds and scoring live server-side."""

    screen_name = ScreenName.ai_duel
    storage_key = AI_DUEL_STATE_STORAGE_KEY
    snapshot_model = AiDuelSnapshot

    def __init__(
        self,
        store: SnapshotStore,
        app_state: AppStateSource,
        navigator: Navigator,
        client: AiDuelClient,
        notifier: Optional[Notifier] = None,
        *,
        initial_round: Optional[RoundPayload] = None,
        max_age_ms: int = load_settings.snapshot_max_age_ms,
    ) -> None:
        super().__init__(store, app_state, navigator, notifier, max_age_ms=max_age_ms)
        self.client = client
        self.prefetched_round_url: Optional[str] = initial_round.image.url if initial_round else None
        self.prefetched_image_url: Optional[str] = self.prefetched_round_url
        self.loading = True
        self.submitting = False
        self.match_id: Optional[str] = None
        self.guess = ""
        self.total_rounds = 0
        self.reset_state()

    def reset_state(self) -> None:
        self.match_id = None
        self.scores = AiDuelScores()
        self.queued_round: Optional[AiDuelRound] = None
        self.latest_result: Optional[AiDuelGuessResult] = None
        self.history: List[AiDuelHistoryEntry] = []
        self.status: AiDuelStatus = "in-progress"
        self.error_message = ""
        self.current_round: Optional[AiDuelRound] = None
        self.guess = ""

    @property
    def completed(self) -> bool:
        return self.status == "completed"

    def snapshot(self) -> AiDuelSnapshot:
        return AiDuelSnapshot(
            match_id=self.match_id,
            current_round=self.current_round,
            queued_round=self.queued_round,
            total_rounds=self.total_rounds,
            scores=self.scores,
            status=self.status,
            guess=self.guess,
            latest_result=self.latest_result,
            history=list(self.history),
            prefetched_image_url=self.prefetched_image_url,
            prefetched_round_url=self.prefetched_round_url,
            error_message=self.error_message,
        )

    def hydrate(self, snapshot: AiDuelSnapshot) -> None:
        self.match_id = snapshot.match_id
        self.current_round = snapshot.current_round
        self.queued_round = snapshot.queued_round
        self.total_rounds = snapshot.total_rounds
        self.scores = snapshot.scores
        self.status = snapshot.status
        self.guess = snapshot.guess
        self.latest_result = snapshot.latest_result
        self.history = list(snapshot.history)
        self.prefetched_round_url = snapshot.prefetched_round_url
        self.prefetched_image_url = snapshot.prefetched_image_url
        self.error_message = snapshot.error_message
        self.loading = False
        self.submitting = False

    async def bootstrap(self) -> None:
        if await self.restore():
            logging.info(f"AI duel: resumed match {self.match_id}")
            return
        await self.start_match()

    async def start_match(self) -> bool:
        self.loading = True
        await self.clear_persisted()
        self.reset_state()
        try:
            match = await self.client.start_match()
        except Exception as e:
            logging.error(f"Failed to start AI duel: {e}")
            self.error_message = (
                "Couldn't start a match right now. Double-check your network connection and try again."
            )
            return False
        finally:
            self.loading = False
        self.match_id = match.match_id
        self.current_round = match.round
        self.total_rounds = match.total_rounds
        self.scores = match.scores or AiDuelScores()
        self.status = match.status or "in-progress"
        self.prefetched_image_url = None
        return True

    def set_guess(self, text: str) -> None:
        self.guess = text

    @property
    def can_submit(self) -> bool:
        return (
            bool(self.match_id)
            and self.current_round is not None
            and not self.submitting
            and not self.completed
            and self.latest_result is None
        )

    async def submit_guess(self, guess: Optional[str] = None) -> bool:
        """Send the player's guess for the current round

        Error codes returned by the backend are turned into user-facing
        messages, resynchronizing local state where the payload allows it.

        Args:
            guess (Optional[str]): Guess text, the current draft if omitted

        Returns:
            bool: True when the backend accepted the guess
        """
        if guess is not None:
            self.guess = guess
        if not self.can_submit:
            self.error_message = "Match not ready yet. Please wait a moment."
            return False
        cleaned = self.guess.strip()
        if not cleaned:
            self.error_message = "Enter a country before submitting your guess."
            return False

        self.submitting = True
        self.error_message = ""
        try:
            result = await self.client.submit_guess(self.match_id, self.current_round.round_index, cleaned)
        except AiDuelApiError as e:
            logging.error(f"Failed to submit AI guess: {e}")
            self._handle_api_error(e)
            return False
        except Exception as e:
            logging.error(f"Failed to submit AI guess: {e}")
            self.error_message = "Something went wrong submitting your guess. Please try again."
            return False
        finally:
            self.submitting = False

        self.latest_result = result
        if result.scores is not None:
            self.scores = result.scores
        if result.status is not None:
            self.status = result.status
        if result.history is not None:
            self.history = list(result.history)
        self.queued_round = result.next_round
        self.guess = ""
        return True

    def _handle_api_error(self, error: AiDuelApiError) -> None:
        payload = error.payload
        scores = _payload_field(_scores_adapter, payload.get("scores"))
        history = _payload_field(_history_adapter, payload.get("history"))

        if error.code == ROUND_OUT_OF_SYNC:
            expected_round = _payload_field(_round_adapter, payload.get("expectedRound"))
            status = _payload_field(_status_adapter, payload.get("status"))
            if expected_round is not None:
                self.current_round = expected_round
            if history is not None:
                self.history = history
            if scores is not None:
                self.scores = scores
            if status is not None:
                self.status = status
            self.queued_round = None
            self.latest_result = None
            self.guess = ""
            self.error_message = "The match messed up and got behind. Try guessing again!"
        elif error.code == MATCH_COMPLETED:
            if scores is not None:
                self.scores = scores
            if history is not None:
                self.history = history
            self.status = "completed"
            self.latest_result = None
            self.queued_round = None
            self.error_message = "This match already wrapped up. Start a new duel!"
        elif error.code == MISSING_APP_CHECK_TOKEN:
            self.error_message = "App Check verification failed. Please try again or restart the app."
        else:
            self.error_message = error.message or "Something went wrong submitting your guess. Please try again."

    def next_round(self) -> None:
        if self.queued_round is None:
            raise SessionStateError("No round queued")
        self.current_round = self.queued_round
        self.queued_round = None
        self.latest_result = None
        self.guess = ""
        self.error_message = ""

    async def rematch(self) -> bool:
        return await self.start_match()

    async def return_to_menu(self) -> None:
        self.suppression.set()
        await self.clear_persisted()
        await self.navigator.navigate(ScreenName.main_menu)

    def view(self) -> Dict[str, Any]:
        return {
            "loading": self.loading,
            "submitting": self.submitting,
            "completed": self.completed,
            "awaitingNextRound": self.queued_round is not None,
            "displayedImageUrl": self.current_round.image_url if self.current_round else self.prefetched_image_url,
            **self.snapshot().to_record(),
        }
