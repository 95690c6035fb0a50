from typing import Any, Dict, Optional, Protocol

from geofinder.converter import DataConverter
from geofinder.models.schema_models import AiDuelGuessResult, AiDuelMatch
from geofinder.services.http_client import HttpClient, HttpRequestError

data_converter = DataConverter()

ROUND_OUT_OF_SYNC = "round_out_of_sync"
MATCH_COMPLETED = "match_completed"
MISSING_APP_CHECK_TOKEN = "missing_app_check_token"


class AiDuelApiError(Exception):
    """Error returned by the AI duel backend; payload carries whatever state it sent back."""

    def __init__(self, message: str, code: Optional[str] = None, payload: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.payload: Dict[str, Any] = payload or {}


class AiDuelClient(Protocol):
    async def start_match(self) -> AiDuelMatch:
        ...

    async def submit_guess(self, match_id: str, round_index: int, guess: str) -> AiDuelGuessResult:
        ...


class HttpAiDuelClient:
    def __init__(self, client: HttpClient) -> None:
        self.client = client

    async def start_match(self) -> AiDuelMatch:
        try:
            data = await self.client.post_json("/ai-duel/matches")
        except HttpRequestError as e:
            raise self._to_api_error(e) from e
        return data_converter.convert_ai_match(data)

    async def submit_guess(self, match_id: str, round_index: int, guess: str) -> AiDuelGuessResult:
        try:
            data = await self.client.post_json(
                f"/ai-duel/matches/{match_id}/guess",
                {"roundIndex": round_index, "guess": guess},
            )
        except HttpRequestError as e:
            raise self._to_api_error(e) from e
        return data_converter.convert_ai_guess(data)

    @staticmethod
    def _to_api_error(error: HttpRequestError) -> AiDuelApiError:
        code = error.body.get("code") or error.body.get("error")
        return AiDuelApiError(str(error), code=code, payload=error.body)
