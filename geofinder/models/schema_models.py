from pydantic import BaseModel, Field, ValidationError, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel
from typing import Any, List, Literal, Optional


class CamelModel(BaseModel):
    """Payload models shared with the JSON wire format (camelCase keys)."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class LenientModel(CamelModel):
    """Record read back from untyped persistent storage.

    A field that fails validation takes its declared default instead of
    rejecting the whole record, so every field must declare one.
    """

    @field_validator("*", mode="wrap")
    @classmethod
    def _default_on_error(cls, value: Any, handler, info: ValidationInfo) -> Any:
        try:
            return handler(value)
        except ValidationError:
            field = cls.model_fields[info.field_name]
            return field.get_default(call_default_factory=True)

    def is_resumable(self) -> bool:
        """Whether the record carries enough state to resume the screen."""
        return True

    def to_record(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class Coordinates(CamelModel):
    lat: float
    lon: float


class RoundImage(CamelModel):
    url: str
    coord: Coordinates
    contributor: Optional[str] = None


class CountryInfo(CamelModel):
    country: str
    country_code: str
    display_name: str


class RoundPayload(CamelModel):
    """One unit of work: the image (or panorama) to guess and its answer."""

    image: RoundImage
    country_info: Optional[CountryInfo] = None


class GameSnapshot(LenientModel):
    """Resumable state of a classic or panorama round game."""

    current_round: Optional[RoundPayload] = None
    guess: str = ""
    guess_count: int = 0
    incorrect_guesses: List[str] = Field(default_factory=list)
    feedback: str = ""
    game_over: bool = False
    current_score: int = 0
    high_score: Optional[int] = None
    next_round: Optional[RoundPayload] = None
    round_number: int = 1
    correct_answers: int = 0
    completed_rounds: int = 0
    show_game_summary: bool = False
    game_session_id: Optional[str] = None
    submit_to_leaderboard: bool = True
    is_continued: bool = False

    @field_validator("incorrect_guesses", mode="before")
    @classmethod
    def _keep_strings(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [g for g in value if isinstance(g, str)]
        return value

    def is_resumable(self) -> bool:
        return self.current_round is not None


class AiDuelScores(CamelModel):
    player: int = 0
    ai: int = 0


class AiDuelRound(CamelModel):
    round_index: int
    image_url: str
    contributor: Optional[str] = None


class AiDuelHistoryEntry(CamelModel):
    round_index: int = 0
    player_guess: Optional[str] = None
    ai_guess: Optional[str] = None
    correct_country: Optional[str] = None
    player_correct: bool = False
    ai_correct: bool = False


AiDuelStatus = Literal["in-progress", "completed"]


class AiDuelGuessResult(CamelModel):
    round_index: int = 0
    player_guess: Optional[str] = None
    player_correct: bool = False
    ai_guess: Optional[str] = None
    ai_correct: bool = False
    ai_confidence: Optional[float] = None
    ai_reasoning: Optional[str] = None
    correct_country: Optional[str] = None
    coordinates: Optional[Coordinates] = None
    contributor: Optional[str] = None
    scores: Optional[AiDuelScores] = None
    status: Optional[AiDuelStatus] = None
    history: Optional[List[AiDuelHistoryEntry]] = None
    next_round: Optional[AiDuelRound] = None


class AiDuelMatch(CamelModel):
    match_id: str
    round: AiDuelRound
    total_rounds: int = 0
    scores: Optional[AiDuelScores] = None
    status: Optional[AiDuelStatus] = None


class AiDuelSnapshot(LenientModel):
    match_id: Optional[str] = None
    current_round: Optional[AiDuelRound] = None
    queued_round: Optional[AiDuelRound] = None
    total_rounds: int = 0
    scores: AiDuelScores = Field(default_factory=AiDuelScores)
    status: AiDuelStatus = "in-progress"
    guess: str = ""
    latest_result: Optional[AiDuelGuessResult] = None
    history: List[AiDuelHistoryEntry] = Field(default_factory=list)
    prefetched_image_url: Optional[str] = None
    prefetched_round_url: Optional[str] = None
    error_message: str = ""

    def is_resumable(self) -> bool:
        return bool(self.match_id or self.current_round)


class MainMenuSnapshot(LenientModel):
    prefetched_round: Optional[RoundPayload] = None
    current_index: int = 0
    cached_images: List[int] = Field(default_factory=list)


class LeaderboardEntrySchema(BaseModel):
    rank: int
    score: int
    created_at: str
    game_session_id: Optional[str] = None

    class Config:
        from_attributes = True
