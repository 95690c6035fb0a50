from pydantic import BaseModel
from enum import Enum
from typing import Any, Dict, List, Optional

from geofinder.lifecycle import AppState
from geofinder.models.schema_models import RoundPayload


class ScreenName(str, Enum):
    main_menu = "MainMenu"
    game = "Game"
    pano_game = "PanoGame"
    ai_duel = "AiDuel"


class ScoreStatsModel(BaseModel):
    correct_answers: int
    total_rounds: int
    rounds_played: int


class ScoreSubmissionModel(BaseModel):
    score: int
    stats: ScoreStatsModel


class GameSessionModel(BaseModel):
    game_session_id: str


class NavigateModel(BaseModel):
    screen: ScreenName
    prefetched_round: Optional[RoundPayload] = None


class AppStateModel(BaseModel):
    state: AppState


class GuessModel(BaseModel):
    guess: str


class AlertModel(BaseModel):
    title: str
    message: str


class ScreenStateModel(BaseModel):
    """What the UI renders: the active screen, its controller state and pending alerts."""

    screen: ScreenName
    state: Dict[str, Any]
    alerts: List[AlertModel] = []


class LeaderboardEntryModel(BaseModel):
    rank: int
    score: int
    created_at: str
    game_session_id: Optional[str] = None
    is_own: bool = False
