import logging
from typing import List

from fastapi import APIRouter, HTTPException, Query, status

from geofinder import load_settings
from geofinder.db import Session
from geofinder.models.dc_models import GameSessionModel, ScoreSubmissionModel
from geofinder.models.schema_models import LeaderboardEntrySchema
from geofinder.services.leaderboard import SqlLeaderboard

rest_router = APIRouter()
leaderboard = SqlLeaderboard(Session)


class LeaderboardAPI:
    @staticmethod
    @rest_router.get("/leaderboard", response_model=List[LeaderboardEntrySchema])
    async def get_leaderboard(limit: int = Query(default=load_settings.leaderboard_limit, ge=1, le=500)):
        return await leaderboard.get_leaderboard(limit)


class GameSessionAPI:
    @staticmethod
    @rest_router.post("/sessions", response_model=GameSessionModel, status_code=status.HTTP_201_CREATED)
    async def start_session():
        try:
            game_session_id = await leaderboard.start_session()
        except RuntimeError as e:
            logging.error(f"Error starting game session: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
        return GameSessionModel(game_session_id=game_session_id)

    @staticmethod
    @rest_router.post("/sessions/{session_id}/score", status_code=status.HTTP_201_CREATED)
    async def submit_score(session_id: str, submission: ScoreSubmissionModel):
        try:
            await leaderboard.submit(session_id, submission.score, submission.stats)
        except ValueError as e:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
        except RuntimeError as e:
            logging.error(f"Error submitting score: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))
        logging.info(f"Score {submission.score} recorded for session {session_id}")
        return {"game_session_id": session_id, "score": submission.score}
