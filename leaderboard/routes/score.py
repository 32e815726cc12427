from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from ..database.base import get_engine
from ..engine import LeaderboardEngine
from ..errors import LeaderboardError
from ..models.response import ScoreOut, SubmitResponse
from ..models.score import ScoreRequest
from ..logger import get_logger

logger = get_logger()
router = APIRouter()


@router.post("/scores", response_model=SubmitResponse, status_code=201)
async def submit_score(data: ScoreRequest, engine: LeaderboardEngine = Depends(get_engine)):
    """
    Submit a new score for moderation.

    - **user_id**: Submitting player
    - **game_id**: Game the score was achieved in
    - **score**: Non-negative value; must beat the player's best approved score
    - **title** / **description**: Optional post text shown to moderators
    """
    try:
        score_id = await engine.submit_score(
            data.user_id, data.game_id, data.score, data.title, data.description
        )
        return SubmitResponse(message="Score submitted for review", score_id=score_id)
    except LeaderboardError:
        raise
    except Exception as e:
        logger.error(f"Error submitting score: {e}")
        raise HTTPException(status_code=500, detail="An error occurred while submitting the score")


@router.get("/scores/recent", response_model=List[ScoreOut])
async def get_recent_scores(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    engine: LeaderboardEngine = Depends(get_engine)
):
    """Most recently submitted approved scores across all games"""
    try:
        scores = await engine.get_recent_scores(limit, offset)
        return [ScoreOut.from_score(score) for score in scores]
    except LeaderboardError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving recent scores: {e}")
        raise HTTPException(status_code=500, detail="An error occurred while retrieving recent scores")


@router.get("/scores/{score_id}", response_model=ScoreOut)
async def get_score(score_id: int = Path(..., ge=1), engine: LeaderboardEngine = Depends(get_engine)):
    try:
        score = await engine.get_score(score_id)
        return ScoreOut.from_score(score)
    except LeaderboardError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving score {score_id}: {e}")
        raise HTTPException(status_code=500, detail="An error occurred while retrieving the score")


@router.get("/users/{user_id}/scores", response_model=List[ScoreOut])
async def get_user_scores(
    user_id: int = Path(..., ge=1),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    engine: LeaderboardEngine = Depends(get_engine)
):
    """Approved scores of a user, newest first"""
    try:
        scores = await engine.get_scores_by_user(user_id, limit, offset)
        return [ScoreOut.from_score(score) for score in scores]
    except LeaderboardError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving scores for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="An error occurred while retrieving scores")


@router.get("/users/{user_id}/scores/all", response_model=List[ScoreOut])
async def get_all_user_scores(
    user_id: int = Path(..., ge=1),
    requester_id: int = Query(..., ge=1, description="Acting user; must be the owner"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    engine: LeaderboardEngine = Depends(get_engine)
):
    """Every score of a user including pending and rejected ones (owner only)"""
    try:
        scores = await engine.get_all_scores_by_user(user_id, limit, offset, requester_id=requester_id)
        return [ScoreOut.from_score(score) for score in scores]
    except LeaderboardError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving all scores for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="An error occurred while retrieving scores")
