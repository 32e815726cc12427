from typing import List

from fastapi import APIRouter, Depends, HTTPException, Path, Query

from ..database.base import get_engine
from ..engine import LeaderboardEngine
from ..errors import LeaderboardError
from ..models.data import ModerationResult
from ..models.response import (
    CanModerateResponse,
    GameModeratorOut,
    MessageResponse,
    ModerationResponse,
    ScoreOut,
)
from ..models.score import ModeratorAssignmentRequest, RejectRequest, ReviewRequest
from ..logger import get_logger

logger = get_logger()
router = APIRouter(prefix="/moderation")


def _review_response(result: ModerationResult, action: str) -> ModerationResponse:
    if result.cache_synced:
        return ModerationResponse(message=f"Score {action} successfully", score=ScoreOut.from_score(result.score))
    return ModerationResponse(
        status="degraded",
        message=f"Score {action}; leaderboard will update on its next refresh",
        score=ScoreOut.from_score(result.score)
    )


@router.post("/scores/{score_id}/approve", response_model=ModerationResponse)
async def approve_score(
    data: ReviewRequest,
    score_id: int = Path(..., ge=1),
    engine: LeaderboardEngine = Depends(get_engine)
):
    """Approve a pending score. Only moderators of the score's game may do this."""
    try:
        result = await engine.approve_score(score_id, data.moderator_id)
        return _review_response(result, "approved")
    except LeaderboardError:
        raise
    except Exception as e:
        logger.error(f"Error approving score {score_id}: {e}")
        raise HTTPException(status_code=500, detail="An error occurred while approving the score")


@router.post("/scores/{score_id}/reject", response_model=ModerationResponse)
async def reject_score(
    data: RejectRequest,
    score_id: int = Path(..., ge=1),
    engine: LeaderboardEngine = Depends(get_engine)
):
    """Reject a pending score with an optional reason"""
    try:
        result = await engine.reject_score(score_id, data.moderator_id, data.reason)
        return _review_response(result, "rejected")
    except LeaderboardError:
        raise
    except Exception as e:
        logger.error(f"Error rejecting score {score_id}: {e}")
        raise HTTPException(status_code=500, detail="An error occurred while rejecting the score")


@router.get("/games/{game_id}/pending-scores", response_model=List[ScoreOut])
async def get_pending_scores_for_game(
    game_id: int = Path(..., ge=1),
    moderator_id: int = Query(..., ge=1),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    engine: LeaderboardEngine = Depends(get_engine)
):
    """Review queue of one game, oldest first"""
    try:
        scores = await engine.get_pending_scores_for_game(game_id, limit, offset, moderator_id=moderator_id)
        return [ScoreOut.from_score(score) for score in scores]
    except LeaderboardError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving pending scores for game {game_id}: {e}")
        raise HTTPException(status_code=500, detail="An error occurred while retrieving pending scores")


@router.get("/pending-scores", response_model=List[ScoreOut])
async def get_pending_scores(
    moderator_id: int = Query(..., ge=1),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    engine: LeaderboardEngine = Depends(get_engine)
):
    """Every pending score the moderator is allowed to review"""
    try:
        scores = await engine.get_pending_scores_for_moderator(moderator_id, limit, offset)
        return [ScoreOut.from_score(score) for score in scores]
    except LeaderboardError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving pending scores for moderator {moderator_id}: {e}")
        raise HTTPException(status_code=500, detail="An error occurred while retrieving pending scores")


@router.get("/games/{game_id}/moderators", response_model=List[GameModeratorOut])
async def get_game_moderators(game_id: int = Path(..., ge=1), engine: LeaderboardEngine = Depends(get_engine)):
    try:
        assignments = await engine.authority.list_moderators(game_id)
        return [GameModeratorOut.from_assignment(a) for a in assignments]
    except LeaderboardError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving moderators for game {game_id}: {e}")
        raise HTTPException(status_code=500, detail="An error occurred while retrieving game moderators")


@router.post("/games/{game_id}/moderators/{user_id}", response_model=GameModeratorOut, status_code=201)
async def add_game_moderator(
    data: ModeratorAssignmentRequest,
    game_id: int = Path(..., ge=1),
    user_id: int = Path(..., ge=1),
    engine: LeaderboardEngine = Depends(get_engine)
):
    """Assign a moderator to a game (administrators only)"""
    try:
        assignment = await engine.authority.assign_moderator(game_id, user_id, data.admin_id)
        return GameModeratorOut.from_assignment(assignment)
    except LeaderboardError:
        raise
    except Exception as e:
        logger.error(f"Error adding moderator {user_id} to game {game_id}: {e}")
        raise HTTPException(status_code=500, detail="An error occurred while adding the game moderator")


@router.delete("/games/{game_id}/moderators/{user_id}", response_model=MessageResponse)
async def remove_game_moderator(
    game_id: int = Path(..., ge=1),
    user_id: int = Path(..., ge=1),
    admin_id: int = Query(..., ge=1),
    engine: LeaderboardEngine = Depends(get_engine)
):
    """Remove a moderator from a game (administrators only)"""
    try:
        await engine.authority.remove_moderator(game_id, user_id, admin_id)
        return MessageResponse(message="Moderator removed successfully")
    except LeaderboardError:
        raise
    except Exception as e:
        logger.error(f"Error removing moderator {user_id} from game {game_id}: {e}")
        raise HTTPException(status_code=500, detail="An error occurred while removing the game moderator")


@router.get("/games/{game_id}/can-moderate", response_model=CanModerateResponse)
async def can_moderate_game(
    game_id: int = Path(..., ge=1),
    user_id: int = Query(..., ge=1),
    engine: LeaderboardEngine = Depends(get_engine)
):
    try:
        can_moderate = await engine.authority.can_moderate(game_id, user_id)
        return CanModerateResponse(game_id=game_id, user_id=user_id, can_moderate=can_moderate)
    except LeaderboardError:
        raise
    except Exception as e:
        logger.error(f"Error checking moderation rights of user {user_id} for game {game_id}: {e}")
        raise HTTPException(status_code=500, detail="An error occurred while checking moderation rights")


@router.get("/users/{user_id}/games", response_model=List[int])
async def get_moderated_games(user_id: int = Path(..., ge=1), engine: LeaderboardEngine = Depends(get_engine)):
    """Ids of the games a user is explicitly assigned to moderate"""
    try:
        return await engine.authority.games_moderated_by(user_id)
    except LeaderboardError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving moderated games for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="An error occurred while retrieving moderated games")
