from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Path

from ..config import leaderboard
from ..database.base import get_engine
from ..engine import LeaderboardEngine
from ..errors import Forbidden, LeaderboardError, NotFound
from ..models.response import LeaderboardEntry, LeaderboardResponse, MessageResponse, RankResponse, TopPlayersResponse
from ..logger import get_logger

logger = get_logger()
router = APIRouter()


@router.get("/leaderboards/{game_id}", response_model=LeaderboardResponse)
async def get_leaders(
    game_id: int = Path(..., ge=1),
    limit: int = Query(leaderboard.default_limit, ge=1, le=leaderboard.max_limit),
    engine: LeaderboardEngine = Depends(get_engine)
):
    """
    Get the top players for a specific game.

    - **game_id**: Game identifier
    - **limit**: Number of leaders to return
    """
    try:
        logger.info(f"Getting leaders for game {game_id} with limit {limit}")
        rows = await engine.get_leaderboard(game_id, limit)
        return LeaderboardResponse.from_rows(game_id, rows)
    except LeaderboardError:
        raise
    except Exception as e:
        logger.error(f"Error getting leaders: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to get leaderboard")


@router.get("/leaderboards/{game_id}/rank/{user_id}", response_model=RankResponse)
async def get_rank(
    game_id: int = Path(..., ge=1),
    user_id: int = Path(..., ge=1),
    engine: LeaderboardEngine = Depends(get_engine)
):
    """
    Get the rank of a user in a game.

    - **game_id**: Game identifier
    - **user_id**: User identifier
    """
    try:
        rank = await engine.get_rank(game_id, user_id)
        if rank is None:
            raise NotFound("User not found in leaderboard")
        return RankResponse(game_id=game_id, user_id=user_id, rank=rank)
    except LeaderboardError:
        raise
    except Exception as e:
        logger.error(f"Error getting rank: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to get rank")


@router.get("/reports/top-players", response_model=TopPlayersResponse)
async def get_top_players(
    start_date: datetime = Query(..., description="Inclusive lower bound on submission time"),
    end_date: datetime = Query(..., description="Inclusive upper bound on submission time"),
    limit: int = Query(leaderboard.default_limit, ge=1, le=leaderboard.max_limit),
    engine: LeaderboardEngine = Depends(get_engine)
):
    """Highest approved scores across all games submitted within a date range"""
    try:
        rows = await engine.get_top_players_across_games(start_date, end_date, limit)
        return TopPlayersResponse(
            start_date=start_date,
            end_date=end_date,
            entries=[
                LeaderboardEntry(user_id=row.user_id, user_name=row.user_name, score=row.score, rank=idx + 1)
                for idx, row in enumerate(rows)
            ]
        )
    except LeaderboardError:
        raise
    except Exception as e:
        logger.error(f"Error getting top players: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to get top players")


async def _require_admin(engine: LeaderboardEngine, admin_id: int):
    if not await engine.authority.is_admin(admin_id):
        raise Forbidden("Only administrators can maintain leaderboards")


@router.post("/leaderboards/{game_id}/rebuild", response_model=MessageResponse)
async def rebuild_leaderboard(
    game_id: int = Path(..., ge=1),
    admin_id: int = Query(..., ge=1),
    engine: LeaderboardEngine = Depends(get_engine)
):
    """Drop and rebuild a game's ranked index from approved scores (administrators only)"""
    try:
        await _require_admin(engine, admin_id)
        count = await engine.rebuild_leaderboard(game_id)
        return MessageResponse(message=f"Leaderboard rebuilt with {count} players")
    except LeaderboardError:
        raise
    except Exception as e:
        logger.error(f"Error rebuilding leaderboard {game_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to rebuild leaderboard")


@router.delete("/leaderboards/{game_id}/cache", response_model=MessageResponse)
async def invalidate_leaderboard(
    game_id: int = Path(..., ge=1),
    admin_id: int = Query(..., ge=1),
    engine: LeaderboardEngine = Depends(get_engine)
):
    """Drop a game's ranked index; the next read rebuilds it (administrators only)"""
    try:
        await _require_admin(engine, admin_id)
        await engine.invalidate_leaderboard(game_id)
        return MessageResponse(message="Leaderboard cache invalidated")
    except LeaderboardError:
        raise
    except Exception as e:
        logger.error(f"Error invalidating leaderboard {game_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to invalidate leaderboard")
