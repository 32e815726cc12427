import time

from fastapi import APIRouter, HTTPException

from .. import __version__
from ..config import leaderboard
from ..database.base import DatabaseManager
from ..models.response import HealthResponse
from ..logger import get_logger

logger = get_logger()
router = APIRouter()

start_time = time.time()


@router.get("/health", response_model=HealthResponse)
@router.head("/health")
async def health_check():
    """Liveness plus reachability of PostgreSQL and the ranked index.

    Always answers 200 while the process is up; a dependency that is down
    or not yet connected turns the status to degraded.
    """
    try:
        db = await DatabaseManager.get_instance()
        components = await db.check_health()
        healthy = all(state == "ok" for state in components.values())
        response = HealthResponse(
            status="healthy" if healthy else "degraded",
            uptime=time.time() - start_time,
            version=__version__,
            index_backend=leaderboard.index_backend,
            components=components
        )
        logger.debug(f"Health check response: {response.model_dump()}")
        return response
    except Exception as e:
        logger.error(f"Health check error: {e}")
        raise HTTPException(status_code=500, detail="Health check failed")
