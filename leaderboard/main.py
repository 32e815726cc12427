from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse

from . import __version__
from .core.events import shutdown_event, startup_event
from .errors import LeaderboardError
from .routes import health, leaderboard, moderation, score
from .logger import get_logger

logger = get_logger()

app = FastAPI(
    default_response_class=ORJSONResponse,
    title="Leaderboard Service",
    description="Moderated game leaderboards backed by PostgreSQL and a ranked Redis index",
    version=__version__
)

app.on_event("startup")(startup_event)
app.on_event("shutdown")(shutdown_event)


@app.exception_handler(LeaderboardError)
async def leaderboard_error_handler(request: Request, exc: LeaderboardError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return ORJSONResponse(status_code=exc.status_code, content={"detail": exc.message})


app.include_router(health.router)
app.include_router(score.router, prefix="/api", tags=["scores"])
app.include_router(leaderboard.router, prefix="/api", tags=["leaderboards"])
app.include_router(moderation.router, prefix="/api", tags=["moderation"])


def run():
    import uvicorn

    from .config import leaderboard as settings

    uvicorn.run(
        "leaderboard.main:app",
        host="0.0.0.0",
        port=8000,
        workers=settings.workers,
        loop="uvloop",
        limit_concurrency=1000,
        backlog=1024,
        http="httptools",
        log_level="info"
    )


if __name__ == "__main__":
    run()
