from .data import (
    Game,
    GameModerator,
    LeaderboardEntry,
    ModerationResult,
    Score,
    ScoreStatus,
    User,
)

__all__ = [
    'Game',
    'GameModerator',
    'LeaderboardEntry',
    'ModerationResult',
    'Score',
    'ScoreStatus',
    'User',
]
