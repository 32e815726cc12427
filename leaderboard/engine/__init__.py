from .leaderboard import LeaderboardEngine
from .moderation import ModerationAuthority

__all__ = ['LeaderboardEngine', 'ModerationAuthority']
