from . import health, leaderboard, moderation, score

__all__ = ['health', 'leaderboard', 'moderation', 'score']
