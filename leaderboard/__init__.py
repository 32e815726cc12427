"""Game leaderboard service: moderated score submissions and ranked per-game leaderboards."""

__version__ = "1.0.0"
