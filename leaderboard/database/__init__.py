from .connection import DatabaseConnection
from .directory import GameDirectory, ModeratorStore, UserDirectory
from .score_store import ScoreStore

__all__ = ['DatabaseConnection', 'GameDirectory', 'ModeratorStore', 'ScoreStore', 'UserDirectory']
