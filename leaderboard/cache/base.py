from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple


class RankedIndex(ABC):
    """Per-game ordered index of user id -> best approved score.

    Implementations only store what they are told: `upsert` overwrites the
    member's value (last writer wins) and never computes maxima itself, so
    callers pass the true current best. Games are namespaced, a user can
    appear at most once per game, and nothing expires.
    """

    @abstractmethod
    async def upsert(self, game_id: int, user_id: int, value: int) -> None:
        """Insert or overwrite a single member"""

    @abstractmethod
    async def bulk_load(self, game_id: int, entries: Dict[int, int]) -> None:
        """Write many members at once; idempotent for the same payload"""

    @abstractmethod
    async def rank_of(self, game_id: int, user_id: int) -> Optional[int]:
        """1-based rank: one plus the number of members with a strictly greater value"""

    @abstractmethod
    async def score_of(self, game_id: int, user_id: int) -> Optional[int]:
        """Indexed value of a member, or None"""

    @abstractmethod
    async def top(self, game_id: int, k: int) -> List[Tuple[int, int]]:
        """Up to k (user_id, value) pairs, highest value first"""

    @abstractmethod
    async def cardinality(self, game_id: int) -> int:
        """Number of members indexed for a game"""

    @abstractmethod
    async def exists(self, game_id: int) -> bool:
        """Whether an index has been created for a game"""

    @abstractmethod
    async def clear(self, game_id: int) -> None:
        """Drop the whole index of a game"""

    async def close(self) -> None:
        """Release any resources held by the index"""
