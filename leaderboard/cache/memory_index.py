import itertools
from typing import Dict, List, Optional, Tuple

from sortedcontainers import SortedList

from .base import RankedIndex


class _GameIndex:
    __slots__ = ('entries', 'members')

    def __init__(self):
        # (-value, insertion seq, user_id): ascending order is best-first,
        # equal values keep the order they were first inserted in
        self.entries = SortedList()
        self.members: Dict[int, Tuple[int, int]] = {}


class MemoryRankedIndex(RankedIndex):
    """In-process ranked index for single-instance deployments and tests.

    Every operation runs without awaiting, so it is atomic with respect to
    other coroutines on the same event loop.
    """

    def __init__(self):
        self._games: Dict[int, _GameIndex] = {}
        self._seq = itertools.count()

    def _put(self, index: _GameIndex, user_id: int, value: int) -> None:
        current = index.members.get(user_id)
        if current is not None:
            old_value, seq = current
            index.entries.remove((-old_value, seq, user_id))
        else:
            seq = next(self._seq)
        index.entries.add((-value, seq, user_id))
        index.members[user_id] = (value, seq)

    async def upsert(self, game_id: int, user_id: int, value: int) -> None:
        index = self._games.setdefault(game_id, _GameIndex())
        self._put(index, user_id, value)

    async def bulk_load(self, game_id: int, entries: Dict[int, int]) -> None:
        if not entries:
            return
        index = self._games.setdefault(game_id, _GameIndex())
        for user_id, value in entries.items():
            self._put(index, user_id, value)

    async def rank_of(self, game_id: int, user_id: int) -> Optional[int]:
        index = self._games.get(game_id)
        if index is None or user_id not in index.members:
            return None
        value, _ = index.members[user_id]
        # (-value,) sorts before every entry holding the same value
        return index.entries.bisect_left((-value,)) + 1

    async def score_of(self, game_id: int, user_id: int) -> Optional[int]:
        index = self._games.get(game_id)
        if index is None or user_id not in index.members:
            return None
        return index.members[user_id][0]

    async def top(self, game_id: int, k: int) -> List[Tuple[int, int]]:
        index = self._games.get(game_id)
        if index is None or k < 1:
            return []
        return [(user_id, -neg_value) for neg_value, _, user_id in index.entries.islice(0, k)]

    async def cardinality(self, game_id: int) -> int:
        index = self._games.get(game_id)
        return 0 if index is None else len(index.members)

    async def exists(self, game_id: int) -> bool:
        index = self._games.get(game_id)
        return index is not None and len(index.members) > 0

    async def clear(self, game_id: int) -> None:
        self._games.pop(game_id, None)
