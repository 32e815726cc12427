from typing import Dict, List, Optional, Tuple

from redis.asyncio import Redis
from redis.exceptions import WatchError

from .base import RankedIndex
from ..logger import get_logger

logger = get_logger()


class RedisRankedIndex(RankedIndex):
    """Ranked index kept in one Redis sorted set per game.

    Members are user ids as strings, scores are the best approved values.
    Equal values come back in Redis' reverse lexicographic member order.
    """

    def __init__(self, client: Redis, key_prefix: str = 'leaderboard'):
        self.redis = client
        self.key_prefix = key_prefix

    def key(self, game_id: int) -> str:
        return f"{self.key_prefix}:{game_id}"

    async def upsert(self, game_id: int, user_id: int, value: int) -> None:
        await self.redis.zadd(self.key(game_id), {str(user_id): value})

    async def bulk_load(self, game_id: int, entries: Dict[int, int]) -> None:
        if not entries:
            return
        mapping = {str(user_id): value for user_id, value in entries.items()}
        await self.redis.zadd(self.key(game_id), mapping)
        logger.info(f"Loaded {len(mapping)} entries into {self.key(game_id)}")

    async def rank_of(self, game_id: int, user_id: int) -> Optional[int]:
        """Competition rank read from one version of the set.

        The count runs in a MULTI block guarded by WATCH on the key, so a
        write landing between reading the score and counting retries the read.
        """
        key = self.key(game_id)
        async with self.redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    score = await pipe.zscore(key, str(user_id))
                    if score is None:
                        return None
                    pipe.multi()
                    # '(' makes the lower bound exclusive: members strictly above this score
                    pipe.zcount(key, f"({score}", "+inf")
                    higher, = await pipe.execute()
                    return higher + 1
                except WatchError:
                    logger.debug(f"{key} changed while ranking user {user_id}, retrying")

    async def score_of(self, game_id: int, user_id: int) -> Optional[int]:
        score = await self.redis.zscore(self.key(game_id), str(user_id))
        return None if score is None else int(score)

    async def top(self, game_id: int, k: int) -> List[Tuple[int, int]]:
        if k < 1:
            return []
        rows = await self.redis.zrevrange(self.key(game_id), 0, k - 1, withscores=True)
        return [(int(member), int(score)) for member, score in rows]

    async def cardinality(self, game_id: int) -> int:
        return await self.redis.zcard(self.key(game_id))

    async def exists(self, game_id: int) -> bool:
        return bool(await self.redis.exists(self.key(game_id)))

    async def clear(self, game_id: int) -> None:
        await self.redis.delete(self.key(game_id))

    async def close(self) -> None:
        await self.redis.aclose()
