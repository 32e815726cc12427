from .base import RankedIndex
from .memory_index import MemoryRankedIndex
from .redis_index import RedisRankedIndex

__all__ = ['RankedIndex', 'MemoryRankedIndex', 'RedisRankedIndex']
