import asyncio
from typing import Dict

from redis.asyncio import Redis

from ..cache import MemoryRankedIndex, RankedIndex, RedisRankedIndex
from ..config import database, leaderboard, redis as redis_config
from ..engine import LeaderboardEngine, ModerationAuthority
from ..logger import get_logger
from .connection import DatabaseConnection
from .directory import GameDirectory, ModeratorStore, UserDirectory
from .score_store import ScoreStore

logger = get_logger()


class DatabaseManager:
    _instance = None
    _lock = asyncio.Lock()

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(DatabaseManager, cls).__new__(cls)
            cls._instance.db_connection = DatabaseConnection()
            cls._instance.redis = None
            cls._instance.index = None
            cls._instance.engine = None
            cls._instance._initialized = False
        return cls._instance

    @classmethod
    async def get_instance(cls):
        """Get the singleton instance of DatabaseManager"""
        if cls._instance is None:
            async with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def _create_index(self) -> RankedIndex:
        if leaderboard.index_backend == 'memory':
            logger.info("Using in-process ranked index")
            return MemoryRankedIndex()

        self.redis = Redis(
            host=redis_config.HOST,
            port=redis_config.PORT,
            db=redis_config.DB,
            password=redis_config.PASSWORD,
            decode_responses=True,
            socket_timeout=redis_config.SOCKET_TIMEOUT,
            socket_connect_timeout=redis_config.SOCKET_TIMEOUT,
            retry_on_timeout=True
        )
        logger.info(f"Using Redis ranked index at {redis_config.HOST}:{redis_config.PORT}")
        return RedisRankedIndex(self.redis, key_prefix=redis_config.KEY_PREFIX)

    async def initialize(self):
        """Initialize all components"""
        if self._initialized:
            return

        try:
            await self.db_connection.initialize()

            self.index = self._create_index()
            if self.redis is not None:
                await self.redis.ping()

            users = UserDirectory(self.db_connection)
            games = GameDirectory(self.db_connection)
            scores = ScoreStore(
                self.db_connection,
                max_retries=database.MAX_RETRIES,
                retry_delay=database.RETRY_DELAY
            )
            authority = ModerationAuthority(ModeratorStore(self.db_connection), users, games)
            self.engine = LeaderboardEngine(scores, users, games, self.index, authority)

            self._initialized = True
            logger.info("Database manager initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize database manager: {e}")
            await self.close()
            raise

    async def check_health(self) -> Dict[str, str]:
        """Probe PostgreSQL and the ranked index"""
        if not self._initialized:
            return {'database': 'not_initialized', 'index': 'not_initialized'}

        components = {}
        try:
            async with self.db_connection.acquire() as conn:
                await conn.fetchval('SELECT 1')
            components['database'] = 'ok'
        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            components['database'] = 'unavailable'

        try:
            if self.redis is not None:
                await self.redis.ping()
            components['index'] = 'ok'
        except Exception as e:
            logger.error(f"Ranked index health check failed: {e}")
            components['index'] = 'unavailable'
        return components

    async def close(self):
        """Close all connections"""
        if self.index:
            await self.index.close()
        if self.db_connection:
            await self.db_connection.close()
        self.redis = None
        self.index = None
        self.engine = None
        self._initialized = False
        # Reset the singleton instance
        DatabaseManager._instance = None


async def get_engine() -> LeaderboardEngine:
    """FastAPI dependency returning the initialized engine"""
    db = await DatabaseManager.get_instance()
    if not db._initialized:
        await db.initialize()
    return db.engine
