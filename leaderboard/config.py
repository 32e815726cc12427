from typing import Literal, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix='POSTGRES_')

    HOST: str = 'localhost'
    PORT: int = 5432
    DATABASE: str = 'leaderboard'
    USER: str = 'postgres'
    PASSWORD: str = 'postgres'
    MIN_POOL_SIZE: int = 5
    MAX_POOL_SIZE: int = 20
    COMMAND_TIMEOUT: int = 10
    MAX_CONCURRENT_QUERIES: int = 50
    MAX_RETRIES: int = 3
    RETRY_DELAY: float = 0.5

database = DatabaseConfig()


class RedisConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix='REDIS_')

    HOST: str = 'localhost'
    PORT: int = 6379
    DB: int = 0
    PASSWORD: Optional[str] = None
    SOCKET_TIMEOUT: float = 5.0
    KEY_PREFIX: str = 'leaderboard'

redis = RedisConfig()


class LeaderboardConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix='LEADERBOARD_')

    index_backend: Literal['redis', 'memory'] = 'redis'
    default_limit: int = 10
    max_limit: int = 100
    log_level: str = 'INFO'
    workers: Optional[int] = None

    @model_validator(mode='after')
    def resolve_workers(self):
        # Each worker process would hold its own memory index
        if self.index_backend == 'memory':
            if self.workers is not None and self.workers != 1:
                raise ValueError('the memory index backend requires workers=1')
            self.workers = 1
        elif self.workers is None:
            self.workers = 4
        elif self.workers < 1:
            raise ValueError('workers must be at least 1')
        return self

leaderboard = LeaderboardConfig()
