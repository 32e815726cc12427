"""Integration fixtures: real PostgreSQL and Redis started with testcontainers."""

from collections.abc import AsyncGenerator, Generator
from types import SimpleNamespace

import pytest
import pytest_asyncio
from redis.asyncio import Redis
from testcontainers.postgres import PostgresContainer
from testcontainers.redis import RedisContainer

from leaderboard import config
from leaderboard.cache import RedisRankedIndex
from leaderboard.database import DatabaseConnection, GameDirectory, ModeratorStore, ScoreStore, UserDirectory
from leaderboard.engine import LeaderboardEngine, ModerationAuthority

SEED = [
    "TRUNCATE scores, game_moderators, user_roles, games, users RESTART IDENTITY CASCADE",
    """
    INSERT INTO users (id, username) VALUES
        (1, 'alice'), (2, 'bob'), (3, 'carol'), (10, 'mod'), (11, 'gamemod'), (12, 'admin')
    """,
    "INSERT INTO user_roles (user_id, role_id) SELECT 10, id FROM roles WHERE name = 'Moderator'",
    "INSERT INTO user_roles (user_id, role_id) SELECT 12, id FROM roles WHERE name = 'Admin'",
    "INSERT INTO games (id, name) VALUES (7, 'Tetris'), (9, 'Snake')",
]


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    with PostgresContainer(
        image="postgres:16-alpine",
        username="leaderboard",
        password="leaderboard",
        dbname="leaderboard",
    ) as container:
        yield container


@pytest.fixture(scope="session")
def redis_container() -> Generator[RedisContainer, None, None]:
    with RedisContainer(image="redis:7-alpine") as container:
        yield container


@pytest.fixture(scope="session")
def database_settings(postgres_container: PostgresContainer):
    """Point the global database settings at the container"""
    config.database.HOST = postgres_container.get_container_host_ip()
    config.database.PORT = int(postgres_container.get_exposed_port(5432))
    config.database.DATABASE = "leaderboard"
    config.database.USER = "leaderboard"
    config.database.PASSWORD = "leaderboard"
    config.database.MIN_POOL_SIZE = 1
    config.database.MAX_POOL_SIZE = 5
    return config.database


@pytest_asyncio.fixture
async def db_connection(database_settings) -> AsyncGenerator[DatabaseConnection, None]:
    """Fresh pool per test over a re-seeded schema"""
    connection = DatabaseConnection()
    await connection.initialize()
    async with connection.acquire() as conn:
        for statement in SEED:
            await conn.execute(statement)
    yield connection
    await connection.close()


@pytest_asyncio.fixture
async def redis_client(redis_container: RedisContainer) -> AsyncGenerator[Redis, None]:
    client = Redis(
        host=redis_container.get_container_host_ip(),
        port=int(redis_container.get_exposed_port(6379)),
        decode_responses=True,
    )
    await client.flushdb()
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def world(db_connection: DatabaseConnection, redis_client: Redis) -> SimpleNamespace:
    users = UserDirectory(db_connection)
    games = GameDirectory(db_connection)
    moderators = ModeratorStore(db_connection)
    scores = ScoreStore(db_connection, max_retries=1, retry_delay=0)
    index = RedisRankedIndex(redis_client, key_prefix="it-leaderboard")
    authority = ModerationAuthority(moderators, users, games)
    return SimpleNamespace(
        db=db_connection,
        redis=redis_client,
        users=users,
        games=games,
        moderators=moderators,
        scores=scores,
        index=index,
        authority=authority,
        engine=LeaderboardEngine(scores, users, games, index, authority),
    )
