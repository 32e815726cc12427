import asyncpg
import asyncio
from contextlib import asynccontextmanager
from ..config import database
from ..logger import get_logger

logger = get_logger()

SCHEMA = [
    '''
    CREATE TABLE IF NOT EXISTS users (
        id SERIAL PRIMARY KEY,
        username VARCHAR(100) NOT NULL UNIQUE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS roles (
        id SERIAL PRIMARY KEY,
        name VARCHAR(50) NOT NULL UNIQUE
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS user_roles (
        user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        role_id INTEGER NOT NULL REFERENCES roles(id) ON DELETE CASCADE,
        PRIMARY KEY (user_id, role_id)
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS games (
        id SERIAL PRIMARY KEY,
        name VARCHAR(200) NOT NULL UNIQUE,
        description TEXT,
        image_url TEXT
    )
    ''',
    '''
    CREATE TABLE IF NOT EXISTS scores (
        id SERIAL PRIMARY KEY,
        user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        game_id INTEGER NOT NULL REFERENCES games(id) ON DELETE CASCADE,
        value INTEGER NOT NULL,
        submitted_at TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp(),
        title VARCHAR(200) NOT NULL DEFAULT '',
        description TEXT,
        status VARCHAR(16) NOT NULL DEFAULT 'pending'
            CHECK (status IN ('pending', 'approved', 'rejected')),
        reviewed_by INTEGER REFERENCES users(id) ON DELETE SET NULL,
        reviewed_at TIMESTAMPTZ,
        rejection_reason TEXT
    )
    ''',
    '''
    CREATE INDEX IF NOT EXISTS idx_scores_game_status_user
    ON scores(game_id, status, user_id, value DESC)
    ''',
    '''
    CREATE INDEX IF NOT EXISTS idx_scores_status_submitted
    ON scores(status, submitted_at, id)
    ''',
    '''
    CREATE INDEX IF NOT EXISTS idx_scores_user_submitted
    ON scores(user_id, submitted_at DESC)
    ''',
    '''
    CREATE TABLE IF NOT EXISTS game_moderators (
        id SERIAL PRIMARY KEY,
        game_id INTEGER NOT NULL REFERENCES games(id) ON DELETE CASCADE,
        user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
        assigned_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        UNIQUE(game_id, user_id)
    )
    ''',
    '''
    INSERT INTO roles (name) VALUES ('Admin'), ('Moderator')
    ON CONFLICT (name) DO NOTHING
    ''',
]


class DatabaseConnection:
    def __init__(self):
        self.pool = None
        self._connection_semaphore = None
        self._initialized = False
        self._init_lock = asyncio.Lock()

    async def initialize(self):
        """Initialize database connections"""
        if self._initialized:
            return

        async with self._init_lock:
            if self._initialized:  # Double check after acquiring lock
                return

            try:
                self.pool = await asyncpg.create_pool(
                    host=database.HOST,
                    port=database.PORT,
                    database=database.DATABASE,
                    user=database.USER,
                    password=database.PASSWORD,
                    min_size=database.MIN_POOL_SIZE,
                    max_size=database.MAX_POOL_SIZE,
                    command_timeout=database.COMMAND_TIMEOUT,
                    max_inactive_connection_lifetime=300.0,
                    setup=self._setup_connection
                )

                self._connection_semaphore = asyncio.Semaphore(database.MAX_CONCURRENT_QUERIES)

                await self.create_schema()

                self._initialized = True
                logger.info("Database connection initialized successfully")
            except Exception as e:
                logger.error(f"Failed to initialize database connection: {e}")
                await self.close()
                raise

    async def create_schema(self):
        """Create tables and indexes if they don't exist"""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                # Serialize concurrent bootstraps from several workers
                await conn.execute('SELECT pg_advisory_xact_lock(4242)')
                for statement in SCHEMA:
                    await conn.execute(statement)

    async def _setup_connection(self, connection):
        """Setup connection with proper settings"""
        await connection.execute('SET statement_timeout = 30000')
        await connection.execute('SET idle_in_transaction_session_timeout = 30000')
        await connection.execute('SET lock_timeout = 10000')

    async def close(self):
        """Close database connections"""
        if self.pool:
            await self.pool.close()
            self.pool = None
        self._initialized = False

    @asynccontextmanager
    async def acquire(self):
        """Acquire a pooled connection, bounded by the connection semaphore"""
        if not self._initialized:
            await self.initialize()
        async with self._connection_semaphore:
            async with self.pool.acquire() as conn:
                yield conn
