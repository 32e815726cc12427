from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple
import asyncio

from asyncpg.exceptions import PostgresConnectionError

from ..models.data import LeaderboardEntry, Score, ScoreStatus
from ..logger import get_logger

logger = get_logger()

SCORE_COLUMNS = '''
    id, user_id, game_id, value, submitted_at, title, description,
    status, reviewed_by, reviewed_at, rejection_reason
'''

RETRYABLE_ERRORS = (PostgresConnectionError, OSError, asyncio.TimeoutError)


class ScoreStore:
    """Durable score records in PostgreSQL; the source of truth for rankings"""

    def __init__(self, db_connection, max_retries: int = 3, retry_delay: float = 0.5):
        self.db = db_connection
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    async def _read(self, query: str, *args, method: str = 'fetch'):
        """Run a read-only query, retrying on connection failures"""
        retry_count = 0
        while True:
            try:
                async with self.db.acquire() as conn:
                    return await getattr(conn, method)(query, *args)
            except RETRYABLE_ERRORS as e:
                retry_count += 1
                logger.error(f"Database error (attempt {retry_count}/{self.max_retries}): {e}")
                if retry_count >= self.max_retries:
                    raise
                await asyncio.sleep(self.retry_delay * retry_count)

    async def get_by_id(self, score_id: int) -> Optional[Score]:
        row = await self._read(
            f'SELECT {SCORE_COLUMNS} FROM scores WHERE id = $1',
            score_id, method='fetchrow'
        )
        return Score(row) if row else None

    async def insert_pending(
        self,
        user_id: int,
        game_id: int,
        value: int,
        title: str,
        description: Optional[str] = None
    ) -> Tuple[Optional[Score], Optional[int]]:
        """Insert a pending score if it beats the user's best approved value.

        The best-value check and the insert share one transaction holding a
        per-(user, game) advisory lock. Returns (score, previous_best); score
        is None when the value did not exceed previous_best.
        """
        async with self.db.acquire() as conn:
            async with conn.transaction():
                await conn.execute('SELECT pg_advisory_xact_lock($1::int, $2::int)', user_id, game_id)
                best = await conn.fetchval('''
                    SELECT MAX(value)
                    FROM scores
                    WHERE game_id = $1 AND user_id = $2 AND status = 'approved'
                ''', game_id, user_id)
                if best is not None and value <= best:
                    return None, best
                row = await conn.fetchrow(f'''
                    INSERT INTO scores (user_id, game_id, value, title, description, status)
                    VALUES ($1, $2, $3, $4, $5, 'pending')
                    RETURNING {SCORE_COLUMNS}
                ''', user_id, game_id, value, title, description)
                return Score(row), best

    async def set_status(
        self,
        score_id: int,
        status: ScoreStatus,
        reviewer_id: int,
        reason: Optional[str] = None
    ) -> Optional[Score]:
        """Move a pending score to its reviewed status.

        The status check is part of the UPDATE itself, so only one of several
        concurrent reviews can win. Returns None when the score was no longer
        pending (or no longer exists) at write time.
        """
        async with self.db.acquire() as conn:
            row = await conn.fetchrow(f'''
                UPDATE scores
                SET status = $2,
                    reviewed_by = $3,
                    reviewed_at = now(),
                    rejection_reason = $4
                WHERE id = $1 AND status = 'pending'
                RETURNING {SCORE_COLUMNS}
            ''', score_id, status.value, reviewer_id, reason)
        return Score(row) if row else None

    async def best_approved(self, game_id: int, user_id: int) -> Optional[int]:
        return await self._read('''
            SELECT MAX(value)
            FROM scores
            WHERE game_id = $1 AND user_id = $2 AND status = 'approved'
        ''', game_id, user_id, method='fetchval')

    async def best_approved_by_user(self, game_id: int) -> Dict[int, int]:
        """Every user's best approved value for a game"""
        rows = await self._read('''
            SELECT user_id, MAX(value) AS best
            FROM scores
            WHERE game_id = $1 AND status = 'approved'
            GROUP BY user_id
        ''', game_id)
        return {row['user_id']: row['best'] for row in rows}

    async def top_approved_between(self, start: datetime, end: datetime, limit: int) -> List[LeaderboardEntry]:
        """Highest approved scores submitted in [start, end], across all games.

        A user with several qualifying scores appears once per score.
        """
        rows = await self._read('''
            SELECT s.user_id, u.username, s.value
            FROM scores s
            JOIN users u ON u.id = s.user_id
            WHERE s.status = 'approved'
              AND s.submitted_at >= $1
              AND s.submitted_at <= $2
            ORDER BY s.value DESC, s.submitted_at, s.id
            LIMIT $3
        ''', start, end, limit)
        return [LeaderboardEntry(row['user_id'], row['username'], row['value']) for row in rows]

    async def scores_by_user(self, user_id: int, limit: int, offset: int, approved_only: bool = True) -> List[Score]:
        """A user's scores, newest first"""
        rows = await self._read(f'''
            SELECT {SCORE_COLUMNS}
            FROM scores
            WHERE user_id = $1 AND (NOT $2 OR status = 'approved')
            ORDER BY submitted_at DESC, id DESC
            LIMIT $3 OFFSET $4
        ''', user_id, approved_only, limit, offset)
        return [Score(row) for row in rows]

    async def recent_approved(self, limit: int, offset: int) -> List[Score]:
        rows = await self._read(f'''
            SELECT {SCORE_COLUMNS}
            FROM scores
            WHERE status = 'approved'
            ORDER BY submitted_at DESC, id DESC
            LIMIT $1 OFFSET $2
        ''', limit, offset)
        return [Score(row) for row in rows]

    async def pending_for_game(self, game_id: int, limit: int, offset: int) -> List[Score]:
        """Review queue of one game, oldest submission first"""
        rows = await self._read(f'''
            SELECT {SCORE_COLUMNS}
            FROM scores
            WHERE game_id = $1 AND status = 'pending'
            ORDER BY submitted_at, id
            LIMIT $2 OFFSET $3
        ''', game_id, limit, offset)
        return [Score(row) for row in rows]

    async def pending_for_moderator(
        self,
        game_ids: Sequence[int],
        include_unmoderated: bool,
        limit: int,
        offset: int
    ) -> List[Score]:
        """Merged review queue over the given games and, optionally, every
        game that has no assigned moderators. Oldest submission first."""
        rows = await self._read(f'''
            SELECT {SCORE_COLUMNS}
            FROM scores s
            WHERE s.status = 'pending'
              AND (
                s.game_id = ANY($1::int[])
                OR ($2 AND NOT EXISTS (
                    SELECT 1 FROM game_moderators gm WHERE gm.game_id = s.game_id
                ))
              )
            ORDER BY s.submitted_at, s.id
            LIMIT $3 OFFSET $4
        ''', list(game_ids), include_unmoderated, limit, offset)
        return [Score(row) for row in rows]
