from typing import Dict, Iterable, List, Optional

from ..models.data import Game, GameModerator, User

ADMIN_ROLE = 'Admin'
MODERATOR_ROLE = 'Moderator'

USER_QUERY = '''
    SELECT u.id, u.username,
           COALESCE(array_agg(r.name) FILTER (WHERE r.name IS NOT NULL), '{}') AS roles
    FROM users u
    LEFT JOIN user_roles ur ON ur.user_id = u.id
    LEFT JOIN roles r ON r.id = ur.role_id
'''


def _user_from_row(row) -> User:
    return User(row['id'], row['username'], list(row['roles']))


class UserDirectory:
    """Read-side user lookups the engine depends on"""

    def __init__(self, db_connection):
        self.db = db_connection

    async def get_user_by_id(self, user_id: int) -> Optional[User]:
        async with self.db.acquire() as conn:
            row = await conn.fetchrow(USER_QUERY + ' WHERE u.id = $1 GROUP BY u.id', user_id)
        return _user_from_row(row) if row else None

    async def get_user_by_username(self, username: str) -> Optional[User]:
        async with self.db.acquire() as conn:
            row = await conn.fetchrow(USER_QUERY + ' WHERE u.username = $1 GROUP BY u.id', username)
        return _user_from_row(row) if row else None

    async def user_exists(self, user_id: int) -> bool:
        async with self.db.acquire() as conn:
            return await conn.fetchval('SELECT EXISTS(SELECT 1 FROM users WHERE id = $1)', user_id)

    async def has_role(self, user_id: int, role: str) -> bool:
        async with self.db.acquire() as conn:
            return await conn.fetchval('''
                SELECT EXISTS(
                    SELECT 1
                    FROM user_roles ur
                    JOIN roles r ON r.id = ur.role_id
                    WHERE ur.user_id = $1 AND r.name = $2
                )
            ''', user_id, role)

    async def get_usernames(self, user_ids: Iterable[int]) -> Dict[int, str]:
        """Display names for many users in one round trip"""
        ids = list(user_ids)
        if not ids:
            return {}
        async with self.db.acquire() as conn:
            rows = await conn.fetch('SELECT id, username FROM users WHERE id = ANY($1::int[])', ids)
        return {row['id']: row['username'] for row in rows}


class GameDirectory:
    def __init__(self, db_connection):
        self.db = db_connection

    async def get_game_by_id(self, game_id: int) -> Optional[Game]:
        async with self.db.acquire() as conn:
            row = await conn.fetchrow(
                'SELECT id, name, description, image_url FROM games WHERE id = $1', game_id
            )
        if not row:
            return None
        return Game(row['id'], row['name'], row['description'], row['image_url'])


class ModeratorStore:
    """Per-game moderator assignments"""

    def __init__(self, db_connection):
        self.db = db_connection

    async def list_moderators(self, game_id: int) -> List[GameModerator]:
        async with self.db.acquire() as conn:
            rows = await conn.fetch('''
                SELECT gm.id, gm.game_id, gm.user_id, u.username, gm.assigned_at
                FROM game_moderators gm
                JOIN users u ON u.id = gm.user_id
                WHERE gm.game_id = $1
                ORDER BY gm.assigned_at, gm.id
            ''', game_id)
        return [GameModerator(row) for row in rows]

    async def is_assigned(self, game_id: int, user_id: int) -> bool:
        async with self.db.acquire() as conn:
            return await conn.fetchval(
                'SELECT EXISTS(SELECT 1 FROM game_moderators WHERE game_id = $1 AND user_id = $2)',
                game_id, user_id
            )

    async def has_assignments(self, game_id: int) -> bool:
        async with self.db.acquire() as conn:
            return await conn.fetchval(
                'SELECT EXISTS(SELECT 1 FROM game_moderators WHERE game_id = $1)', game_id
            )

    async def add(self, game_id: int, user_id: int) -> Optional[GameModerator]:
        """Assign a moderator; returns None if the assignment already exists"""
        async with self.db.acquire() as conn:
            row = await conn.fetchrow('''
                INSERT INTO game_moderators (game_id, user_id)
                VALUES ($1, $2)
                ON CONFLICT (game_id, user_id) DO NOTHING
                RETURNING id, game_id, user_id, assigned_at
            ''', game_id, user_id)
        return GameModerator(row) if row else None

    async def remove(self, game_id: int, user_id: int) -> bool:
        async with self.db.acquire() as conn:
            deleted = await conn.fetchval('''
                DELETE FROM game_moderators
                WHERE game_id = $1 AND user_id = $2
                RETURNING id
            ''', game_id, user_id)
        return deleted is not None

    async def games_for_moderator(self, user_id: int) -> List[int]:
        async with self.db.acquire() as conn:
            rows = await conn.fetch(
                'SELECT game_id FROM game_moderators WHERE user_id = $1 ORDER BY game_id', user_id
            )
        return [row['game_id'] for row in rows]
