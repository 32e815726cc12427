from typing import List

from ..database.directory import ADMIN_ROLE, MODERATOR_ROLE, GameDirectory, ModeratorStore, UserDirectory
from ..errors import Forbidden, NotFound, ValidationError
from ..models.data import GameModerator
from ..logger import get_logger

logger = get_logger()


class ModerationAuthority:
    """Decides who may review scores for a game and manages assignments.

    A user may moderate a game when they are assigned to it, or when the
    game has no assignments at all and they hold the global Moderator role.
    Once a game has any assigned moderator, global moderators lose access
    to it.
    """

    def __init__(self, moderators: ModeratorStore, users: UserDirectory, games: GameDirectory):
        self.moderators = moderators
        self.users = users
        self.games = games

    async def can_moderate(self, game_id: int, user_id: int) -> bool:
        if await self.moderators.is_assigned(game_id, user_id):
            return True
        if await self.moderators.has_assignments(game_id):
            return False
        return await self.is_global_moderator(user_id)

    async def is_global_moderator(self, user_id: int) -> bool:
        return await self.users.has_role(user_id, MODERATOR_ROLE)

    async def is_admin(self, user_id: int) -> bool:
        return await self.users.has_role(user_id, ADMIN_ROLE)

    async def list_moderators(self, game_id: int) -> List[GameModerator]:
        if await self.games.get_game_by_id(game_id) is None:
            raise NotFound(f"Game with ID {game_id} not found")
        return await self.moderators.list_moderators(game_id)

    async def games_moderated_by(self, user_id: int) -> List[int]:
        return await self.moderators.games_for_moderator(user_id)

    async def _require_admin(self, admin_id: int):
        if not await self.is_admin(admin_id):
            raise Forbidden("Only administrators can manage game moderators")

    async def assign_moderator(self, game_id: int, user_id: int, admin_id: int) -> GameModerator:
        await self._require_admin(admin_id)
        game = await self.games.get_game_by_id(game_id)
        if game is None:
            raise NotFound(f"Game with ID {game_id} not found")
        user = await self.users.get_user_by_id(user_id)
        if user is None:
            raise NotFound(f"User with ID {user_id} not found")

        assignment = await self.moderators.add(game_id, user_id)
        if assignment is None:
            raise ValidationError(f"User {user.username} is already a moderator for {game.name}")
        if assignment.username is None:
            assignment.username = user.username
        logger.info(f"User {user_id} assigned as moderator of game {game_id} by admin {admin_id}")
        return assignment

    async def remove_moderator(self, game_id: int, user_id: int, admin_id: int) -> None:
        await self._require_admin(admin_id)
        if not await self.moderators.remove(game_id, user_id):
            raise NotFound(f"User {user_id} is not a moderator for game {game_id}")
        logger.info(f"User {user_id} removed as moderator of game {game_id} by admin {admin_id}")
