import asyncio
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional

from ..cache.base import RankedIndex
from ..database.directory import GameDirectory, UserDirectory
from ..database.score_store import ScoreStore
from ..errors import Forbidden, NotFound, ValidationError
from ..models.data import Game, LeaderboardEntry, ModerationResult, Score, ScoreStatus
from ..logger import get_logger
from .moderation import ModerationAuthority

logger = get_logger()


class LeaderboardEngine:
    """Submission, moderation and ranking over the score store and the ranked index.

    The score store is authoritative. The ranked index is a derived cache of
    each user's best approved value per game: it is written on approval and
    rebuilt in full from the store whenever a read finds it absent or empty.
    """

    def __init__(
        self,
        scores: ScoreStore,
        users: UserDirectory,
        games: GameDirectory,
        index: RankedIndex,
        authority: ModerationAuthority
    ):
        self.scores = scores
        self.users = users
        self.games = games
        self.index = index
        self.authority = authority
        self._rebuild_locks: Dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    # --- lookups ---

    async def _require_user(self, user_id: int) -> None:
        if not await self.users.user_exists(user_id):
            raise NotFound(f"User with ID {user_id} not found")

    async def _require_game(self, game_id: int) -> Game:
        game = await self.games.get_game_by_id(game_id)
        if game is None:
            raise NotFound(f"Game with ID {game_id} not found")
        return game

    @staticmethod
    def _check_page(limit: int, offset: int = 0) -> None:
        if limit < 1:
            raise ValidationError("limit must be at least 1")
        if offset < 0:
            raise ValidationError("offset must not be negative")

    async def get_score(self, score_id: int) -> Score:
        score = await self.scores.get_by_id(score_id)
        if score is None:
            raise NotFound(f"Score with ID {score_id} not found")
        return score

    # --- submission ---

    async def submit_score(
        self,
        user_id: int,
        game_id: int,
        value: int,
        title: Optional[str] = None,
        description: Optional[str] = None
    ) -> int:
        """Record a pending score and return its id.

        The value has to beat the user's best approved score for the game;
        a first submission always passes. The ranked index is not touched
        until the score is approved.
        """
        if value < 0:
            raise ValidationError("Score value must not be negative")
        await self._require_user(user_id)
        game = await self._require_game(game_id)

        score, best = await self.scores.insert_pending(
            user_id,
            game_id,
            value,
            title or f"{game.name} - {value}",
            description
        )
        if score is None:
            raise ValidationError(
                f"Score {value} must be higher than your current best of {best} for {game.name}"
            )
        logger.info(f"Score {score.id} submitted by user {user_id} for game {game_id}: {value}")
        return score.id

    # --- moderation ---

    async def _load_for_review(self, score_id: int, moderator_id: int, target: ScoreStatus) -> Score:
        score = await self.get_score(score_id)
        await self._require_user(moderator_id)
        score.status.transition(target)
        if score.user_id == moderator_id:
            raise Forbidden("You cannot review your own score")
        if not await self.authority.can_moderate(score.game_id, moderator_id):
            raise Forbidden(f"User {moderator_id} is not authorized to moderate scores for game {score.game_id}")
        return score

    async def _write_review(
        self,
        score: Score,
        target: ScoreStatus,
        moderator_id: int,
        reason: Optional[str] = None
    ) -> Score:
        updated = await self.scores.set_status(score.id, target, moderator_id, reason)
        if updated is None:
            # Another reviewer got there between our read and our write
            current = await self.get_score(score.id)
            current.status.transition(target)
            raise RuntimeError(f"Score {score.id} could not be updated")
        return updated

    async def approve_score(self, score_id: int, moderator_id: int) -> ModerationResult:
        """Approve a pending score and bring the game's ranked index up to date.

        The approval is committed to the store first. If updating the index
        fails afterwards the approval stands, the failure is logged, and the
        result is returned with cache_synced=False.
        """
        score = await self._load_for_review(score_id, moderator_id, ScoreStatus.APPROVED)
        updated = await self._write_review(score, ScoreStatus.APPROVED, moderator_id)
        logger.info(f"Score {score_id} approved by moderator {moderator_id}")

        synced = await self._sync_user(updated.game_id, updated.user_id)
        return ModerationResult(updated, cache_synced=synced)

    async def reject_score(self, score_id: int, moderator_id: int, reason: Optional[str] = None) -> ModerationResult:
        score = await self._load_for_review(score_id, moderator_id, ScoreStatus.REJECTED)
        updated = await self._write_review(score, ScoreStatus.REJECTED, moderator_id, reason)
        logger.info(f"Score {score_id} rejected by moderator {moderator_id}")
        return ModerationResult(updated)

    async def _sync_user(self, game_id: int, user_id: int) -> bool:
        """Write a user's best approved value from the store into the index.

        Runs under the game's rebuild lock: a rebuild that read the store
        before this approval committed finishes first, and the value read
        here afterwards overwrites whatever it loaded.
        """
        try:
            async with self._rebuild_locks[game_id]:
                if not await self._index_ready(game_id):
                    # A fresh index has to hold every approved user, not just this one
                    await self._rebuild(game_id)
                best = await self.scores.best_approved(game_id, user_id)
                if best is not None:
                    await self.index.upsert(game_id, user_id, best)
            return True
        except Exception as e:
            logger.error(f"Approved score for user {user_id} in game {game_id} not written to ranked index: {e}")
            return False

    # --- ranked reads ---

    async def _index_ready(self, game_id: int) -> bool:
        return await self.index.exists(game_id) and await self.index.cardinality(game_id) > 0

    async def _ensure_index(self, game_id: int) -> bool:
        """Rebuild the game's index from the store if it is absent or empty.

        Returns True if a rebuild happened. Concurrent callers for the same
        game share a single rebuild.
        """
        if await self._index_ready(game_id):
            return False
        async with self._rebuild_locks[game_id]:
            if await self._index_ready(game_id):
                return False
            await self._rebuild(game_id)
            return True

    async def _rebuild(self, game_id: int) -> None:
        best = await self.scores.best_approved_by_user(game_id)
        if not best:
            raise NotFound(f"No approved scores found for game ID {game_id}")
        await self.index.bulk_load(game_id, best)
        logger.info(f"Rebuilt ranked index for game {game_id} with {len(best)} players")

    async def get_leaderboard(self, game_id: int, limit: int) -> List[LeaderboardEntry]:
        """Top players of a game, best first, with current display names"""
        self._check_page(limit)
        await self._require_game(game_id)
        await self._ensure_index(game_id)

        top = await self.index.top(game_id, limit)
        names = await self.users.get_usernames(user_id for user_id, _ in top)
        return [LeaderboardEntry(user_id, names.get(user_id), value) for user_id, value in top]

    async def get_rank(self, game_id: int, user_id: int) -> Optional[int]:
        """1-based rank of a user in a game.

        An absent index is rebuilt in full first; a user missing from a fresh
        rebuild has no approved score and gets NotFound. A user missing from
        an existing index is copied in from the store when they do have an
        approved score, and None is returned when they have none.
        """
        await self._require_game(game_id)
        await self._require_user(user_id)
        rebuilt = await self._ensure_index(game_id)

        rank = await self.index.rank_of(game_id, user_id)
        if rank is not None:
            return rank
        if rebuilt:
            raise NotFound(f"User with ID {user_id} has no approved score in game ID {game_id}")

        best = await self.scores.best_approved(game_id, user_id)
        if best is None:
            return None
        logger.warning(f"User {user_id} missing from ranked index of game {game_id}, restoring from store")
        await self.index.upsert(game_id, user_id, best)
        return await self.index.rank_of(game_id, user_id)

    async def rebuild_leaderboard(self, game_id: int) -> int:
        """Drop and rebuild a game's index; returns the number of players indexed"""
        await self._require_game(game_id)
        async with self._rebuild_locks[game_id]:
            await self.index.clear(game_id)
            await self._rebuild(game_id)
        return await self.index.cardinality(game_id)

    async def invalidate_leaderboard(self, game_id: int) -> None:
        """Drop a game's index so the next read rebuilds it"""
        await self.index.clear(game_id)
        logger.info(f"Ranked index for game {game_id} invalidated")

    # --- store-only reads ---

    async def get_top_players_across_games(self, start_date: datetime, end_date: datetime, limit: int) -> List[LeaderboardEntry]:
        """Highest approved scores submitted within [start_date, end_date].

        Reads the store directly; a user shows up once per qualifying score.
        """
        if start_date > end_date:
            raise ValidationError("start_date must not be after end_date")
        self._check_page(limit)
        return await self.scores.top_approved_between(start_date, end_date, limit)

    async def get_scores_by_user(self, user_id: int, limit: int, offset: int = 0) -> List[Score]:
        self._check_page(limit, offset)
        await self._require_user(user_id)
        return await self.scores.scores_by_user(user_id, limit, offset, approved_only=True)

    async def get_all_scores_by_user(
        self,
        user_id: int,
        limit: int,
        offset: int = 0,
        *,
        requester_id: int
    ) -> List[Score]:
        """Every score of a user regardless of status; visible to the owner only"""
        if requester_id != user_id:
            raise Forbidden("Only the owner can view all of their scores")
        self._check_page(limit, offset)
        await self._require_user(user_id)
        return await self.scores.scores_by_user(user_id, limit, offset, approved_only=False)

    async def get_recent_scores(self, limit: int, offset: int = 0) -> List[Score]:
        self._check_page(limit, offset)
        return await self.scores.recent_approved(limit, offset)

    async def get_pending_scores_for_game(
        self,
        game_id: int,
        limit: int,
        offset: int = 0,
        *,
        moderator_id: int
    ) -> List[Score]:
        """Review queue of one game, oldest first; only for its moderators"""
        self._check_page(limit, offset)
        await self._require_game(game_id)
        if not await self.authority.can_moderate(game_id, moderator_id):
            raise Forbidden(f"User {moderator_id} is not authorized to view pending scores for game {game_id}")
        return await self.scores.pending_for_game(game_id, limit, offset)

    async def get_pending_scores_for_moderator(self, moderator_id: int, limit: int, offset: int = 0) -> List[Score]:
        """Everything a moderator can review: their assigned games plus, for
        global moderators, every game without assigned moderators"""
        self._check_page(limit, offset)
        await self._require_user(moderator_id)
        game_ids = await self.authority.games_moderated_by(moderator_id)
        is_global = await self.authority.is_global_moderator(moderator_id)
        if not game_ids and not is_global:
            return []
        return await self.scores.pending_for_moderator(game_ids, is_global, limit, offset)
