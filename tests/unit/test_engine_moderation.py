"""Tests for approving and rejecting scores."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from leaderboard.errors import Forbidden, InvalidState, NotFound
from leaderboard.models.data import LeaderboardEntry, ScoreStatus
from tests.fakes import build_world


class TestApproveScore:
    def setup_method(self) -> None:
        self.world = build_world()
        self.engine = self.world.engine

    async def test_global_moderator_approves(self) -> None:
        score_id = await self.engine.submit_score(1, 7, 100)

        result = await self.engine.approve_score(score_id, 10)

        assert result.cache_synced is True
        assert result.score.status is ScoreStatus.APPROVED
        assert result.score.reviewed_by == 10
        assert result.score.reviewed_at is not None
        assert await self.world.index.score_of(7, 1) == 100

    async def test_assigned_moderator_approves(self) -> None:
        await self.world.moderators.add(9, 11)
        score_id = await self.engine.submit_score(1, 9, 40)

        result = await self.engine.approve_score(score_id, 11)

        assert result.score.status is ScoreStatus.APPROVED

    async def test_global_moderator_locked_out_of_assigned_game(self) -> None:
        await self.world.moderators.add(9, 11)
        score_id = await self.engine.submit_score(1, 9, 40)

        with pytest.raises(Forbidden):
            await self.engine.approve_score(score_id, 10)

        assert (await self.engine.get_score(score_id)).status is ScoreStatus.PENDING

    async def test_plain_user_cannot_approve(self) -> None:
        score_id = await self.engine.submit_score(1, 7, 100)

        with pytest.raises(Forbidden):
            await self.engine.approve_score(score_id, 2)

        assert await self.world.index.exists(7) is False

    async def test_cannot_approve_own_score(self) -> None:
        score_id = await self.engine.submit_score(10, 7, 100)

        with pytest.raises(Forbidden, match="your own score"):
            await self.engine.approve_score(score_id, 10)

    async def test_unknown_score(self) -> None:
        with pytest.raises(NotFound):
            await self.engine.approve_score(99, 10)

    async def test_unknown_moderator(self) -> None:
        score_id = await self.engine.submit_score(1, 7, 100)

        with pytest.raises(NotFound, match="User with ID 404"):
            await self.engine.approve_score(score_id, 404)

    async def test_approving_twice(self) -> None:
        score_id = await self.engine.submit_score(1, 7, 100)
        await self.engine.approve_score(score_id, 10)

        with pytest.raises(InvalidState):
            await self.engine.approve_score(score_id, 10)

    async def test_state_is_checked_before_authority(self) -> None:
        score_id = await self.engine.submit_score(1, 7, 100)
        await self.engine.approve_score(score_id, 10)

        with pytest.raises(InvalidState):
            await self.engine.approve_score(score_id, 2)

    async def test_lower_approval_keeps_best_in_index(self) -> None:
        low = await self.engine.submit_score(1, 7, 100)
        high = await self.engine.submit_score(1, 7, 150)

        await self.engine.approve_score(high, 10)
        await self.engine.approve_score(low, 10)

        assert await self.world.index.score_of(7, 1) == 150
        assert await self.world.index.cardinality(7) == 1

    async def test_approval_into_absent_index_rebuilds_every_player(self) -> None:
        self.world.scores.add_score(2, 7, 300)
        self.world.scores.add_score(3, 7, 200)
        score_id = await self.engine.submit_score(1, 7, 100)

        result = await self.engine.approve_score(score_id, 10)

        assert result.cache_synced is True
        assert await self.world.index.top(7, 10) == [(2, 300), (3, 200), (1, 100)]

    async def test_index_failure_keeps_approval(self) -> None:
        first = await self.engine.submit_score(2, 7, 300)
        await self.engine.approve_score(first, 10)
        self.world.index.upsert = AsyncMock(side_effect=ConnectionError("redis down"))
        score_id = await self.engine.submit_score(1, 7, 100)

        result = await self.engine.approve_score(score_id, 10)

        assert result.cache_synced is False
        assert result.score.status is ScoreStatus.APPROVED
        assert (await self.engine.get_score(score_id)).status is ScoreStatus.APPROVED
        assert await self.world.index.score_of(7, 1) is None

    async def test_concurrent_review_loses_with_invalid_state(self) -> None:
        score_id = await self.engine.submit_score(1, 7, 100)
        set_status = self.world.scores.set_status

        async def racing(score_id, status, reviewer_id, reason=None):
            # another moderator commits a rejection first
            await set_status(score_id, ScoreStatus.REJECTED, 11, "cheating")
            return await set_status(score_id, status, reviewer_id, reason)

        self.world.scores.set_status = racing

        with pytest.raises(InvalidState, match="already rejected"):
            await self.engine.approve_score(score_id, 10)

        assert await self.world.index.exists(7) is False


class TestRejectScore:
    def setup_method(self) -> None:
        self.world = build_world()
        self.engine = self.world.engine

    async def test_reject_with_reason(self) -> None:
        score_id = await self.engine.submit_score(1, 7, 100)

        result = await self.engine.reject_score(score_id, 10, reason="Screenshot missing")

        assert result.score.status is ScoreStatus.REJECTED
        assert result.score.rejection_reason == "Screenshot missing"
        assert result.score.reviewed_by == 10
        assert await self.world.index.exists(7) is False

    async def test_reject_without_reason(self) -> None:
        score_id = await self.engine.submit_score(1, 7, 100)

        result = await self.engine.reject_score(score_id, 10)

        assert result.score.rejection_reason is None

    async def test_reject_after_approve(self) -> None:
        score_id = await self.engine.submit_score(1, 7, 100)
        await self.engine.approve_score(score_id, 10)

        with pytest.raises(InvalidState, match="already approved"):
            await self.engine.reject_score(score_id, 10)

    async def test_cannot_reject_own_score(self) -> None:
        score_id = await self.engine.submit_score(10, 7, 100)

        with pytest.raises(Forbidden):
            await self.engine.reject_score(score_id, 10)

    async def test_rejected_score_does_not_block_resubmission(self) -> None:
        score_id = await self.engine.submit_score(1, 7, 500)
        await self.engine.reject_score(score_id, 10)

        assert await self.engine.submit_score(1, 7, 50) is not None


class TestApprovalDuringRebuild:
    """A rebuild that read the store before an approval committed must not
    leave the old best value in the index."""

    def setup_method(self) -> None:
        self.world = build_world()
        self.engine = self.world.engine
        self.world.scores.add_score(1, 7, 100)
        self.pending = self.world.scores.add_score(1, 7, 150, status=ScoreStatus.PENDING)

        self.loaded = asyncio.Event()
        self.release = asyncio.Event()
        load = self.world.scores.best_approved_by_user

        async def paused_load(game_id):
            best = await load(game_id)
            self.loaded.set()
            await self.release.wait()
            return best

        self.world.scores.best_approved_by_user = paused_load

    async def _approve_while_rebuilding(self, rebuild):
        rebuilding = asyncio.create_task(rebuild)
        await self.loaded.wait()

        approving = asyncio.create_task(self.engine.approve_score(self.pending, 10))
        for _ in range(5):
            await asyncio.sleep(0)
        assert (await self.engine.get_score(self.pending)).status is ScoreStatus.APPROVED

        self.release.set()
        await rebuilding
        return await approving

    async def test_read_triggered_rebuild(self) -> None:
        result = await self._approve_while_rebuilding(self.engine.get_leaderboard(7, 10))

        assert result.cache_synced is True
        assert await self.world.index.score_of(7, 1) == 150
        assert await self.engine.get_leaderboard(7, 10) == [LeaderboardEntry(1, "alice", 150)]

    async def test_explicit_rebuild(self) -> None:
        self.release.set()
        await self.engine.get_leaderboard(7, 10)
        self.loaded.clear()
        self.release.clear()

        result = await self._approve_while_rebuilding(self.engine.rebuild_leaderboard(7))

        assert result.cache_synced is True
        assert await self.world.index.score_of(7, 1) == 150
