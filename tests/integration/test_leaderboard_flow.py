"""Submission, moderation and ranking against real PostgreSQL and Redis."""

import asyncio
from datetime import datetime, timedelta, UTC

import pytest

from leaderboard.errors import Forbidden, InvalidState, NotFound, ValidationError
from leaderboard.models.data import LeaderboardEntry, ScoreStatus

pytestmark = pytest.mark.integration


class TestDirectories:
    async def test_user_roles(self, world) -> None:
        admin = await world.users.get_user_by_username("admin")

        assert admin.id == 12
        assert admin.roles == ["Admin"]
        assert (await world.users.get_user_by_id(1)).roles == []
        assert await world.users.has_role(10, "Moderator") is True
        assert await world.users.get_usernames([1, 2, 404]) == {1: "alice", 2: "bob"}

    async def test_moderator_assignments(self, world) -> None:
        assignment = await world.authority.assign_moderator(9, 11, admin_id=12)

        assert assignment.username == "gamemod"
        assert await world.moderators.add(9, 11) is None
        assert [m.user_id for m in await world.authority.list_moderators(9)] == [11]
        assert await world.moderators.remove(9, 11) is True
        assert await world.moderators.remove(9, 11) is False


class TestScenarios:
    async def test_assigned_moderator_flow(self, world) -> None:
        engine = world.engine
        await world.authority.assign_moderator(7, 11, admin_id=12)

        first = await engine.submit_score(1, 7, 100)
        await engine.approve_score(first, 11)
        assert await engine.get_leaderboard(7, 10) == [LeaderboardEntry(1, "alice", 100)]

        with pytest.raises(ValidationError):
            await engine.submit_score(1, 7, 50)

        second = await engine.submit_score(1, 7, 150)
        await engine.approve_score(second, 11)

        assert await engine.get_leaderboard(7, 10) == [LeaderboardEntry(1, "alice", 150)]
        assert await engine.get_rank(7, 1) == 1
        assert await world.redis.zcard("it-leaderboard:7") == 1

    async def test_assignment_revokes_global_moderator(self, world) -> None:
        engine = world.engine
        first = await engine.submit_score(1, 9, 10)
        await engine.approve_score(first, 10)

        await world.authority.assign_moderator(9, 11, admin_id=12)
        second = await engine.submit_score(2, 9, 20)

        with pytest.raises(Forbidden):
            await engine.approve_score(second, 10)


class TestConsistency:
    async def test_rebuild_from_store(self, world) -> None:
        engine = world.engine
        for user_id, value in [(1, 100), (2, 300), (3, 200)]:
            score_id = await engine.submit_score(user_id, 7, value)
            await engine.approve_score(score_id, 10)
        before = await engine.get_leaderboard(7, 10)

        await world.redis.delete("it-leaderboard:7")

        assert await engine.get_leaderboard(7, 10) == before
        assert [row.user_id for row in before] == [2, 3, 1]

    async def test_rank_without_index_rebuilds_everything(self, world) -> None:
        engine = world.engine
        for user_id, value in [(1, 100), (2, 300)]:
            score_id = await engine.submit_score(user_id, 7, value)
            await engine.approve_score(score_id, 10)
        await engine.invalidate_leaderboard(7)

        assert await engine.get_rank(7, 1) == 2
        assert await world.index.cardinality(7) == 2
        with pytest.raises(NotFound):
            await engine.get_rank(9, 1)

    async def test_concurrent_reviews_have_one_winner(self, world) -> None:
        engine = world.engine
        await world.authority.assign_moderator(7, 11, admin_id=12)
        await world.authority.assign_moderator(7, 10, admin_id=12)
        score_id = await engine.submit_score(1, 7, 100)

        results = await asyncio.gather(
            engine.approve_score(score_id, 10),
            engine.reject_score(score_id, 11, "duplicate"),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], InvalidState)
        final = await engine.get_score(score_id)
        assert final.status in (ScoreStatus.APPROVED, ScoreStatus.REJECTED)

    async def test_concurrent_submissions_are_serialized(self, world) -> None:
        engine = world.engine
        score_id = await engine.submit_score(1, 7, 100)
        await engine.approve_score(score_id, 10)

        results = await asyncio.gather(
            engine.submit_score(1, 7, 50),
            engine.submit_score(1, 7, 150),
            return_exceptions=True,
        )

        assert isinstance(results[0], ValidationError)
        assert isinstance(results[1], int)


class TestStoreQueries:
    async def test_top_players_in_range(self, world) -> None:
        engine = world.engine
        for user_id, game_id, value in [(1, 7, 500), (1, 9, 400), (2, 7, 450)]:
            score_id = await engine.submit_score(user_id, game_id, value)
            await engine.approve_score(score_id, 10)
        await engine.submit_score(3, 7, 999)
        now = datetime.now(UTC)

        rows = await engine.get_top_players_across_games(now - timedelta(hours=1), now + timedelta(hours=1), 10)

        assert [(row.user_name, row.score) for row in rows] == [("alice", 500), ("bob", 450), ("alice", 400)]

    async def test_pending_queues(self, world) -> None:
        engine = world.engine
        await world.authority.assign_moderator(9, 11, admin_id=12)
        tetris = await engine.submit_score(1, 7, 100)
        snake = await engine.submit_score(2, 9, 40)

        assert [s.id for s in await engine.get_pending_scores_for_moderator(10, 10)] == [tetris]
        assert [s.id for s in await engine.get_pending_scores_for_moderator(11, 10)] == [snake]
        assert [s.id for s in await engine.get_pending_scores_for_game(7, 10, moderator_id=10)] == [tetris]

    async def test_user_listings(self, world) -> None:
        engine = world.engine
        approved = await engine.submit_score(1, 7, 100)
        await engine.approve_score(approved, 10)
        pending = await engine.submit_score(1, 7, 200)

        assert [s.id for s in await engine.get_scores_by_user(1, 10)] == [approved]
        assert [s.id for s in await engine.get_all_scores_by_user(1, 10, requester_id=1)] == [pending, approved]
        assert [s.id for s in await engine.get_recent_scores(10)] == [approved]
