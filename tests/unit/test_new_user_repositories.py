from contextlib import asynccontextmanager
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from user_onboarding.features.new_user.domain.models import PrivateProfile, TrendingItem
from user_onboarding.features.new_user.repository import (
    FeedRepository,
    LeagueRepository,
    PrivateUserRepository,
    TrendingRepository,
)

NOW = datetime(2024, 1, 10, 10, 0, tzinfo=UTC)
LEAGUE_MODULE = "user_onboarding.features.new_user.repository.league_repository"


def _connection() -> MagicMock:
    connection = MagicMock()
    connection.transactions_opened = 0

    @asynccontextmanager
    async def transaction():
        connection.transactions_opened += 1
        yield

    connection.transaction = transaction
    return connection


@pytest.mark.asyncio
async def test_private_profile_found(monkeypatch):
    monkeypatch.setattr(
        "user_onboarding.features.new_user.repository.private_user_repository.fetch_one",
        AsyncMock(
            return_value={
                "id": "user-123",
                "email": "ada@example.com",
                "notification_preferences": {"onboarding_flow": ["email"]},
            }
        ),
    )

    profile = await PrivateUserRepository.get_private_profile("user-123")

    assert profile == PrivateProfile(
        id="user-123",
        email="ada@example.com",
        notification_preferences={"onboarding_flow": ["email"]},
    )


@pytest.mark.asyncio
async def test_private_profile_missing(monkeypatch):
    monkeypatch.setattr(
        "user_onboarding.features.new_user.repository.private_user_repository.fetch_one",
        AsyncMock(return_value=None),
    )

    assert await PrivateUserRepository.get_private_profile("user-123") is None


@pytest.mark.asyncio
async def test_private_profile_null_preferences(monkeypatch):
    monkeypatch.setattr(
        "user_onboarding.features.new_user.repository.private_user_repository.fetch_one",
        AsyncMock(return_value={"id": "u", "email": None, "notification_preferences": None}),
    )

    profile = await PrivateUserRepository.get_private_profile("u")

    assert profile.notification_preferences == {}
    assert profile.channel_enabled("onboarding_flow") is False


@pytest.mark.asyncio
async def test_enroll_without_active_season(monkeypatch):
    monkeypatch.setattr(f"{LEAGUE_MODULE}.fetch_one", AsyncMock(return_value=None))
    execute_mock = AsyncMock()
    monkeypatch.setattr(f"{LEAGUE_MODULE}.execute_query", execute_mock)

    enrolled = await LeagueRepository().enroll(_connection(), "user-123", NOW)

    assert enrolled is False
    execute_mock.assert_not_awaited()


@pytest.mark.asyncio
async def test_enroll_is_idempotent_for_existing_member(monkeypatch):
    monkeypatch.setattr(
        f"{LEAGUE_MODULE}.fetch_one",
        AsyncMock(side_effect=[{"season": 7}, {"cohort": "s7-d1-1"}]),
    )
    execute_mock = AsyncMock()
    monkeypatch.setattr(f"{LEAGUE_MODULE}.execute_query", execute_mock)

    enrolled = await LeagueRepository().enroll(_connection(), "user-123", NOW)

    assert enrolled is True
    execute_mock.assert_not_awaited()


@pytest.mark.asyncio
async def test_enroll_joins_open_cohort(monkeypatch):
    fetch_mock = AsyncMock(
        side_effect=[{"season": 7}, None, {"cohort": "s7-d1-2", "member_count": 24}]
    )
    execute_mock = AsyncMock(return_value=1)
    monkeypatch.setattr(f"{LEAGUE_MODULE}.fetch_one", fetch_mock)
    monkeypatch.setattr(f"{LEAGUE_MODULE}.execute_query", execute_mock)
    connection = _connection()

    enrolled = await LeagueRepository(cohort_size=25).enroll(connection, "user-123", NOW)

    assert enrolled is True
    assert connection.transactions_opened == 1
    open_cohort_params = fetch_mock.await_args_list[2].args[1]
    assert open_cohort_params == (7, 1, 25)
    insert_query, insert_params = execute_mock.await_args_list[-1].args
    assert "INSERT INTO league_members" in insert_query
    assert insert_params == (7, 1, "s7-d1-2", "user-123", NOW)
    assert all(c.kwargs["connection"] is connection for c in execute_mock.await_args_list)


@pytest.mark.asyncio
async def test_enroll_creates_cohort_when_all_full(monkeypatch):
    fetch_mock = AsyncMock(side_effect=[{"season": 7}, None, None, {"n": 2}])
    execute_mock = AsyncMock(return_value=1)
    monkeypatch.setattr(f"{LEAGUE_MODULE}.fetch_one", fetch_mock)
    monkeypatch.setattr(f"{LEAGUE_MODULE}.execute_query", execute_mock)

    enrolled = await LeagueRepository().enroll(_connection(), "user-123", NOW)

    assert enrolled is True
    queries = [c.args[0] for c in execute_mock.await_args_list]
    assert "INSERT INTO league_cohorts" in queries[1]
    assert execute_mock.await_args_list[1].args[1] == (7, 1, "s7-d1-3")
    assert execute_mock.await_args_list[2].args[1][2] == "s7-d1-3"


@pytest.mark.asyncio
async def test_trending_maps_rows(monkeypatch):
    fetch_all_mock = AsyncMock(
        return_value=[
            {
                "id": 1,
                "slug": "s",
                "question": "Q?",
                "creator_username": "alice",
                "importance_score": None,
            }
        ]
    )
    monkeypatch.setattr(
        "user_onboarding.features.new_user.repository.trending_repository.fetch_all",
        fetch_all_mock,
    )

    items = await TrendingRepository(limit=5).get_trending()

    assert items == [
        TrendingItem(id="1", slug="s", question="Q?", creator_username="alice", importance_score=0.0)
    ]
    assert fetch_all_mock.await_args.args[1] == (5,)


@pytest.mark.asyncio
async def test_feed_personalization_uses_given_connection(monkeypatch):
    execute_mock = AsyncMock(return_value=4)
    monkeypatch.setattr(
        "user_onboarding.features.new_user.repository.feed_repository.execute_query",
        execute_mock,
    )
    connection = object()

    inserted = await FeedRepository(seed_limit=10).personalize("user-123", connection)

    assert inserted == 4
    query, params = execute_mock.await_args.args
    assert "ON CONFLICT (user_id, contract_id) DO NOTHING" in query
    assert params == ("user-123", 10)
    assert execute_mock.await_args.kwargs["connection"] is connection
