import pytest

from tests.fakes import WEDNESDAY_10AM, FakeQueueRedis, RecordingCollaborators
from user_onboarding.features.new_user.domain.models import (
    PrivateProfile,
    TrendingItem,
    UserEntity,
)


@pytest.fixture
def user() -> UserEntity:
    return UserEntity(
        id="user-123",
        created_time=WEDNESDAY_10AM,
        name="Ada Lovelace",
        username="ada",
        interests=("science", "politics"),
    )


@pytest.fixture
def profile() -> PrivateProfile:
    return PrivateProfile(
        id="user-123",
        email="ada@example.com",
        notification_preferences={
            "onboarding_flow": ["email"],
            "trending_markets": ["email", "browser"],
        },
    )


@pytest.fixture
def trending_items() -> list[TrendingItem]:
    return [
        TrendingItem(
            id="c1",
            slug="will-it-rain",
            question="Will it rain tomorrow?",
            creator_username="weatherbot",
            importance_score=0.9,
        ),
        TrendingItem(
            id="c2",
            slug="election-2024",
            question="Who wins the election?",
            creator_username="pundit",
            importance_score=0.7,
        ),
    ]


@pytest.fixture
def collaborators(profile, trending_items) -> RecordingCollaborators:
    return RecordingCollaborators(profile, trending_items)


@pytest.fixture
def fake_queue_redis() -> FakeQueueRedis:
    return FakeQueueRedis()
