from user_onboarding.features.new_user.repository.feed_repository import FeedRepository
from user_onboarding.features.new_user.repository.league_repository import LeagueRepository
from user_onboarding.features.new_user.repository.private_user_repository import (
    PrivateUserRepository,
)
from user_onboarding.features.new_user.repository.trending_repository import TrendingRepository

__all__ = [
    "FeedRepository",
    "LeagueRepository",
    "PrivateUserRepository",
    "TrendingRepository",
]
