"""Domain types for the new-user onboarding feature."""

from user_onboarding.features.new_user.domain.models import (
    DispatchStatus,
    NotificationKind,
    OnboardingOutcome,
    OnboardingResult,
    OnboardingStep,
    PrivateProfile,
    ScheduledNotification,
    TrendingItem,
    UserCreatedEvent,
    UserEntity,
)
from user_onboarding.features.new_user.domain.schedule import (
    delivery_time,
    is_weekly_blackout,
    weekly_day_index,
)

__all__ = [
    "DispatchStatus",
    "NotificationKind",
    "OnboardingOutcome",
    "OnboardingResult",
    "OnboardingStep",
    "PrivateProfile",
    "ScheduledNotification",
    "TrendingItem",
    "UserCreatedEvent",
    "UserEntity",
    "delivery_time",
    "is_weekly_blackout",
    "weekly_day_index",
]
