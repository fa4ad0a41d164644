"""
Domain models for the new-user onboarding feature.

Pydantic models describe data crossing a boundary (the user-created event,
rows read from the user directory). Slotted dataclasses describe the values
produced inside a single onboarding run.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class UserEntity(BaseModel):
    """Snapshot of the created user, as delivered by the triggering event."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(min_length=1)
    created_time: datetime
    name: str
    username: str
    interests: tuple[str, ...] = ()
    avatar_url: str | None = None


class UserCreatedEvent(BaseModel):
    """Queue envelope around a created user. ``attempt`` counts deliveries."""

    event_id: str = Field(default_factory=lambda: uuid4().hex)
    attempt: int = Field(default=1, ge=1)
    enqueued_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    last_error: str | None = None
    user: UserEntity


class PrivateProfile(BaseModel):
    """Private record keyed by the user id: contact details and notification preferences."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    email: str | None = None
    # preference key -> enabled channels, e.g. {"onboarding_flow": ["email"]}
    notification_preferences: dict[str, list[str]] = Field(default_factory=dict)

    def channel_enabled(self, preference: str, channel: str = "email") -> bool:
        return channel in self.notification_preferences.get(preference, [])


class NotificationKind(StrEnum):
    WELCOME = "welcome"
    PERSONAL_FOLLOWUP = "personal_followup"
    CREATOR_GUIDE = "creator_guide"
    INTERESTING_MARKETS = "interesting_markets"


class DispatchStatus(StrEnum):
    ACCEPTED = "accepted"
    DUPLICATE = "duplicate"
    OPTED_OUT = "opted_out"


class OnboardingStep(StrEnum):
    RESOLVE_PROFILE = "resolve_profile"
    ENROLL_COHORT = "enroll_cohort"
    SEND_WELCOME = "send_welcome"
    SCHEDULE_FOLLOWUP = "schedule_followup"
    SCHEDULE_CREATOR_GUIDE = "schedule_creator_guide"
    BLACKOUT_GATE = "blackout_gate"
    FETCH_TRENDING = "fetch_trending"
    SCHEDULE_INTERESTING_MARKETS = "schedule_interesting_markets"
    PERSONALIZE_FEED = "personalize_feed"


class OnboardingOutcome(StrEnum):
    COMPLETED = "completed"
    PROFILE_MISSING = "profile_missing"
    WEEKLY_BLACKOUT = "weekly_blackout"


@dataclass(slots=True, frozen=True)
class TrendingItem:
    """A ranked content item as returned by the trending service."""

    id: str
    slug: str
    question: str
    creator_username: str
    importance_score: float

    def as_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "slug": self.slug,
            "question": self.question,
            "creator_username": self.creator_username,
        }


@dataclass(slots=True, frozen=True)
class ScheduledNotification:
    """Request handed to the notification outbox. Delivery is not tracked afterwards."""

    user_id: str
    email: str
    kind: NotificationKind
    subject: str
    deliver_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class OnboardingResult:
    """Terminal state of one onboarding run."""

    user_id: str
    outcome: OnboardingOutcome
    started_at: datetime
    steps: list[OnboardingStep] = field(default_factory=list)
