"""
Time arithmetic for the onboarding sequence.

Every function here is pure: it takes the instant the run started and
derives delivery times or the weekly blackout decision from it.
"""

from datetime import UTC, datetime, timedelta

from user_onboarding.features.new_user.domain.models import NotificationKind

# The weekly digest goes out Monday evening UTC; new users created between
# Sunday 00:00 and Monday 19:59 get it instead of "interesting markets".
BLACKOUT_LAST_MONDAY_HOUR = 19

DELIVERY_OFFSETS: dict[NotificationKind, timedelta] = {
    NotificationKind.WELCOME: timedelta(0),
    NotificationKind.INTERESTING_MARKETS: timedelta(hours=24),
    NotificationKind.PERSONAL_FOLLOWUP: timedelta(hours=48),
    NotificationKind.CREATOR_GUIDE: timedelta(hours=96),
}


def as_utc(instant: datetime) -> datetime:
    """Normalize to an aware UTC datetime. Naive values are assumed to be UTC."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=UTC)
    return instant.astimezone(UTC)


def weekly_day_index(instant: datetime) -> int:
    """UTC day of week with 0 = Sunday, 1 = Monday ... 6 = Saturday."""
    return as_utc(instant).isoweekday() % 7


def is_weekly_blackout(instant: datetime) -> bool:
    """True when the weekly broadcast is about to reach the user anyway."""
    utc = as_utc(instant)
    day = weekly_day_index(utc)
    return day == 0 or (day == 1 and utc.hour <= BLACKOUT_LAST_MONDAY_HOUR)


def delivery_time(kind: NotificationKind, started_at: datetime) -> datetime:
    """Absolute delivery time for a notification kind, relative to the run start."""
    return as_utc(started_at) + DELIVERY_OFFSETS[kind]
