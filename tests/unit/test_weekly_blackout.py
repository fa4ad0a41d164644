from datetime import UTC, datetime, timedelta, timezone

import pytest

from user_onboarding.features.new_user.domain.models import NotificationKind
from user_onboarding.features.new_user.domain.schedule import (
    delivery_time,
    is_weekly_blackout,
    weekly_day_index,
)

# Week of 2024-01-07 (Sunday) .. 2024-01-13 (Saturday)
SUNDAY = datetime(2024, 1, 7, tzinfo=UTC)


def test_day_index_starts_on_sunday():
    assert [weekly_day_index(SUNDAY + timedelta(days=d)) for d in range(7)] == list(range(7))


@pytest.mark.parametrize(
    "instant",
    [
        SUNDAY,
        SUNDAY.replace(hour=9),
        SUNDAY.replace(hour=23, minute=59),
        SUNDAY + timedelta(days=1),  # Monday 00:00
        SUNDAY + timedelta(days=1, hours=12),
        SUNDAY + timedelta(days=1, hours=19, minutes=59),
    ],
)
def test_blackout_from_sunday_through_monday_7pm(instant):
    assert is_weekly_blackout(instant) is True


@pytest.mark.parametrize(
    "instant",
    [
        SUNDAY - timedelta(minutes=1),  # Saturday 23:59
        SUNDAY + timedelta(days=1, hours=20),  # Monday 20:00
        SUNDAY + timedelta(days=1, hours=23),
        SUNDAY + timedelta(days=3, hours=10),  # Wednesday 10:00
        SUNDAY + timedelta(days=6, hours=12),
    ],
)
def test_no_blackout_rest_of_week(instant):
    assert is_weekly_blackout(instant) is False


def test_blackout_evaluated_in_utc():
    # Monday 21:00 in UTC+3 is Monday 18:00 UTC
    plus_three = timezone(timedelta(hours=3))
    assert is_weekly_blackout(datetime(2024, 1, 8, 21, 0, tzinfo=plus_three)) is True
    # Sunday 22:00 in UTC-5 is Monday 03:00 UTC, still blacked out
    minus_five = timezone(timedelta(hours=-5))
    assert is_weekly_blackout(datetime(2024, 1, 7, 22, 0, tzinfo=minus_five)) is True
    # Saturday 22:00 in UTC-5 is Sunday 03:00 UTC
    assert is_weekly_blackout(datetime(2024, 1, 6, 22, 0, tzinfo=minus_five)) is True


def test_naive_datetimes_are_treated_as_utc():
    assert is_weekly_blackout(datetime(2024, 1, 8, 20, 0)) is False
    assert is_weekly_blackout(datetime(2024, 1, 8, 19, 0)) is True


def test_delivery_offsets():
    start = datetime(2024, 1, 10, 10, 30, 15, tzinfo=UTC)

    assert delivery_time(NotificationKind.WELCOME, start) == start
    assert delivery_time(NotificationKind.INTERESTING_MARKETS, start) == start + timedelta(hours=24)
    assert delivery_time(NotificationKind.PERSONAL_FOLLOWUP, start) == start + timedelta(hours=48)
    assert delivery_time(NotificationKind.CREATOR_GUIDE, start) == start + timedelta(hours=96)


def test_every_kind_has_an_offset():
    start = datetime(2024, 1, 10, tzinfo=UTC)
    for kind in NotificationKind:
        assert delivery_time(kind, start) >= start
