"""Ports the onboarding orchestrator depends on."""

from __future__ import annotations

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Any, Protocol

import psycopg

from user_onboarding.features.new_user.domain.models import (
    DispatchStatus,
    NotificationKind,
    PrivateProfile,
    TrendingItem,
    UserEntity,
)

ConnectionFactory = Callable[[], AbstractAsyncContextManager[psycopg.AsyncConnection]]
Clock = Callable[[], datetime]


class UserDirectory(Protocol):
    async def get_private_profile(self, user_id: str) -> PrivateProfile | None: ...


class CohortEnrollment(Protocol):
    async def enroll(
        self, connection: psycopg.AsyncConnection, user_id: str, now: datetime
    ) -> bool: ...


class NotificationDispatcher(Protocol):
    async def dispatch(
        self,
        kind: NotificationKind,
        user: UserEntity,
        profile: PrivateProfile,
        deliver_at: datetime,
        payload: dict[str, Any] | None = None,
    ) -> DispatchStatus: ...


class TrendingContent(Protocol):
    async def get_trending(self) -> list[TrendingItem]: ...


class FeedPersonalization(Protocol):
    async def personalize(self, user_id: str, connection: psycopg.AsyncConnection) -> int: ...
