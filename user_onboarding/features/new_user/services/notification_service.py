"""
Notification dispatch for the onboarding sequence.

Requests are written to the notification_outbox table with their delivery
time; a separate mailer drains the outbox and owns transport and rendering.
The outbox is unique per (user_id, kind), so an event redelivered after a
partial run never queues the same onboarding message twice.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from psycopg.types.json import Jsonb

from user_onboarding.db.helpers import fetch_one, with_db_retry
from user_onboarding.features.new_user.domain.models import (
    DispatchStatus,
    NotificationKind,
    PrivateProfile,
    ScheduledNotification,
    UserEntity,
)
from user_onboarding.features.new_user.domain.schedule import as_utc
from user_onboarding.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class NotificationTemplateError(Exception):
    """Raised when a notification kind has no template registered."""

    # Never retried by the consumer
    recoverable = False

    def __init__(self, kind: NotificationKind):
        super().__init__(f"No template registered for notification kind '{kind}'")
        self.kind = kind


@dataclass(slots=True, frozen=True)
class NotificationTemplate:
    template_id: str
    preference: str
    subject: str

    def render_subject(self, user: UserEntity) -> str:
        return self.subject.format(name=user.name.split(" ")[0] or user.username)


TEMPLATES: dict[NotificationKind, NotificationTemplate] = {
    NotificationKind.WELCOME: NotificationTemplate(
        template_id="welcome",
        preference="onboarding_flow",
        subject="Welcome, {name}!",
    ),
    NotificationKind.PERSONAL_FOLLOWUP: NotificationTemplate(
        template_id="personal_followup",
        preference="onboarding_flow",
        subject="How are you finding things, {name}?",
    ),
    NotificationKind.CREATOR_GUIDE: NotificationTemplate(
        template_id="creator_guide",
        preference="onboarding_flow",
        subject="Create your first market",
    ),
    NotificationKind.INTERESTING_MARKETS: NotificationTemplate(
        template_id="interesting_markets",
        preference="trending_markets",
        subject="Markets you might find interesting",
    ),
}


def template_for(kind: NotificationKind) -> NotificationTemplate:
    try:
        return TEMPLATES[kind]
    except KeyError:
        raise NotificationTemplateError(kind) from None


class NotificationService:
    """Queues onboarding notifications for deferred delivery."""

    async def dispatch(
        self,
        kind: NotificationKind,
        user: UserEntity,
        profile: PrivateProfile,
        deliver_at: datetime,
        payload: dict[str, Any] | None = None,
    ) -> DispatchStatus:
        """
        Queue a notification for a user.

        Args:
            kind: Which onboarding notification to send
            user: Recipient user snapshot
            profile: Recipient private profile (email + preferences)
            deliver_at: Absolute delivery time
            payload: Extra template data (e.g. trending contracts)

        Returns:
            DispatchStatus.ACCEPTED when queued, DUPLICATE when this kind was
            already queued for the user, OPTED_OUT when the user can't or
            doesn't want to receive it
        """
        template = template_for(kind)

        if not profile.email or not profile.channel_enabled(template.preference):
            logger.info(
                "User opted out of notification",
                user_id=user.id,
                kind=kind.value,
                preference=template.preference,
                has_email=bool(profile.email),
            )
            return DispatchStatus.OPTED_OUT

        notification = ScheduledNotification(
            user_id=user.id,
            email=profile.email,
            kind=kind,
            subject=template.render_subject(user),
            deliver_at=as_utc(deliver_at),
            payload={"name": user.name, "username": user.username, **(payload or {})},
        )

        inserted = await self._enqueue(notification, template.template_id)
        return DispatchStatus.ACCEPTED if inserted else DispatchStatus.DUPLICATE

    @staticmethod
    @with_db_retry(max_retries=3, base_delay=0.1)
    async def _enqueue(notification: ScheduledNotification, template_id: str) -> bool:
        query = """
        INSERT INTO notification_outbox (
            user_id, kind, template_id, recipient_email, subject,
            payload, deliver_at, created_at
        ) VALUES (%s, %s, %s, %s, %s, %s, %s, NOW())
        ON CONFLICT (user_id, kind) DO NOTHING
        RETURNING id
        """

        row = await fetch_one(
            query,
            (
                notification.user_id,
                notification.kind.value,
                template_id,
                notification.email,
                notification.subject,
                Jsonb(notification.payload),
                notification.deliver_at,
            ),
        )
        if row is None:
            logger.info(
                "Notification already queued",
                user_id=notification.user_id,
                kind=notification.kind.value,
            )
            return False
        return True
