"""
New-user onboarding orchestrator.

Runs once per user-created event: resolves the private profile, enrolls the
user in the active league cohort, queues the welcome sequence, and (outside
the weekly digest window) queues the "interesting markets" notification and
seeds the user's feed.

The orchestrator holds no state between runs. Each step is a single attempt
against a collaborator; a failing step aborts the run and surfaces as
OnboardingStepError so the queue consumer can redeliver the event.
"""

from collections.abc import Awaitable
from contextlib import AsyncExitStack
from datetime import UTC, datetime
from typing import TypeVar

from user_onboarding.features.new_user.domain.models import (
    NotificationKind,
    OnboardingOutcome,
    OnboardingResult,
    OnboardingStep,
    PrivateProfile,
    UserEntity,
)
from user_onboarding.features.new_user.domain.schedule import delivery_time, is_weekly_blackout
from user_onboarding.features.new_user.ports import (
    Clock,
    CohortEnrollment,
    ConnectionFactory,
    FeedPersonalization,
    NotificationDispatcher,
    TrendingContent,
    UserDirectory,
)
from user_onboarding.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Notifications queued before the blackout gate, in order
WELCOME_SEQUENCE: tuple[tuple[OnboardingStep, NotificationKind], ...] = (
    (OnboardingStep.SEND_WELCOME, NotificationKind.WELCOME),
    (OnboardingStep.SCHEDULE_FOLLOWUP, NotificationKind.PERSONAL_FOLLOWUP),
    (OnboardingStep.SCHEDULE_CREATOR_GUIDE, NotificationKind.CREATOR_GUIDE),
)


class OnboardingStepError(Exception):
    """A collaborator call failed and the remainder of the run was aborted."""

    def __init__(
        self,
        message: str,
        step: OnboardingStep,
        user_id: str,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.step = step
        self.user_id = user_id
        self.recoverable = recoverable


def utc_now() -> datetime:
    return datetime.now(UTC)


class OnboardingOrchestrator:
    """Drives the onboarding sequence for one newly created user at a time."""

    def __init__(
        self,
        user_directory: UserDirectory,
        cohorts: CohortEnrollment,
        notifications: NotificationDispatcher,
        trending: TrendingContent,
        personalization: FeedPersonalization,
        connection_factory: ConnectionFactory,
        clock: Clock = utc_now,
    ):
        self.user_directory = user_directory
        self.cohorts = cohorts
        self.notifications = notifications
        self.trending = trending
        self.personalization = personalization
        self.connection_factory = connection_factory
        self.clock = clock

    async def run(self, user: UserEntity) -> OnboardingResult:
        """
        Run the onboarding sequence for a newly created user.

        Args:
            user: Snapshot of the created user

        Returns:
            OnboardingResult describing where the run stopped

        Raises:
            OnboardingStepError: If any collaborator call fails
        """
        started_at = self.clock()
        result = OnboardingResult(
            user_id=user.id, outcome=OnboardingOutcome.COMPLETED, started_at=started_at
        )
        log = logger.bind(user_id=user.id, started_at=started_at.isoformat())

        profile = await self._step(
            result,
            OnboardingStep.RESOLVE_PROFILE,
            self.user_directory.get_private_profile(user.id),
        )
        if profile is None:
            # Some provisioning paths (bulk imports) never create a private user
            log.info("No private profile, skipping onboarding")
            result.outcome = OnboardingOutcome.PROFILE_MISSING
            return result

        async with AsyncExitStack() as stack:
            connection = await self._open_connection(result, stack)

            enrolled = await self._step(
                result,
                OnboardingStep.ENROLL_COHORT,
                self.cohorts.enroll(connection, user.id, started_at),
            )
            log.info("League enrollment finished", enrolled=enrolled)

            for step, kind in WELCOME_SEQUENCE:
                await self._notify(result, step, kind, user, profile, started_at)

            result.steps.append(OnboardingStep.BLACKOUT_GATE)
            if is_weekly_blackout(started_at):
                log.info("Weekly digest window, skipping trending notification and feed seeding")
                result.outcome = OnboardingOutcome.WEEKLY_BLACKOUT
                return result

            items = await self._step(
                result, OnboardingStep.FETCH_TRENDING, self.trending.get_trending()
            )
            await self._notify(
                result,
                OnboardingStep.SCHEDULE_INTERESTING_MARKETS,
                NotificationKind.INTERESTING_MARKETS,
                user,
                profile,
                started_at,
                payload={"contracts": [item.as_payload() for item in items]},
            )

            seeded = await self._step(
                result,
                OnboardingStep.PERSONALIZE_FEED,
                self.personalization.personalize(user.id, connection),
            )

        log.info("Onboarding completed", trending_count=len(items), feed_items_seeded=seeded)
        return result

    async def _notify(
        self,
        result: OnboardingResult,
        step: OnboardingStep,
        kind: NotificationKind,
        user: UserEntity,
        profile: PrivateProfile,
        started_at: datetime,
        payload: dict | None = None,
    ) -> None:
        deliver_at = delivery_time(kind, started_at)
        status = await self._step(
            result,
            step,
            self.notifications.dispatch(kind, user, profile, deliver_at, payload),
        )
        logger.info(
            "Notification dispatched",
            user_id=user.id,
            kind=kind.value,
            deliver_at=deliver_at.isoformat(),
            status=status.value,
        )

    async def _open_connection(self, result: OnboardingResult, stack: AsyncExitStack):
        # Pool exhaustion or a closed pool is reported against enrollment, its first user
        try:
            return await stack.enter_async_context(self.connection_factory())
        except Exception as e:
            raise self._failure(result, OnboardingStep.ENROLL_COHORT, e) from e

    async def _step(self, result: OnboardingResult, step: OnboardingStep, call: Awaitable[T]) -> T:
        try:
            value = await call
        except Exception as e:
            raise self._failure(result, step, e) from e

        result.steps.append(step)
        return value

    def _failure(
        self, result: OnboardingResult, step: OnboardingStep, error: Exception
    ) -> OnboardingStepError:
        logger.error(
            "Onboarding step failed",
            user_id=result.user_id,
            step=step.value,
            completed_steps=[s.value for s in result.steps],
            error=str(error),
            error_type=type(error).__name__,
        )
        return OnboardingStepError(
            f"Onboarding step '{step.value}' failed: {error}",
            step=step,
            user_id=result.user_id,
            recoverable=getattr(error, "recoverable", True),
        )
