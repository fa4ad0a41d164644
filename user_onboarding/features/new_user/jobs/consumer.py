"""
User-created event consumer.

Pops UserCreatedEvent envelopes from the Redis onboarding queue and runs the
onboarding orchestrator for each. Delivery is at-least-once: an envelope
stays in the processing list until its run finishes, failed runs are pushed
back with an incremented attempt counter, and envelopes that keep failing
end up on the dead-letter list for manual inspection.

Only one consumer process may own a given processing list, since startup
recovery moves everything found there back onto the queue.
"""

import asyncio
from datetime import UTC, datetime

from pydantic import ValidationError

from user_onboarding.config import settings
from user_onboarding.db.pool import db_pool
from user_onboarding.features.new_user.domain.models import (
    OnboardingOutcome,
    OnboardingResult,
    UserCreatedEvent,
)
from user_onboarding.features.new_user.orchestrator import OnboardingOrchestrator
from user_onboarding.features.new_user.repository import (
    FeedRepository,
    LeagueRepository,
    PrivateUserRepository,
    TrendingRepository,
)
from user_onboarding.features.new_user.services import NotificationService
from user_onboarding.infrastructure.observability.logging import get_logger, setup_logging
from user_onboarding.services.redis_client import FastRedisClient, fast_redis

logger = get_logger(__name__)

METRICS_LOG_EVERY = 100
CLAIM_ERROR_BACKOFF_SECONDS = 2.0


class ConsumerMetrics:
    """Counters for one consumer process."""

    def __init__(self):
        self.reset()

    def reset(self):
        self.start_time = datetime.now(UTC)
        self.processed = 0
        self.outcomes: dict[OnboardingOutcome, int] = {outcome: 0 for outcome in OnboardingOutcome}
        self.retried = 0
        self.dead_lettered = 0

    def record_result(self, result: OnboardingResult):
        self.processed += 1
        self.outcomes[result.outcome] += 1

    def record_retry(self):
        self.processed += 1
        self.retried += 1

    def record_dead_letter(self):
        self.processed += 1
        self.dead_lettered += 1

    def to_dict(self) -> dict:
        return {
            "job_run": "user_onboarding",
            "start_time": self.start_time.isoformat(),
            "uptime_seconds": round((datetime.now(UTC) - self.start_time).total_seconds(), 2),
            "processed": self.processed,
            **{f"outcome_{outcome.value}": count for outcome, count in self.outcomes.items()},
            "retried": self.retried,
            "dead_lettered": self.dead_lettered,
        }


class UserCreatedConsumer:
    def __init__(
        self,
        orchestrator: OnboardingOrchestrator,
        redis_client: FastRedisClient = fast_redis,
        *,
        queue_key: str | None = None,
        processing_key: str | None = None,
        dead_letter_key: str | None = None,
        max_attempts: int | None = None,
        concurrency: int | None = None,
        poll_timeout_s: float | None = None,
    ):
        self.orchestrator = orchestrator
        self.redis = redis_client
        self.queue_key = queue_key or settings.ONBOARDING_QUEUE_KEY
        self.processing_key = processing_key or settings.ONBOARDING_PROCESSING_KEY
        self.dead_letter_key = dead_letter_key or settings.ONBOARDING_DEAD_LETTER_KEY
        self.max_attempts = max_attempts or settings.ONBOARDING_MAX_ATTEMPTS
        self.concurrency = concurrency or settings.ONBOARDING_WORKER_CONCURRENCY
        self.poll_timeout_s = poll_timeout_s or settings.ONBOARDING_POLL_TIMEOUT_S
        self.metrics = ConsumerMetrics()

    async def handle(self, raw: str) -> OnboardingResult | None:
        """
        Process one claimed envelope and settle it (ack, retry or dead-letter).

        Returns:
            The onboarding result, or None if the envelope was not processed
            to completion
        """
        try:
            event = UserCreatedEvent.model_validate_json(raw)
        except ValidationError as e:
            logger.error("Malformed onboarding envelope", error=str(e), raw=raw[:200])
            await self.redis.requeue(self.processing_key, self.dead_letter_key, raw, raw)
            self.metrics.record_dead_letter()
            return None

        log = logger.bind(user_id=event.user.id, event_id=event.event_id, attempt=event.attempt)

        try:
            result = await self.orchestrator.run(event.user)
        except Exception as e:
            recoverable = getattr(e, "recoverable", True)
            failed = event.model_copy(update={"last_error": f"{type(e).__name__}: {e}"})

            if recoverable and event.attempt < self.max_attempts:
                retry = failed.model_copy(update={"attempt": event.attempt + 1})
                await self.redis.requeue(
                    self.processing_key, self.queue_key, raw, retry.model_dump_json()
                )
                self.metrics.record_retry()
                log.warning(
                    "Onboarding failed, requeued",
                    step=getattr(getattr(e, "step", None), "value", None),
                    error=str(e),
                )
            else:
                await self.redis.requeue(
                    self.processing_key, self.dead_letter_key, raw, failed.model_dump_json()
                )
                self.metrics.record_dead_letter()
                log.error(
                    "Onboarding failed permanently, moved to dead-letter queue",
                    recoverable=recoverable,
                    error=str(e),
                )
            return None

        await self.redis.ack(self.processing_key, raw)
        self.metrics.record_result(result)
        log.info(
            "Onboarding event processed",
            outcome=result.outcome.value,
            steps=[step.value for step in result.steps],
        )

        if self.metrics.processed % METRICS_LOG_EVERY == 0:
            logger.info("Onboarding consumer metrics", **self.metrics.to_dict())
        return result

    async def run_forever(self, stop: asyncio.Event | None = None) -> None:
        """Claim and process envelopes until ``stop`` is set."""
        stop = stop or asyncio.Event()
        semaphore = asyncio.Semaphore(self.concurrency)
        in_flight: set[asyncio.Task] = set()

        recovered = await self.redis.recover_in_flight(self.processing_key, self.queue_key)
        if recovered:
            logger.warning("Recovered in-flight onboarding events", count=recovered)

        logger.info(
            "Onboarding consumer started",
            queue=self.queue_key,
            concurrency=self.concurrency,
            max_attempts=self.max_attempts,
        )

        try:
            while not stop.is_set():
                await semaphore.acquire()
                try:
                    raw = await self.redis.claim(
                        self.queue_key, self.processing_key, self.poll_timeout_s
                    )
                except Exception as e:
                    semaphore.release()
                    logger.error("Failed to claim onboarding event", error=str(e))
                    await asyncio.sleep(CLAIM_ERROR_BACKOFF_SECONDS)
                    continue

                if raw is None:
                    semaphore.release()
                    continue

                task = asyncio.create_task(self._handle_and_release(raw, semaphore))
                in_flight.add(task)
                task.add_done_callback(in_flight.discard)
        finally:
            if in_flight:
                await asyncio.gather(*in_flight, return_exceptions=True)
            logger.info("Onboarding consumer stopped", **self.metrics.to_dict())

    async def _handle_and_release(self, raw: str, semaphore: asyncio.Semaphore) -> None:
        try:
            await self.handle(raw)
        except Exception:
            # Envelope stays in the processing list and is recovered on restart
            logger.exception("Unexpected error settling onboarding event")
        finally:
            semaphore.release()


def check_pool_capacity(concurrency: int, pool_max_size: int) -> None:
    """
    Refuse to start when concurrent runs could starve the connection pool.

    Each run holds one pooled connection for its whole length and briefly needs
    a second one for the profile lookup, trending fetch and outbox inserts.
    With every pool slot held by a run, all runs wait on each other until the
    pool times out.

    Raises:
        ValueError: If concurrency is not below the pool size
    """
    if concurrency >= pool_max_size:
        raise ValueError(
            f"ONBOARDING_WORKER_CONCURRENCY ({concurrency}) must be lower than the "
            f"database pool max_size ({pool_max_size})"
        )


def build_orchestrator() -> OnboardingOrchestrator:
    """Orchestrator wired to the Postgres-backed collaborators."""
    return OnboardingOrchestrator(
        user_directory=PrivateUserRepository(),
        cohorts=LeagueRepository(),
        notifications=NotificationService(),
        trending=TrendingRepository(),
        personalization=FeedRepository(),
        connection_factory=db_pool.connection,
    )


async def start_user_onboarding_consumer() -> None:
    """Entry point for the onboarding worker process."""
    setup_logging(log_level=settings.LOG_LEVEL)
    check_pool_capacity(
        settings.ONBOARDING_WORKER_CONCURRENCY, settings.get_db_pool_config()["max_size"]
    )

    await db_pool.initialize()
    try:
        await fast_redis.initialize()
        try:
            consumer = UserCreatedConsumer(build_orchestrator(), fast_redis)
            await consumer.run_forever()
        finally:
            await fast_redis.close()
    finally:
        await db_pool.close()


if __name__ == "__main__":
    asyncio.run(start_user_onboarding_consumer())
