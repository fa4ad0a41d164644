"""
Webhook receiving user-created events from the account service.

The request body is the created user; it is wrapped in a UserCreatedEvent
envelope and pushed onto the onboarding queue. The worker does the rest.
"""

import hashlib
import hmac

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import ValidationError

from user_onboarding.config import settings
from user_onboarding.features.new_user.domain.models import UserCreatedEvent, UserEntity
from user_onboarding.infrastructure.observability.logging import get_logger
from user_onboarding.services.redis_client import fast_redis

logger = get_logger(__name__)

router = APIRouter(prefix="/events", tags=["events"])

SIGNATURE_HEADER = "x-onboarding-signature"


def verify_signature(raw: bytes, signature: str | None) -> None:
    secret = settings.USER_EVENTS_WEBHOOK_SECRET
    if not secret:
        logger.error("User events webhook secret is not configured")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Webhook disabled")
    if not signature:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing signature")
    expected = hmac.new(secret.encode(), raw, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(expected, signature):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")


@router.post("/user-created", status_code=status.HTTP_202_ACCEPTED)
async def user_created(request: Request):
    raw = await request.body()
    verify_signature(raw, request.headers.get(SIGNATURE_HEADER))

    try:
        user = UserEntity.model_validate_json(raw)
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=e.errors(include_url=False, include_context=False),
        ) from e

    event = UserCreatedEvent(user=user)
    queued = await fast_redis.enqueue(settings.ONBOARDING_QUEUE_KEY, event.model_dump_json())
    if not queued:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Onboarding queue unavailable"
        )

    logger.info("User-created event queued", user_id=user.id, event_id=event.event_id)
    return {"ok": True, "event_id": event.event_id}
