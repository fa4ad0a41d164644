import hashlib
import hmac
import json

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from tests.fakes import FakeQueueRedis
from user_onboarding.config import settings
from user_onboarding.features.new_user.api import router as user_events
from user_onboarding.features.new_user.domain.models import UserCreatedEvent

SECRET = "test-secret"
USER = {
    "id": "user-123",
    "created_time": "2024-01-10T10:00:00Z",
    "name": "Ada Lovelace",
    "username": "ada",
    "interests": ["science"],
}


def _make_signature(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


@pytest.fixture
def queue(monkeypatch) -> FakeQueueRedis:
    fake = FakeQueueRedis()
    monkeypatch.setattr(user_events, "fast_redis", fake)
    monkeypatch.setattr(user_events.settings, "USER_EVENTS_WEBHOOK_SECRET", SECRET)
    return fake


@pytest.fixture
def client() -> TestClient:
    app = FastAPI()
    app.include_router(user_events.router)
    return TestClient(app)


def _post(client: TestClient, raw: bytes, signature: str | None):
    headers = {"Content-Type": "application/json"}
    if signature is not None:
        headers[user_events.SIGNATURE_HEADER] = signature
    return client.post("/events/user-created", content=raw, headers=headers)


def test_valid_event_is_queued(client, queue):
    raw = json.dumps(USER).encode()

    response = _post(client, raw, _make_signature(SECRET, raw))

    assert response.status_code == 202
    body = response.json()
    assert body["ok"] is True
    [message] = queue.items(settings.ONBOARDING_QUEUE_KEY)
    event = UserCreatedEvent.model_validate_json(message)
    assert event.event_id == body["event_id"]
    assert event.attempt == 1
    assert event.user.id == "user-123"
    assert event.user.interests == ("science",)


def test_invalid_signature_rejected(client, queue):
    raw = json.dumps(USER).encode()

    response = _post(client, raw, "bad")

    assert response.status_code == 401
    assert queue.items(settings.ONBOARDING_QUEUE_KEY) == []


def test_missing_signature_rejected(client, queue):
    response = _post(client, json.dumps(USER).encode(), None)

    assert response.status_code == 401


def test_unconfigured_secret_rejects_everything(client, queue, monkeypatch):
    monkeypatch.setattr(user_events.settings, "USER_EVENTS_WEBHOOK_SECRET", None)
    raw = json.dumps(USER).encode()

    response = _post(client, raw, _make_signature(SECRET, raw))

    assert response.status_code == 401


def test_invalid_user_payload(client, queue):
    raw = json.dumps({"id": "user-123"}).encode()

    response = _post(client, raw, _make_signature(SECRET, raw))

    assert response.status_code == 422
    assert queue.items(settings.ONBOARDING_QUEUE_KEY) == []


def test_queue_unavailable(client, queue, monkeypatch):
    async def failing_enqueue(queue_key, message):
        return False

    monkeypatch.setattr(queue, "enqueue", failing_enqueue)
    raw = json.dumps(USER).encode()

    response = _post(client, raw, _make_signature(SECRET, raw))

    assert response.status_code == 503
