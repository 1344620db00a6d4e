"""Pytest fixtures for the contact API.

Provides:
- An in-memory Motor collection (mongomock-motor) per test
- A recording fake email dispatcher that can be told to fail or stall
- A ContactService wired to both, with a deterministic clock
- A TestClient with the service and dispatcher overridden, plus admin headers
"""

import os

# Set environment variables BEFORE any app imports so they take effect
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-contact-api")
os.environ["RATE_LIMIT_ENABLED"] = "false"

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from auth.auth_utils import create_access_token
from services.contact_service import ContactService
from utils.exceptions import DispatchError


class FakeDispatcher:
    """Records every send; fails or stalls on demand."""

    def __init__(self):
        self.sent = []
        self.fail_with = None
        self.delay = 0

    async def send(self, to_address, to_name, original_subject, reply_body):
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with:
            raise self.fail_with
        self.sent.append({
            "to_address": to_address,
            "to_name": to_name,
            "original_subject": original_subject,
            "reply_body": reply_body,
        })
        return f"msg_{len(self.sent)}"

    async def verify(self):
        if self.fail_with:
            raise self.fail_with
        return {"configured": True, "fromAddress": "test@example.com", "domains": ["example.com"]}


class TickingClock:
    """Returns a strictly increasing time, one second per call."""

    def __init__(self, start=None):
        self.current = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def collection():
    client = AsyncMongoMockClient()
    return client["nexgen_test"]["contact_messages"]


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def service(collection, dispatcher, clock):
    return ContactService(collection, dispatcher, clock=clock, dispatch_timeout=0.5)


@pytest.fixture
def failing_dispatcher(dispatcher):
    dispatcher.fail_with = DispatchError("Email provider rejected the message", detail="domain is not verified")
    return dispatcher


@pytest.fixture
def client(service, dispatcher):
    from main import app
    from controllers.contact_controller import get_contact_service

    app.dependency_overrides[get_contact_service] = lambda: service
    app.state.dispatcher = dispatcher
    # Not used as a context manager: lifespan (index creation) is skipped
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    token = create_access_token({"sub": "admin-123", "role": "admin"})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def valid_submission():
    return {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "subject": "Website redesign",
        "message": "We would like a quote for a new landing page.",
    }
