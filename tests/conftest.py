"""Shared fixtures: an in-memory app, a controllable clock and the mock SMS outbox."""
from __future__ import annotations

import re
from datetime import datetime, timedelta

import pytest

from ideahub_auth.services import AuthService
from ideahub_ext import create_app
from ideahub_ext.db import db
from ideahub_ext.sms import get_sms_provider

TEST_ENV = {
    "DATABASE_URL": "sqlite://",
    "SMS_PROVIDER": "mock",
}


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def app():
    app = create_app("testing", environ=dict(TEST_ENV))
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def service(app, clock) -> AuthService:
    return AuthService.from_app(app, clock=clock)


@pytest.fixture
def sms(app):
    provider = get_sms_provider(app)
    provider.clear()
    return provider


@pytest.fixture
def sent_code(sms):
    """Return a helper that pulls the last code texted to a number."""

    def _extract(number: str) -> str:
        message = sms.last_message_for(number)
        assert message is not None, f"no SMS sent to {number}"
        match = re.search(r"\b(\d{6})\b", message.body)
        assert match is not None
        return match.group(1)

    return _extract
