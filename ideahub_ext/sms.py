"""Outbound SMS delivery with a mock and a Twilio variant."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Protocol

import requests
from flask import Flask, current_app
from twilio.base.exceptions import TwilioException, TwilioRestException
from twilio.rest import Client

from ideahub_ext.db import utcnow
from ideahub_ext.logging import log_error, log_info


@dataclass(frozen=True)
class SmsDelivery:
    """Outcome of a single ``send`` call."""

    ok: bool
    provider: str
    message_id: str | None = None
    error: str | None = None


class SmsProvider(Protocol):
    name: str

    def send(self, number: str, message: str) -> SmsDelivery:
        ...


@dataclass(frozen=True)
class SentMessage:
    number: str
    body: str
    sent_at: datetime


@dataclass
class MockSmsProvider:
    """Keeps messages in memory instead of delivering them."""

    name: str = "mock"
    sent_messages: list[SentMessage] = field(default_factory=list)

    def send(self, number: str, message: str) -> SmsDelivery:
        self.sent_messages.append(SentMessage(number=number, body=message, sent_at=utcnow()))
        log_info("SMS captured by mock provider", component="sms", to=number)
        return SmsDelivery(ok=True, provider=self.name, message_id=f"mock-{len(self.sent_messages)}")

    def last_message_for(self, number: str) -> SentMessage | None:
        for sent in reversed(self.sent_messages):
            if sent.number == number:
                return sent
        return None

    def clear(self) -> None:
        self.sent_messages.clear()


class TwilioSmsProvider:
    """Delivers messages through the Twilio REST API."""

    name = "twilio"

    def __init__(self, account_sid: str, auth_token: str, from_number: str, client: Client | None = None) -> None:
        if not account_sid or not auth_token or not from_number:
            raise ValueError("Twilio credentials are required")
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = Client(self.account_sid, self.auth_token)
        return self._client

    def send(self, number: str, message: str) -> SmsDelivery:
        try:
            sent = self.client.messages.create(body=message, from_=self.from_number, to=number)
        except TwilioRestException as exc:
            log_error(
                "Twilio rejected SMS",
                component="sms",
                to=number,
                twilio_code=exc.code,
                status=exc.status,
            )
            return SmsDelivery(ok=False, provider=self.name, error=str(exc.msg))
        except (TwilioException, requests.RequestException) as exc:
            log_error(
                "Twilio request failed",
                component="sms",
                exc_info=True,
                to=number,
                error_type=type(exc).__name__,
            )
            return SmsDelivery(ok=False, provider=self.name, error=str(exc))
        log_info("SMS sent via Twilio", component="sms", to=number, message_sid=sent.sid)
        return SmsDelivery(ok=True, provider=self.name, message_id=sent.sid)


def _build_mock(config: Dict[str, object]) -> SmsProvider:
    return MockSmsProvider()


def _build_twilio(config: Dict[str, object]) -> SmsProvider:
    return TwilioSmsProvider(
        account_sid=str(config.get("TWILIO_ACCOUNT_SID") or ""),
        auth_token=str(config.get("TWILIO_AUTH_TOKEN") or ""),
        from_number=str(config.get("TWILIO_PHONE_NUMBER") or ""),
    )


PROVIDERS: Dict[str, Callable[[Dict[str, object]], SmsProvider]] = {
    "mock": _build_mock,
    "twilio": _build_twilio,
}


def create_sms_provider(config: Dict[str, object]) -> SmsProvider:
    """Select the provider variant named by ``SMS_PROVIDER``."""
    name = str(config.get("SMS_PROVIDER", "mock")).lower()
    try:
        factory = PROVIDERS[name]
    except KeyError:
        raise ValueError(f"Unknown SMS provider: {name}") from None
    return factory(config)


def init_app(app: Flask) -> None:
    """Create the configured provider once per application."""
    app.extensions["sms"] = create_sms_provider(app.config)


def get_sms_provider(app: Flask | None = None) -> SmsProvider:
    app = app or current_app
    return app.extensions["sms"]
