"""Application configuration classes and environment helpers."""
from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping

from dotenv import load_dotenv

# Local development reads a .env next to this file. Deployments inject real
# environment variables, which always win over the file.
load_dotenv(dotenv_path=Path(__file__).resolve().parent / ".env", override=False)

E164_PATTERN = re.compile(r"\+[1-9][0-9]{1,14}")
SMS_PROVIDERS = ("mock", "twilio")


class ConfigError(Exception):
    """Raised when the environment cannot produce a usable configuration."""

    code = "CONFIG_ERROR"


def _bool(value: str | None, default: bool = False) -> bool:
    """Parse environment flags such as "true", "1", "yes"."""
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "t", "yes", "y"}


def _split(value: str | None, default: Iterable[str]) -> list[str]:
    if not value:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


def _environ(environ: Mapping[str, str] | None) -> Mapping[str, str]:
    return os.environ if environ is None else environ


def require_env(name: str, environ: Mapping[str, str] | None = None) -> str:
    """Return a required variable or fail startup."""
    value = _environ(environ).get(name, "").strip()
    if not value:
        raise ConfigError(f"Missing required environment variable: {name}")
    return value


def get_env(name: str, default: str, environ: Mapping[str, str] | None = None) -> str:
    value = _environ(environ).get(name, "").strip()
    return value or default


def positive_int_env(name: str, default: int, environ: Mapping[str, str] | None = None) -> int:
    """Parse a positive integer, rejecting zero, negatives and junk."""
    raw = _environ(environ).get(name, "").strip()
    if not raw:
        return default
    try:
        parsed = int(raw, 10)
    except ValueError:
        raise ConfigError(f"Invalid value for {name}: must be a positive integer, got {raw!r}") from None
    if parsed <= 0:
        raise ConfigError(f"Invalid value for {name}: must be a positive integer, got {raw!r}")
    return parsed


@dataclass(frozen=True)
class AuthSettings:
    """Validated security parameters consumed by the auth core."""

    database_url: str
    session_expiry_days: int = 7
    otp_expiry_minutes: int = 5
    rate_limit_attempts: int = 5
    rate_limit_window_minutes: int = 15
    sms_provider: str = "mock"
    twilio_account_sid: str | None = None
    twilio_auth_token: str | None = None
    twilio_phone_number: str | None = None

    def as_flask_config(self) -> Dict[str, Any]:
        return {
            "SQLALCHEMY_DATABASE_URI": self.database_url,
            "SESSION_EXPIRY_DAYS": self.session_expiry_days,
            "OTP_EXPIRY_MINUTES": self.otp_expiry_minutes,
            "RATE_LIMIT_ATTEMPTS": self.rate_limit_attempts,
            "RATE_LIMIT_WINDOW_MINUTES": self.rate_limit_window_minutes,
            "SMS_PROVIDER": self.sms_provider,
            "TWILIO_ACCOUNT_SID": self.twilio_account_sid,
            "TWILIO_AUTH_TOKEN": self.twilio_auth_token,
            "TWILIO_PHONE_NUMBER": self.twilio_phone_number,
        }


def load_auth_settings(environ: Mapping[str, str] | None = None) -> AuthSettings:
    """Resolve and validate the auth configuration surface.

    Every failure raises :class:`ConfigError`; callers are expected to let it
    propagate so the process never starts with undefined security parameters.
    """
    database_url = require_env("DATABASE_URL", environ)
    session_expiry_days = positive_int_env("SESSION_EXPIRY_DAYS", 7, environ)
    otp_expiry_minutes = positive_int_env("OTP_EXPIRY_MINUTES", 5, environ)
    rate_limit_attempts = positive_int_env("RATE_LIMIT_ATTEMPTS", 5, environ)
    rate_limit_window_minutes = positive_int_env("RATE_LIMIT_WINDOW_MINUTES", 15, environ)

    sms_provider = get_env("SMS_PROVIDER", "mock", environ).lower()
    if sms_provider not in SMS_PROVIDERS:
        raise ConfigError(f"Invalid SMS_PROVIDER: must be 'mock' or 'twilio', got {sms_provider!r}")

    twilio: Dict[str, str | None] = {"sid": None, "token": None, "number": None}
    if sms_provider == "twilio":
        twilio["sid"] = require_env("TWILIO_ACCOUNT_SID", environ)
        twilio["token"] = require_env("TWILIO_AUTH_TOKEN", environ)
        number = require_env("TWILIO_PHONE_NUMBER", environ)
        if not E164_PATTERN.fullmatch(number):
            raise ConfigError(
                f"Invalid TWILIO_PHONE_NUMBER: must be in E.164 format (e.g. +14155550123), got {number!r}"
            )
        twilio["number"] = number

    return AuthSettings(
        database_url=database_url,
        session_expiry_days=session_expiry_days,
        otp_expiry_minutes=otp_expiry_minutes,
        rate_limit_attempts=rate_limit_attempts,
        rate_limit_window_minutes=rate_limit_window_minutes,
        sms_provider=sms_provider,
        twilio_account_sid=twilio["sid"],
        twilio_auth_token=twilio["token"],
        twilio_phone_number=twilio["number"],
    )


class BaseConfig:
    """Shared configuration defaults used by every environment."""

    APP_NAME = "IdeaHub"
    VERSION = "0.1.0"

    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {"pool_pre_ping": True}

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    LOG_FORMAT = os.getenv("LOG_FORMAT", "json").lower()
    REDACT_KEYS = _split(
        os.getenv("REDACT_KEYS"),
        {"password", "code", "token", "TWILIO_AUTH_TOKEN", "Authorization"},
    )
    JSON_SORT_KEYS = False

    # pbkdf2_sha256 work factors; the test config lowers both.
    PASSWORD_HASH_ROUNDS = 29000
    OTP_HASH_ITERATIONS = 100_000
    LOGIN_ATTEMPT_RETENTION_DAYS = 30
    CREATE_DB_ON_STARTUP = _bool(os.getenv("CREATE_DB_ON_STARTUP"), default=False)


class DevConfig(BaseConfig):
    """Development defaults with verbose, human-readable logging."""

    DEBUG = True
    ENV = "development"
    LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG").upper()
    LOG_FORMAT = os.getenv("LOG_FORMAT", "plain").lower()
    CREATE_DB_ON_STARTUP = _bool(os.getenv("CREATE_DB_ON_STARTUP"), default=True)


class ProdConfig(BaseConfig):
    """Production defaults focused on security."""

    DEBUG = False
    ENV = "production"


class TestConfig(BaseConfig):
    """Fast hashing and in-memory storage for the test suite."""

    TESTING = True
    ENV = "testing"
    LOG_LEVEL = "WARNING"
    SQLALCHEMY_ENGINE_OPTIONS: Dict[str, Any] = {}
    PASSWORD_HASH_ROUNDS = 1000
    OTP_HASH_ITERATIONS = 1000
    CREATE_DB_ON_STARTUP = True
