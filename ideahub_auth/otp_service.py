"""Helpers for issuing and verifying SMS one-time codes."""
from __future__ import annotations

import hashlib
import hmac
import secrets
from datetime import datetime, timedelta
from typing import Callable

from ideahub_auth.errors import MobileTakenError, OtpInvalidError, SmsDeliveryError, UserNotFoundError
from ideahub_auth.orchestrator import AttemptResult
from ideahub_auth.sessions import SessionManager
from ideahub_auth.store import CredentialStore, DuplicateUserError
from ideahub_auth.validators import validate_mobile_number
from ideahub_ext.db import utcnow
from ideahub_ext.logging import log_error, log_info
from ideahub_ext.sms import SmsProvider
from ideahub_models.otp import OneTimeCode
from ideahub_models.session import SessionToken
from ideahub_models.user import User

CODE_DIGITS = 6
_HASH_PREFIX = "pbkdf2_sha256"
DEFAULT_HASH_ITERATIONS = 100_000


def generate_code(digits: int = CODE_DIGITS) -> str:
    return f"{secrets.randbelow(10 ** digits):0{digits}d}"


def hash_code(code: str, iterations: int = DEFAULT_HASH_ITERATIONS) -> str:
    """Hash a code using PBKDF2-HMAC-SHA256 with a random salt."""
    salt = secrets.token_bytes(16)
    digest = hashlib.pbkdf2_hmac("sha256", code.encode("utf-8"), salt, iterations)
    return f"{_HASH_PREFIX}${iterations}${salt.hex()}${digest.hex()}"


def verify_code_hash(code: str, stored: str) -> bool:
    """Compare a code against its stored hash in constant time."""
    try:
        prefix, iter_str, salt_hex, digest_hex = stored.split("$")
        if prefix != _HASH_PREFIX:
            return False
        iterations = int(iter_str)
        salt = bytes.fromhex(salt_hex)
        expected = bytes.fromhex(digest_hex)
    except (ValueError, TypeError, AttributeError):
        return False
    computed = hashlib.pbkdf2_hmac("sha256", code.encode("utf-8"), salt, iterations)
    return hmac.compare_digest(expected, computed)


class OtpEngine:
    """Per-number state machine: NONE -> REQUESTED -> VERIFIED | EXPIRED.

    Requesting again inserts a new code without touching older ones;
    verification always targets the most recent code for the number.
    """

    def __init__(
        self,
        store: CredentialStore,
        sms: SmsProvider,
        sessions: SessionManager,
        *,
        ttl_minutes: int = 5,
        hash_iterations: int = DEFAULT_HASH_ITERATIONS,
        app_name: str = "IdeaHub",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.sms = sms
        self.sessions = sessions
        self.ttl_minutes = ttl_minutes
        self.hash_iterations = hash_iterations
        self.app_name = app_name
        self.clock = clock
        # Burned on the no-code path so every failure costs one hash.
        self._dummy_hash = hash_code(generate_code(), hash_iterations)

    def _message(self, code: str) -> str:
        return (
            f"Your {self.app_name} verification code is {code}. "
            f"It expires in {self.ttl_minutes} minutes."
        )

    def register_mobile(self, mobile_number: str) -> User:
        mobile_number = validate_mobile_number(mobile_number)
        try:
            return self.store.create_user(mobile_number=mobile_number)
        except DuplicateUserError:
            raise MobileTakenError() from None

    def request_code(self, mobile_number: str) -> OneTimeCode:
        """Store a new hashed code and text the raw value to the number."""
        code = generate_code()
        now = self.clock()
        record = self.store.create_or_update_one_time_code(
            mobile_number,
            hash_code(code, self.hash_iterations),
            now + timedelta(minutes=self.ttl_minutes),
            created_at=now,
        )
        delivery = self.sms.send(mobile_number, self._message(code))
        if not delivery.ok:
            log_error(
                "OTP delivery failed",
                component="otp",
                mobile_number=mobile_number,
                otp_id=record.id,
                provider=delivery.provider,
                error=delivery.error,
            )
            raise SmsDeliveryError(detail=delivery.error)
        log_info("OTP issued", component="otp", mobile_number=mobile_number, otp_id=record.id)
        return record

    def attempt(self, mobile_number: str, code: str) -> AttemptResult:
        """Verify and consume the latest code, then open a session.

        No code, a consumed code, an expired code and a wrong code all yield
        the same failed result. Consumption is a conditional update, so of two
        concurrent correct submissions only one gets past it.
        """
        now = self.clock()
        record = self.store.find_latest_code_for(mobile_number)
        if record is None:
            verify_code_hash(code, self._dummy_hash)
            return AttemptResult()
        matches = verify_code_hash(code, record.code_hash)
        if not matches or record.consumed or record.is_expired(now):
            return AttemptResult()
        if not self.store.mark_consumed(record.id, now):
            return AttemptResult()

        user = self.store.find_user_by_mobile(mobile_number)
        if user is None:
            raise UserNotFoundError()
        return AttemptResult(user_id=user.id, session=self.sessions.issue(user.id))

    def verify_code(self, mobile_number: str, code: str) -> SessionToken:
        result = self.attempt(mobile_number, code)
        if result.session is None:
            raise OtpInvalidError()
        return result.session

    def purge_expired(self) -> int:
        return self.store.delete_expired_codes(self.clock())
