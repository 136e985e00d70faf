"""Exposed authentication operations used by the web and CLI layers."""
from __future__ import annotations

from datetime import datetime, timedelta
from functools import wraps
from typing import Callable, TypeVar

from flask import Flask, current_app
from sqlalchemy.exc import SQLAlchemyError

from ideahub_auth.credentials import CredentialAuthenticator
from ideahub_auth.errors import AdminRequiredError, OtpInvalidError, SessionNotFoundError, UsernameTakenError
from ideahub_auth.orchestrator import AuthOrchestrator
from ideahub_auth.otp_service import OtpEngine
from ideahub_auth.passwords import PasswordHasher
from ideahub_auth.rate_limit import RateLimiter
from ideahub_auth.sessions import SessionManager
from ideahub_auth.store import CredentialStore, DuplicateUserError
from ideahub_auth.validators import (
    validate_login,
    validate_mobile_number,
    validate_otp_code,
    validate_registration,
)
from ideahub_ext.db import db, utcnow
from ideahub_ext.errors import AuthError, InternalError
from ideahub_ext.logging import log_error, log_info
from ideahub_ext.sms import SmsProvider, get_sms_provider
from ideahub_models.otp import OneTimeCode
from ideahub_models.session import SessionToken
from ideahub_models.user import User

T = TypeVar("T")


def _store_guard(func: Callable[..., T]) -> Callable[..., T]:
    """Turn raw database failures into a generic ``InternalError``."""

    @wraps(func)
    def wrapper(*args, **kwargs) -> T:
        try:
            return func(*args, **kwargs)
        except SQLAlchemyError as exc:
            db.session.rollback()
            log_error(
                "Credential store failure",
                component="auth",
                exc_info=True,
                operation=func.__name__,
                error_type=type(exc).__name__,
            )
            raise InternalError(detail=str(exc)) from exc

    return wrapper


class AuthService:
    """Facade wiring the hasher, limiter, sessions and OTP engine together."""

    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        sms: SmsProvider,
        *,
        session_expiry_days: int = 7,
        otp_expiry_minutes: int = 5,
        otp_hash_iterations: int = 100_000,
        rate_limit_attempts: int = 5,
        rate_limit_window_minutes: int = 15,
        app_name: str = "IdeaHub",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.clock = clock
        self.sessions = SessionManager(store, expiry_days=session_expiry_days, clock=clock)
        self.rate_limiter = RateLimiter(
            store,
            max_attempts=rate_limit_attempts,
            window_minutes=rate_limit_window_minutes,
            clock=clock,
        )
        self.orchestrator = AuthOrchestrator(self.rate_limiter)
        self.credentials = CredentialAuthenticator(store, hasher, self.sessions)
        self.otp = OtpEngine(
            store,
            sms,
            self.sessions,
            ttl_minutes=otp_expiry_minutes,
            hash_iterations=otp_hash_iterations,
            app_name=app_name,
            clock=clock,
        )

    @classmethod
    def from_app(cls, app: Flask | None = None, *, clock: Callable[[], datetime] = utcnow) -> "AuthService":
        app = app or current_app
        config = app.config
        return cls(
            CredentialStore(),
            PasswordHasher(rounds=config["PASSWORD_HASH_ROUNDS"]),
            get_sms_provider(app),
            session_expiry_days=config["SESSION_EXPIRY_DAYS"],
            otp_expiry_minutes=config["OTP_EXPIRY_MINUTES"],
            otp_hash_iterations=config["OTP_HASH_ITERATIONS"],
            rate_limit_attempts=config["RATE_LIMIT_ATTEMPTS"],
            rate_limit_window_minutes=config["RATE_LIMIT_WINDOW_MINUTES"],
            app_name=config.get("APP_NAME", "IdeaHub"),
            clock=clock,
        )

    # Registration

    @_store_guard
    def register_with_credentials(self, username: str, password: str) -> User:
        user = self.credentials.register(username, password)
        log_info("User registered", component="auth", user_id=user.id, method="credentials")
        return user

    @_store_guard
    def register_with_mobile(self, mobile_number: str) -> User:
        user = self.otp.register_mobile(mobile_number)
        log_info("User registered", component="auth", user_id=user.id, method="mobile")
        return user

    @_store_guard
    def create_admin(self, username: str, password: str) -> User:
        username, password = validate_registration(username, password)
        try:
            user = self.store.create_user(
                username=username,
                password_hash=self.hasher.hash(password),
                is_admin=True,
            )
        except DuplicateUserError:
            raise UsernameTakenError() from None
        log_info("Admin user created", component="auth", user_id=user.id)
        return user

    # Login

    @_store_guard
    def login_with_credentials(self, username: str, password: str) -> SessionToken:
        username, password = validate_login(username, password)
        session = self.orchestrator.login(
            username,
            lambda: self.credentials.attempt(username, password),
            AuthError,
        )
        log_info("Credential login succeeded", component="auth", user_id=session.user_id, session_id=session.id)
        return session

    @_store_guard
    def request_otp(self, mobile_number: str) -> OneTimeCode:
        """Send a fresh code; unknown numbers are served the same way as known ones."""
        mobile_number = validate_mobile_number(mobile_number)
        self.orchestrator.ensure_not_limited(mobile_number)
        return self.otp.request_code(mobile_number)

    @_store_guard
    def verify_otp(self, mobile_number: str, code: str) -> SessionToken:
        mobile_number = validate_mobile_number(mobile_number)
        code = validate_otp_code(code)
        session = self.orchestrator.login(
            mobile_number,
            lambda: self.otp.attempt(mobile_number, code),
            OtpInvalidError,
        )
        log_info("OTP login succeeded", component="auth", user_id=session.user_id, session_id=session.id)
        return session

    # Sessions

    @_store_guard
    def validate_session_token(self, token: str) -> SessionToken | None:
        return self.sessions.validate(token)

    @_store_guard
    def invalidate_session(self, token: str) -> bool:
        removed = self.sessions.invalidate(token)
        log_info("Session invalidated", component="auth", removed=removed)
        return removed

    @_store_guard
    def invalidate_all_sessions(self, user_id: str) -> int:
        removed = self.sessions.invalidate_all_for_user(user_id)
        log_info("All sessions invalidated", component="auth", user_id=user_id, removed=removed)
        return removed

    def require_session(self, token: str) -> SessionToken:
        session = self.validate_session_token(token)
        if session is None:
            raise SessionNotFoundError()
        return session

    @_store_guard
    def authenticate_admin(self, token: str) -> User:
        """Resolve the session's user and insist on the admin flag.

        Unknown tokens and non-admin users fail differently; the token holder
        already proved possession of a live session.
        """
        session = self.require_session(token)
        user = self.store.find_user_by_id(session.user_id)
        if user is None or not user.is_admin:
            raise AdminRequiredError()
        return user

    # Maintenance

    @_store_guard
    def purge_expired_sessions(self) -> int:
        return self.sessions.purge_expired()

    @_store_guard
    def purge_expired_codes(self) -> int:
        return self.otp.purge_expired()

    @_store_guard
    def prune_login_attempts(self, retention_days: int) -> int:
        cutoff = self.clock() - timedelta(days=retention_days)
        return self.store.delete_login_attempts_before(cutoff)
