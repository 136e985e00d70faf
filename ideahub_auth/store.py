"""SQLAlchemy-backed credential store used by the auth core."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, func, update
from sqlalchemy.exc import IntegrityError

from ideahub_ext.db import db, utcnow
from ideahub_models.login_attempt import LoginAttempt
from ideahub_models.otp import OneTimeCode
from ideahub_models.session import SessionToken
from ideahub_models.user import User


class DuplicateUserError(Exception):
    """Raised when a unique user column rejects an insert."""

    def __init__(self, field: str | None) -> None:
        super().__init__(f"duplicate value for {field or 'unique column'}")
        self.field = field


def _violated_field(exc: IntegrityError) -> str | None:
    message = str(exc.orig).lower()
    if "mobile_number" in message:
        return "mobile_number"
    if "username" in message:
        return "username"
    return None


class CredentialStore:
    """Persistence operations for users, sessions, attempts and codes.

    Every write commits immediately so that counts and conditional updates
    observed by concurrent requests reflect durable rows only.
    """

    # Users

    def find_user_by_id(self, user_id: str) -> User | None:
        return db.session.get(User, user_id)

    def find_user_by_username(self, username: str) -> User | None:
        return User.query.filter_by(username=username).first()

    def find_user_by_mobile(self, mobile_number: str) -> User | None:
        return User.query.filter_by(mobile_number=mobile_number).first()

    def create_user(
        self,
        *,
        username: str | None = None,
        password_hash: str | None = None,
        mobile_number: str | None = None,
        is_admin: bool = False,
    ) -> User:
        user = User(
            username=username,
            password_hash=password_hash,
            mobile_number=mobile_number,
            is_admin=is_admin,
        )
        db.session.add(user)
        try:
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            raise DuplicateUserError(_violated_field(exc)) from exc
        return user

    # Sessions

    def create_session(self, user_id: str, token: str, expires_at: datetime) -> SessionToken:
        record = SessionToken(user_id=user_id, token=token, expires_at=expires_at)
        db.session.add(record)
        db.session.commit()
        return record

    def find_session_by_token(self, token: str) -> SessionToken | None:
        return SessionToken.query.filter_by(token=token).first()

    def delete_session_by_token(self, token: str) -> bool:
        result = db.session.execute(delete(SessionToken).where(SessionToken.token == token))
        db.session.commit()
        return result.rowcount > 0

    def delete_sessions_for_user(self, user_id: str) -> int:
        result = db.session.execute(delete(SessionToken).where(SessionToken.user_id == user_id))
        db.session.commit()
        return result.rowcount

    def delete_expired_sessions(self, now: datetime) -> int:
        result = db.session.execute(delete(SessionToken).where(SessionToken.expires_at <= now))
        db.session.commit()
        return result.rowcount

    # Login attempts

    def create_login_attempt(
        self,
        identifier: str,
        success: bool,
        user_id: str | None = None,
        attempt_at: datetime | None = None,
    ) -> None:
        db.session.add(
            LoginAttempt(
                identifier=identifier,
                success=success,
                user_id=user_id,
                attempt_at=attempt_at or utcnow(),
            )
        )
        db.session.commit()

    def count_failed_attempts_since(self, identifier: str, since: datetime) -> int:
        return (
            db.session.query(func.count(LoginAttempt.id))
            .filter(
                LoginAttempt.identifier == identifier,
                LoginAttempt.success.is_(False),
                LoginAttempt.attempt_at >= since,
            )
            .scalar()
            or 0
        )

    def oldest_failed_attempt_since(self, identifier: str, since: datetime) -> LoginAttempt | None:
        return (
            LoginAttempt.query.filter(
                LoginAttempt.identifier == identifier,
                LoginAttempt.success.is_(False),
                LoginAttempt.attempt_at >= since,
            )
            .order_by(LoginAttempt.attempt_at.asc())
            .first()
        )

    def delete_login_attempts_before(self, cutoff: datetime) -> int:
        result = db.session.execute(delete(LoginAttempt).where(LoginAttempt.attempt_at < cutoff))
        db.session.commit()
        return result.rowcount

    # One-time codes

    def create_or_update_one_time_code(
        self,
        mobile_number: str,
        code_hash: str,
        expires_at: datetime,
        created_at: datetime | None = None,
    ) -> OneTimeCode:
        """Insert a fresh code row; earlier rows for the number are left as they are."""
        record = OneTimeCode(
            mobile_number=mobile_number,
            code_hash=code_hash,
            expires_at=expires_at,
            created_at=created_at or utcnow(),
        )
        db.session.add(record)
        db.session.commit()
        return record

    def find_latest_code_for(self, mobile_number: str) -> OneTimeCode | None:
        return (
            OneTimeCode.query.filter_by(mobile_number=mobile_number)
            .order_by(OneTimeCode.created_at.desc(), OneTimeCode.id.desc())
            .first()
        )

    def mark_consumed(self, code_id: int, now: datetime | None = None) -> bool:
        """Flip ``consumed`` once; concurrent callers see at most one ``True``."""
        result = db.session.execute(
            update(OneTimeCode)
            .where(OneTimeCode.id == code_id, OneTimeCode.consumed.is_(False))
            .values(consumed=True, consumed_at=now or utcnow())
            .execution_options(synchronize_session=False)
        )
        db.session.commit()
        return result.rowcount == 1

    def delete_expired_codes(self, now: datetime) -> int:
        result = db.session.execute(delete(OneTimeCode).where(OneTimeCode.expires_at < now))
        db.session.commit()
        return result.rowcount
