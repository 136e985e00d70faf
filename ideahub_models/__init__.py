"""SQLAlchemy models exposed as a cohesive package."""
from __future__ import annotations

from ideahub_models.login_attempt import LoginAttempt
from ideahub_models.otp import OneTimeCode
from ideahub_models.session import SessionToken
from ideahub_models.user import User

__all__ = [
    "LoginAttempt",
    "OneTimeCode",
    "SessionToken",
    "User",
]
