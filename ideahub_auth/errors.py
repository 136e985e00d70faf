"""Error kinds raised by the authentication core.

Messages are deliberately generic. Distinct failure causes inside one kind
(unknown user, missing password, wrong password; or missing, expired,
consumed, wrong OTP) must never be told apart by callers.
"""
from __future__ import annotations

from dataclasses import dataclass

from ideahub_ext.errors import AppError, ConflictError, ForbiddenError, InternalError, NotFoundError


@dataclass(eq=False)
class OtpInvalidError(AppError):
    user_msg: str = "Invalid or expired verification code"
    code: str = "OTP_INVALID"
    http_status: int = 401


@dataclass(eq=False)
class UsernameTakenError(ConflictError):
    user_msg: str = "Username already exists"
    code: str = "USERNAME_TAKEN"


@dataclass(eq=False)
class MobileTakenError(ConflictError):
    user_msg: str = "Mobile number already exists"
    code: str = "MOBILE_TAKEN"


@dataclass(eq=False)
class SessionNotFoundError(NotFoundError):
    user_msg: str = "Session not found"
    code: str = "SESSION_NOT_FOUND"


@dataclass(eq=False)
class UserNotFoundError(NotFoundError):
    user_msg: str = "No account is registered for this mobile number"
    code: str = "USER_NOT_FOUND"


@dataclass(eq=False)
class AdminRequiredError(ForbiddenError):
    user_msg: str = "Admin authentication required"
    code: str = "ADMIN_REQUIRED"


@dataclass(eq=False)
class SmsDeliveryError(InternalError):
    user_msg: str = "Failed to send verification code"
