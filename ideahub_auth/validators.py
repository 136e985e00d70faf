"""Input validation performed before any store access."""
from __future__ import annotations

import re

from config import E164_PATTERN
from ideahub_ext.errors import ValidationError

USERNAME_PATTERN = re.compile(r"[A-Za-z0-9_]+")
OTP_CODE_PATTERN = re.compile(r"[0-9]{6}")

USERNAME_MIN, USERNAME_MAX = 3, 30
PASSWORD_MIN, PASSWORD_MAX = 8, 100


def _fail(field: str, messages: list[str]) -> ValidationError:
    return ValidationError(field_errors={field: messages})


def _as_text(value: object) -> str:
    return value if isinstance(value, str) else ""


def username_errors(username: object) -> list[str]:
    value = _as_text(username)
    errors: list[str] = []
    if len(value) < USERNAME_MIN:
        errors.append(f"Username must be at least {USERNAME_MIN} characters")
    if len(value) > USERNAME_MAX:
        errors.append(f"Username must be at most {USERNAME_MAX} characters")
    if value and not USERNAME_PATTERN.fullmatch(value):
        errors.append("Username can only contain letters, numbers, and underscores")
    return errors


def password_errors(password: object) -> list[str]:
    value = _as_text(password)
    errors: list[str] = []
    if len(value) < PASSWORD_MIN:
        errors.append(f"Password must be at least {PASSWORD_MIN} characters")
    if len(value) > PASSWORD_MAX:
        errors.append(f"Password must be at most {PASSWORD_MAX} characters")
    return errors


def validate_registration(username: object, password: object) -> tuple[str, str]:
    field_errors = {}
    for field, errors in (("username", username_errors(username)), ("password", password_errors(password))):
        if errors:
            field_errors[field] = errors
    if field_errors:
        raise ValidationError(field_errors=field_errors)
    return str(username), str(password)


def validate_login(username: object, password: object) -> tuple[str, str]:
    """Login only requires presence; format rules apply at registration."""
    field_errors = {}
    if not _as_text(username):
        field_errors["username"] = ["Username is required"]
    if not _as_text(password):
        field_errors["password"] = ["Password is required"]
    if field_errors:
        raise ValidationError(field_errors=field_errors)
    return str(username), str(password)


def validate_mobile_number(mobile_number: object, field: str = "mobile_number") -> str:
    value = _as_text(mobile_number)
    if not E164_PATTERN.fullmatch(value):
        raise _fail(field, ["Mobile number must be in E.164 format (e.g. +14155550123)"])
    return value


def validate_otp_code(code: object) -> str:
    value = _as_text(code)
    if not OTP_CODE_PATTERN.fullmatch(value):
        raise _fail("code", ["Verification code must be exactly 6 digits"])
    return value

