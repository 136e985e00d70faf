"""Application-wide error handling and typed exceptions."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, Tuple

from flask import Flask, Response, current_app, g, has_request_context, jsonify
from werkzeug.exceptions import HTTPException


@dataclass(eq=False)
class AppError(Exception):
    """Base exception carrying structured context."""

    user_msg: str = "An unexpected error occurred."
    code: str = "INTERNAL_ERROR"
    http_status: int = 500
    detail: str | None = None
    safe_context: Dict[str, Any] | None = None

    def __post_init__(self) -> None:
        Exception.__init__(self, self.user_msg)

    def __str__(self) -> str:
        return self.user_msg

    def payload(self, *, include_detail: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": self.__class__.__name__,
            "message": self.user_msg,
            "code": self.code,
        }
        if has_request_context():
            data["request_id"] = getattr(g, "request_id", None)
        if include_detail and self.detail:
            data["detail"] = self.detail
        if self.safe_context:
            data["context"] = _redact_dict(self.safe_context, _redact_keys())
        return {"error": data}

    def to_response(self) -> Tuple[Dict[str, Any], int]:
        include_detail = current_app.debug or current_app.testing
        return self.payload(include_detail=include_detail), self.http_status


@dataclass(eq=False)
class ValidationError(AppError):
    user_msg: str = "Validation failed"
    code: str = "VALIDATION_ERROR"
    http_status: int = 400
    field_errors: Dict[str, list[str]] = field(default_factory=dict)

    def payload(self, *, include_detail: bool = False) -> Dict[str, Any]:
        data = super().payload(include_detail=include_detail)
        if self.field_errors:
            data["error"]["details"] = {key: list(value) for key, value in self.field_errors.items()}
        return data


@dataclass(eq=False)
class AuthError(AppError):
    user_msg: str = "Authentication failed"
    code: str = "AUTH_FAILED"
    http_status: int = 401


@dataclass(eq=False)
class RateLimitError(AppError):
    user_msg: str = "Too many attempts. Please try again later."
    code: str = "RATE_LIMITED"
    http_status: int = 429
    retry_after: int = 1
    retry_at: datetime | None = None

    def payload(self, *, include_detail: bool = False) -> Dict[str, Any]:
        data = super().payload(include_detail=include_detail)
        data["error"]["retry_after"] = self.retry_after
        if self.retry_at is not None:
            data["error"]["retry_at"] = self.retry_at.isoformat() + "Z"
        return data


@dataclass(eq=False)
class ConflictError(AppError):
    user_msg: str = "Resource already exists"
    code: str = "CONFLICT"
    http_status: int = 409


@dataclass(eq=False)
class NotFoundError(AppError):
    user_msg: str = "Resource not found"
    code: str = "NOT_FOUND"
    http_status: int = 404


@dataclass(eq=False)
class ForbiddenError(AppError):
    user_msg: str = "Forbidden"
    code: str = "FORBIDDEN"
    http_status: int = 403


@dataclass(eq=False)
class InternalError(AppError):
    user_msg: str = "An unexpected error occurred."
    code: str = "INTERNAL_ERROR"
    http_status: int = 500


def _redact_keys() -> list[str]:
    try:
        return list(current_app.config.get("REDACT_KEYS", []))
    except RuntimeError:
        return []


def _redact_dict(data: Dict[str, Any], keys: Iterable[str]) -> Dict[str, Any]:
    lowered = {key.lower() for key in keys}
    redacted: Dict[str, Any] = {}
    for key, value in data.items():
        if key.lower() in lowered:
            redacted[key] = "***"
        elif isinstance(value, dict):
            redacted[key] = _redact_dict(value, lowered)
        else:
            redacted[key] = value
    return redacted


def init_app(app: Flask) -> None:
    """Attach global error handlers to the Flask application."""
    app.register_error_handler(AppError, _handle_app_error)
    app.register_error_handler(HTTPException, _handle_http_exception)
    app.register_error_handler(Exception, _handle_unexpected)


def _handle_app_error(error: AppError):
    if error.http_status >= 500:
        current_app.logger.error(
            "Request failed with %s", error.code, extra={"component": "errors", "context": {"detail": error.detail}}
        )
    return _format_error(error)


def _handle_http_exception(error: HTTPException):
    app_error = AppError(
        user_msg=error.description or "HTTP error",
        code=(error.name or "HTTP_ERROR").upper().replace(" ", "_"),
        http_status=error.code or 500,
    )
    return _format_error(app_error)


def _handle_unexpected(error: Exception):
    current_app.logger.exception("Unhandled exception", exc_info=error)
    return _format_error(InternalError(detail=str(error) if current_app.debug else None))


def _format_error(error: AppError) -> Response:
    payload, status = error.to_response()
    response = jsonify(payload)
    response.status_code = status
    return _attach_headers(response, error)


def _attach_headers(response: Response, error: AppError) -> Response:
    request_id = getattr(g, "request_id", None)
    if request_id:
        response.headers["X-Request-ID"] = request_id
    if isinstance(error, RateLimitError):
        response.headers["Retry-After"] = str(max(1, int(error.retry_after)))
    return response
