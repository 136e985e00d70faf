"""Bearer-token authentication helpers for Flask views."""
from __future__ import annotations

from functools import wraps
from typing import Callable

from flask import Flask, current_app, g, request

from ideahub_auth.services import AuthService

_BEARER_PREFIX = "bearer "


def init_app(app: Flask) -> None:
    """Build the auth service once configuration and the SMS provider exist."""
    with app.app_context():
        app.extensions["auth_service"] = AuthService.from_app(app)


def get_auth_service(app: Flask | None = None) -> AuthService:
    app = app or current_app
    return app.extensions["auth_service"]


def bearer_token() -> str:
    """Return the token from ``Authorization: Bearer <token>``, or an empty string."""
    header = request.headers.get("Authorization", "")
    if not header.lower().startswith(_BEARER_PREFIX):
        return ""
    return header[len(_BEARER_PREFIX):].strip()


def admin_required(view: Callable) -> Callable:
    """Decorator enforcing a live session that belongs to an admin."""

    @wraps(view)
    def wrapped(*args, **kwargs):
        g.current_user = get_auth_service().authenticate_admin(bearer_token())
        return view(*args, **kwargs)

    return wrapped
