"""Issue, validate and invalidate opaque session tokens."""
from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import Callable

from ideahub_auth.store import CredentialStore
from ideahub_ext.db import utcnow
from ideahub_models.session import SessionToken

# 32 random bytes, 256 bits of entropy, url-safe base64 encoded.
TOKEN_BYTES = 32


def generate_session_token(nbytes: int = TOKEN_BYTES) -> str:
    return secrets.token_urlsafe(nbytes)


class SessionManager:
    def __init__(
        self,
        store: CredentialStore,
        *,
        expiry_days: int = 7,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.lifetime = timedelta(days=expiry_days)
        self.clock = clock

    def issue(self, user_id: str) -> SessionToken:
        return self.store.create_session(user_id, generate_session_token(), self.clock() + self.lifetime)

    def validate(self, token: str) -> SessionToken | None:
        """Return the live session for ``token``; unknown and expired look the same."""
        if not token:
            return None
        session = self.store.find_session_by_token(token)
        if session is None:
            return None
        if session.is_expired(self.clock()):
            self.store.delete_session_by_token(token)
            return None
        return session

    def invalidate(self, token: str) -> bool:
        """Delete the session; safe to repeat, returns False once it is gone."""
        if not token:
            return False
        return self.store.delete_session_by_token(token)

    def invalidate_all_for_user(self, user_id: str) -> int:
        return self.store.delete_sessions_for_user(user_id)

    def purge_expired(self) -> int:
        return self.store.delete_expired_sessions(self.clock())
