"""Sliding-window limiter over the login attempt ledger."""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable

from ideahub_auth.store import CredentialStore
from ideahub_ext.db import utcnow


class RateLimiter:
    """Count recent failures per identifier straight from the store.

    Nothing is cached in process memory, so every worker sees the same
    counts. Successful attempts are recorded but never reset the count; the
    window only empties as failures age out of it.
    """

    def __init__(
        self,
        store: CredentialStore,
        *,
        max_attempts: int = 5,
        window_minutes: int = 15,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.max_attempts = max_attempts
        self.window = timedelta(minutes=window_minutes)
        self.clock = clock

    def _window_start(self) -> datetime:
        return self.clock() - self.window

    def record(self, identifier: str, success: bool, user_id: str | None = None) -> None:
        self.store.create_login_attempt(identifier, success, user_id=user_id, attempt_at=self.clock())

    def failed_attempt_count(self, identifier: str) -> int:
        return self.store.count_failed_attempts_since(identifier, self._window_start())

    def is_limited(self, identifier: str) -> bool:
        return self.failed_attempt_count(identifier) >= self.max_attempts

    def expiration_of(self, identifier: str) -> datetime | None:
        """When the oldest failure in the window stops counting, if any."""
        oldest = self.store.oldest_failed_attempt_since(identifier, self._window_start())
        if oldest is None:
            return None
        return oldest.attempt_at + self.window
