"""Rate-limited execution of login attempts."""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Callable

from ideahub_ext.errors import AppError, RateLimitError
from ideahub_ext.logging import log_info, log_warn

if TYPE_CHECKING:  # pragma: no cover - used for type hints only
    from ideahub_auth.rate_limit import RateLimiter
    from ideahub_models.session import SessionToken


@dataclass(frozen=True)
class AttemptResult:
    """Outcome of one authenticator call.

    ``user_id`` is set whenever a matching account was found, including
    failed attempts, so the ledger can link the attempt to the user.
    """

    user_id: str | None = None
    session: "SessionToken | None" = None

    @property
    def ok(self) -> bool:
        return self.session is not None


class AuthOrchestrator:
    def __init__(self, rate_limiter: "RateLimiter") -> None:
        self.rate_limiter = rate_limiter

    @property
    def clock(self) -> Callable[[], datetime]:
        return self.rate_limiter.clock

    def ensure_not_limited(self, identifier: str) -> None:
        if not self.rate_limiter.is_limited(identifier):
            return
        now = self.clock()
        retry_at = self.rate_limiter.expiration_of(identifier) or now
        retry_after = max(1, math.ceil((retry_at - now).total_seconds()))
        log_warn("login blocked by rate limit", component="auth", identifier=identifier, retry_after=retry_after)
        raise RateLimitError(retry_after=retry_after, retry_at=retry_at)

    def login(
        self,
        identifier: str,
        attempt: Callable[[], AttemptResult],
        failure: Callable[[], AppError],
    ) -> "SessionToken":
        """Check the limit, run ``attempt``, then record the outcome.

        A limited identifier never reaches ``attempt``. Every attempt that
        runs is recorded, and typed errors raised from inside it (such as a
        missing account after a valid OTP) count as failures before they
        propagate.
        """
        self.ensure_not_limited(identifier)
        try:
            result = attempt()
        except AppError:
            self.rate_limiter.record(identifier, success=False)
            log_info("login failed", component="auth", identifier=identifier, success=False)
            raise
        self.rate_limiter.record(identifier, success=result.ok, user_id=result.user_id)
        log_info("login attempt recorded", component="auth", identifier=identifier, success=result.ok)
        if result.session is None:
            raise failure()
        return result.session
