"""Append-only ledger of login attempts used for rate limiting."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from ideahub_ext.db import db, generate_uuid, utcnow


class LoginAttempt(db.Model):
    """One row per authentication attempt; never updated."""

    __tablename__ = "login_attempts"
    __table_args__ = (
        Index("ix_login_attempts_identifier_attempt_at", "identifier", "attempt_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    identifier: Mapped[str] = mapped_column(String(255), nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    user_id: Mapped[str | None] = mapped_column(
        db.ForeignKey("users.id", ondelete="CASCADE"), nullable=True
    )
    attempt_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<LoginAttempt {self.identifier} success={self.success}>"
