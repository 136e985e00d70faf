"""Persistent session tokens backing authenticated requests."""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ideahub_ext.db import db, generate_uuid, utcnow

if TYPE_CHECKING:  # pragma: no cover - used for type hints only
    from ideahub_models.user import User


class SessionToken(db.Model):
    """Opaque bearer token owned by a user until logout or expiry."""

    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    user_id: Mapped[str] = mapped_column(db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    user: Mapped["User"] = relationship("User", back_populates="sessions")

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<SessionToken {self.id} user={self.user_id}>"
