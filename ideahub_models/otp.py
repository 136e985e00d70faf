"""One-time code persistence model."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from ideahub_ext.db import db, utcnow


class OneTimeCode(db.Model):
    """Hashed SMS code bound to a mobile number with expiry and consumption."""

    __tablename__ = "one_time_codes"
    __table_args__ = (
        Index("ix_one_time_codes_mobile_created", "mobile_number", "created_at"),
    )

    # Autoincrement id breaks ties between codes created at the same instant.
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    mobile_number: Mapped[str] = mapped_column(String(16), nullable=False)
    code_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    consumed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    consumed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<OneTimeCode {self.id} {self.mobile_number} consumed={self.consumed}>"
