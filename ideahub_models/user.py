"""User model for credential and mobile accounts."""
from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, DateTime, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ideahub_ext.db import db, generate_uuid, utcnow

if TYPE_CHECKING:  # pragma: no cover - used for type hints only
    from ideahub_models.session import SessionToken


class User(db.Model):
    """Identity record; at least one of username or mobile number is set."""

    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("username", name="uq_users_username"),
        UniqueConstraint("mobile_number", name="uq_users_mobile_number"),
        CheckConstraint(
            "username IS NOT NULL OR mobile_number IS NOT NULL",
            name="ck_users_has_identifier",
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    username: Mapped[str | None] = mapped_column(String(30), nullable=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    mobile_number: Mapped[str | None] = mapped_column(String(16), nullable=True)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    sessions: Mapped[list["SessionToken"]] = relationship(
        "SessionToken",
        back_populates="user",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def has_password(self) -> bool:
        return bool(self.password_hash)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<User {self.id} {self.username or self.mobile_number}>"
