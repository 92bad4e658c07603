from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import CheckConstraint, Index
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------- Base & naming ----------
class Base(DeclarativeBase):
    # Keep index/constraint names stable for cleaner migrations
    metadata = sa.MetaData(
        naming_convention={
            "ix": "ix_%(column_0_label)s",
            "uq": "uq_%(table_name)s_%(column_0_name)s",
            "ck": "ck_%(table_name)s_%(constraint_name)s",
            "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
            "pk": "pk_%(table_name)s",
        }
    )


class UTCDateTime(sa.TypeDecorator):
    """Timezone-aware UTC timestamp, also on backends that hand back naive values (SQLite)."""

    impl = sa.DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError("naive datetime bound to a UTC column")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


# ---------- OTPS ----------
class Otp(Base):
    __tablename__ = "otps"

    id: Mapped[uuid.UUID] = mapped_column(sa.Uuid, primary_key=True, default=uuid.uuid4)
    # normalized (stripped, lower-cased) before it gets here
    email: Mapped[str] = mapped_column(sa.String(150), nullable=False)
    code: Mapped[str] = mapped_column(sa.String(10), nullable=False)
    purpose: Mapped[str] = mapped_column(sa.String(50), nullable=False)  # "Registration", "PasswordReset", ...

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    is_used: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False, server_default=sa.false())
    used_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "(is_used AND used_at IS NOT NULL) OR (NOT is_used AND used_at IS NULL)",
            name="otps_used_at_iff_used",
        ),
        CheckConstraint("expires_at > created_at", name="otps_expiry_after_creation"),
        Index("ix_otps_email_purpose_used", "email", "purpose", "is_used"),
        Index("ix_otps_expires_at", "expires_at"),
    )

    def is_live(self, now: datetime) -> bool:
        return not self.is_used and now < self.expires_at

    def __repr__(self) -> str:
        # never include the code
        return f"<Otp id={self.id} email={self.email!r} purpose={self.purpose!r} used={self.is_used}>"
