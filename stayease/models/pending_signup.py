"""Pending signup model for OTP-verified registration."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from stayease.database import Base
from stayease.models.enums import UserRole
from stayease.models.mixins import TimestampMixin


class PendingSignup(Base, TimestampMixin):
    """Registration staged until the emailed OTP is confirmed.

    One row per email; requesting a new OTP overwrites the row. The row is
    deleted once the OTP is verified (the User takes its place) or once a
    verification attempt finds it expired.
    """

    __tablename__ = "pending_signups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(50), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=UserRole.GUEST.value)
    terms_accepted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    otp_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    otp_expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    # Stored with the rest of the staged record; flipped just before the row is consumed
    otp_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def __repr__(self) -> str:
        return f"<PendingSignup(id={self.id}, email={self.email})>"
