"""User model."""

from sqlalchemy import Column, DateTime, Integer, String

from stayease.database import Base
from stayease.models.enums import UserRole
from stayease.models.mixins import TimestampMixin


class User(Base, TimestampMixin):
    """User model for authentication and ownership."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    phone = Column(String(50), nullable=False, default="")
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.GUEST.value)

    # SHA-256 of the only refresh token that may still be exchanged; NULL when logged out
    refresh_token_hash = Column(String(64), nullable=True)

    reset_token_hash = Column(String(64), nullable=True, index=True)
    reset_token_expires_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
