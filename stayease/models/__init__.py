"""SQLAlchemy models."""

from stayease.models.pending_signup import PendingSignup
from stayease.models.user import User

__all__ = [
    "User",
    "PendingSignup",
]
