"""Enums for model fields."""

from enum import Enum


class UserRole(str, Enum):
    """Account roles."""

    GUEST = "guest"
    HOST = "host"
    ADMIN = "admin"

    @classmethod
    def for_self_signup(cls, requested: str | None) -> "UserRole":
        """Roles a visitor may pick for themselves; anything else becomes guest."""
        if requested == cls.HOST.value:
            return cls.HOST
        return cls.GUEST
