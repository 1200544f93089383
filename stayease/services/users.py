"""Credential store lookups and writes for User records."""

import logging

from sqlalchemy.orm import Session

from stayease.models.enums import UserRole
from stayease.models.user import User
from stayease.services.auth import get_password_hash

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    """Emails are stored and compared lowercase."""
    return email.strip().lower()


def get_user_by_email(db: Session, email: str) -> User | None:
    """Get a user by email."""
    return db.query(User).filter(User.email == normalize_email(email)).first()


def get_user_by_id(db: Session, user_id: int | str) -> User | None:
    """Get a user by primary key; non-numeric ids match nothing."""
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        return None
    return db.query(User).filter(User.id == user_id).first()


def create_user(
    db: Session,
    email: str,
    name: str,
    *,
    password: str | None = None,
    password_hash: str | None = None,
    phone: str = "",
    role: UserRole = UserRole.GUEST,
) -> User:
    """Create a new user from a plaintext password or an existing hash."""
    if password_hash is None:
        if password is None:
            raise ValueError("password or password_hash is required")
        password_hash = get_password_hash(password)

    user = User(
        email=normalize_email(email),
        name=name.strip(),
        phone=phone.strip(),
        password_hash=password_hash,
        role=UserRole(role).value,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Created user {user.id} with role {user.role}")
    return user


def update_profile(db: Session, user: User, name: str | None = None, phone: str | None = None) -> User:
    """Update the editable profile fields."""
    if name:
        user.name = name.strip()
    if phone is not None:
        user.phone = phone.strip()
    db.commit()
    db.refresh(user)
    return user


def ensure_admin(db: Session, email: str, password: str) -> User | None:
    """Create the admin account if it does not exist yet.

    Returns the new user, or None when the email is already taken.
    """
    if get_user_by_email(db, email):
        return None
    user = create_user(db, email, "Admin", password=password, role=UserRole.ADMIN)
    logger.info("Admin user seeded")
    return user
