"""Session service: access/refresh token issuance, rotation and revocation."""

import logging
from typing import NamedTuple

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from stayease.models.user import User
from stayease.services.auth import (
    create_access_token,
    create_refresh_token,
    decode_refresh_token,
    hash_token,
)
from stayease.services.users import get_user_by_id

logger = logging.getLogger(__name__)


class TokenPair(NamedTuple):
    access_token: str
    refresh_token: str


def _invalid_refresh_token() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid refresh token.",
    )


class SessionService:
    """Keeps a single live refresh token per user.

    Only the hash of the newest refresh token is stored on the user. Issuing
    or rotating overwrites it, so any earlier token, including one that was
    already exchanged, stops working.
    """

    def __init__(self, db: Session):
        self.db = db

    def issue(self, user: User) -> TokenPair:
        """Start a new session for a user (login, registration, password change)."""
        tokens = TokenPair(create_access_token(user), create_refresh_token(user))
        user.refresh_token_hash = hash_token(tokens.refresh_token)
        self.db.commit()
        self.db.refresh(user)
        return tokens

    def rotate(self, refresh_token: str | None) -> tuple[User, TokenPair]:
        """Exchange a refresh token for a fresh pair.

        The stored hash is swapped with a compare-and-set UPDATE, so two
        concurrent exchanges of the same token cannot both succeed.
        """
        if not refresh_token:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Missing refresh token.",
            )

        payload = decode_refresh_token(refresh_token)
        if payload is None:
            raise _invalid_refresh_token()

        user = get_user_by_id(self.db, payload["sub"])
        if user is None:
            raise _invalid_refresh_token()

        tokens = TokenPair(create_access_token(user), create_refresh_token(user))
        updated = (
            self.db.query(User)
            .filter(User.id == user.id, User.refresh_token_hash == hash_token(refresh_token))
            .update({User.refresh_token_hash: hash_token(tokens.refresh_token)}, synchronize_session=False)
        )
        self.db.commit()

        if updated != 1:
            logger.warning(f"Rejected stale refresh token for user {user.id}")
            raise _invalid_refresh_token()

        self.db.refresh(user)
        return user, tokens

    def revoke(self, refresh_token: str | None) -> None:
        """End the session a refresh token belongs to. Never raises."""
        if not refresh_token:
            return
        payload = decode_refresh_token(refresh_token)
        if payload is None:
            return
        try:
            user = get_user_by_id(self.db, payload["sub"])
            if user is not None:
                self.revoke_user(user)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to revoke refresh token on logout: {e}")

    def revoke_user(self, user: User) -> None:
        """Invalidate every outstanding refresh token of a user."""
        user.refresh_token_hash = None
        self.db.commit()
        logger.info(f"Revoked refresh tokens for user {user.id}")
