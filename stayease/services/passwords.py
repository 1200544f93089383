"""Password reset and change."""

import logging
from datetime import datetime, timedelta

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from stayease.config import get_settings
from stayease.models.user import User
from stayease.services.auth import (
    generate_reset_token,
    get_password_hash,
    hash_token,
    utcnow,
    verify_password,
)
from stayease.services.email_service import EmailService
from stayease.services.users import get_user_by_email

logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = "If an account exists, a reset link has been sent."


def _invalid_reset_token() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail="Invalid or expired reset token.",
    )


class PasswordService:
    """Service for password recovery and rotation."""

    def __init__(self, db: Session, email_service: EmailService | None = None):
        self.db = db
        self.email_service = email_service or EmailService()
        self.settings = get_settings()

    def forgot_password(self, email: str) -> str | None:
        """
        Start a password reset.

        Callers must answer with FORGOT_PASSWORD_MESSAGE whatever happens here.

        Returns:
            The plaintext reset token when it may be shown to the caller
            (account exists and not production), otherwise None.
        """
        user = get_user_by_email(self.db, email) if email else None
        if user is None:
            return None

        token = generate_reset_token()
        user.reset_token_hash = hash_token(token)
        user.reset_token_expires_at = utcnow() + timedelta(minutes=self.settings.reset_token_expire_minutes)
        self.db.commit()
        logger.info(f"Issued password reset token for user {user.id}")

        if self.settings.is_production:
            self.email_service.send_password_reset_email(
                user.email, token, expires_minutes=self.settings.reset_token_expire_minutes
            )
            return None
        return token

    def reset_password(self, token: str, new_password: str, now: datetime | None = None) -> User:
        """Set a new password with a reset token.

        The token is consumed by a compare-and-set UPDATE on its hash, so of
        two concurrent resets with the same token only one succeeds.
        """
        now = now or utcnow()
        token_hash = hash_token(token)
        user = (
            self.db.query(User)
            .filter(User.reset_token_hash == token_hash, User.reset_token_expires_at > now)
            .first()
        )
        if user is None:
            raise _invalid_reset_token()

        updated = (
            self.db.query(User)
            .filter(
                User.id == user.id,
                User.reset_token_hash == token_hash,
                User.reset_token_expires_at > now,
            )
            .update(
                {
                    User.password_hash: get_password_hash(new_password),
                    User.reset_token_hash: None,
                    User.reset_token_expires_at: None,
                    # Whoever held the old password may still hold a session
                    User.refresh_token_hash: None,
                },
                synchronize_session=False,
            )
        )
        self.db.commit()

        if updated != 1:
            logger.warning(f"Rejected already used reset token for user {user.id}")
            raise _invalid_reset_token()

        self.db.refresh(user)
        logger.info(f"Password reset for user {user.id}")
        return user

    def change_password(self, user: User, current_password: str, new_password: str) -> User:
        """Change the password of a signed-in user.

        The caller is expected to issue a new session afterwards, which
        replaces the stored refresh token hash.
        """
        if not verify_password(current_password, user.password_hash):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Current password is incorrect.",
            )

        user.password_hash = get_password_hash(new_password)
        user.refresh_token_hash = None
        self.db.commit()
        logger.info(f"Password changed for user {user.id}")
        return user

    def purge_expired_reset_tokens(self, now: datetime | None = None) -> int:
        """Clear reset tokens that can no longer be redeemed."""
        cleared = (
            self.db.query(User)
            .filter(User.reset_token_expires_at.is_not(None), User.reset_token_expires_at <= (now or utcnow()))
            .update(
                {User.reset_token_hash: None, User.reset_token_expires_at: None},
                synchronize_session=False,
            )
        )
        self.db.commit()
        return cleared
