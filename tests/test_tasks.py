"""Tests for maintenance Celery tasks."""

from datetime import timedelta
from unittest.mock import patch

from stayease.models.pending_signup import PendingSignup
from stayease.models.user import User
from stayease.services.auth import hash_token, utcnow
from stayease.services.users import create_user
from stayease.tasks.maintenance import purge_expired_pending_signups, purge_expired_reset_tokens


def _pending(email: str, expires_in: timedelta) -> PendingSignup:
    return PendingSignup(
        email=email,
        name="Pending",
        phone="+1 555 0100",
        password_hash="fake",
        role="guest",
        terms_accepted=True,
        otp_hash=hash_token("123456"),
        otp_expires_at=utcnow() + expires_in,
    )


def test_purge_expired_pending_signups(db):
    """Test the task deletes only expired pending signups."""
    db.add_all(
        [
            _pending("expired@example.com", timedelta(minutes=-5)),
            _pending("live@example.com", timedelta(minutes=5)),
        ]
    )
    db.commit()

    with patch("stayease.tasks.maintenance.SessionLocal", return_value=db):
        result = purge_expired_pending_signups()

    assert result == {"deleted": 1}
    assert [p.email for p in db.query(PendingSignup).all()] == ["live@example.com"]


def test_purge_expired_reset_tokens(db):
    """Test the task clears expired reset tokens."""
    user = create_user(db, "reset@example.com", "Reset", password_hash="fake")
    user.reset_token_hash = hash_token("token")
    user.reset_token_expires_at = utcnow() - timedelta(minutes=1)
    db.commit()

    with patch("stayease.tasks.maintenance.SessionLocal", return_value=db):
        result = purge_expired_reset_tokens()

    assert result == {"cleared": 1}
    # The task closed the session, which detached the instance
    user = db.query(User).filter(User.email == "reset@example.com").one()
    assert user.reset_token_hash is None
    assert user.reset_token_expires_at is None
