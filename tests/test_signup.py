"""Tests for OTP-verified registration."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException

from stayease.config import Settings
from stayease.models.pending_signup import PendingSignup
from stayease.models.user import User
from stayease.schemas.auth import OtpRequest
from stayease.services.auth import utcnow
from stayease.services.signup import SignupService
from stayease.services.users import create_user

SIGNUP = {
    "name": "Otp User",
    "email": "otp@example.com",
    "phone": "+1 555 0199",
    "password": "otppass123",
    "role": "host",
    "terms_accepted": True,
}


def _request_otp(client, **overrides):
    return client.post("/api/auth/register/request-otp", json={**SIGNUP, **overrides})


def _pending(db, email="otp@example.com"):
    return db.query(PendingSignup).filter(PendingSignup.email == email).first()


def test_request_otp_returns_dev_preview(client, db):
    """Test undelivered OTPs are previewed outside production."""
    response = _request_otp(client)
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Email delivery unavailable. Using dev OTP preview."
    assert len(data["otp_preview"]) == 6
    assert data["otp_preview"].isdigit()

    pending = _pending(db)
    assert pending is not None
    assert pending.role == "host"
    assert pending.terms_accepted is True
    assert pending.otp_hash != data["otp_preview"]
    assert db.query(User).count() == 0


def test_verify_otp_creates_user(client, db):
    """Test the correct code creates exactly one user and consumes the pending row."""
    otp = _request_otp(client).json()["otp_preview"]

    response = client.post("/api/auth/register/verify-otp", json={"email": "OTP@example.com", "otp": otp})
    assert response.status_code == 201
    data = response.json()
    assert data["access_token"]
    assert data["user"]["email"] == "otp@example.com"
    assert data["user"]["phone"] == "+1 555 0199"
    assert data["user"]["role"] == "host"
    assert client.cookies.get("refresh_token")

    assert db.query(User).filter(User.email == "otp@example.com").count() == 1
    assert _pending(db) is None


def test_verified_user_can_log_in(client):
    """Test the staged password is the one the account ends up with."""
    from conftest import login

    otp = _request_otp(client).json()["otp_preview"]
    client.post("/api/auth/register/verify-otp", json={"email": "otp@example.com", "otp": otp})

    assert login(client, "otp@example.com", "otppass123").status_code == 200


def test_verify_otp_twice(client):
    """Test a consumed signup cannot be verified again."""
    otp = _request_otp(client).json()["otp_preview"]
    first = client.post("/api/auth/register/verify-otp", json={"email": "otp@example.com", "otp": otp})
    assert first.status_code == 201

    second = client.post("/api/auth/register/verify-otp", json={"email": "otp@example.com", "otp": otp})
    assert second.status_code == 400
    assert second.json()["detail"] == "No pending signup found."


def test_verify_wrong_otp_keeps_pending(client, db):
    """Test a wrong code leaves the pending row intact and creates no user."""
    otp = _request_otp(client).json()["otp_preview"]
    wrong = "000000" if otp != "000000" else "111111"

    response = client.post("/api/auth/register/verify-otp", json={"email": "otp@example.com", "otp": wrong})
    assert response.status_code == 400
    assert response.json()["detail"] == "Invalid OTP."
    assert _pending(db) is not None
    assert db.query(User).count() == 0

    # The right code still works afterwards
    response = client.post("/api/auth/register/verify-otp", json={"email": "otp@example.com", "otp": otp})
    assert response.status_code == 201


def test_verify_expired_otp_removes_pending(client, db):
    """Test an expired code fails and deletes the stale row."""
    otp = _request_otp(client).json()["otp_preview"]
    pending = _pending(db)
    pending.otp_expires_at = utcnow() - timedelta(minutes=1)
    db.commit()

    response = client.post("/api/auth/register/verify-otp", json={"email": "otp@example.com", "otp": otp})
    assert response.status_code == 400
    assert response.json()["detail"] == "OTP expired. Request a new OTP."
    assert _pending(db) is None
    assert db.query(User).count() == 0


def test_verify_without_pending(client):
    """Test verifying an email that never requested a code."""
    response = client.post("/api/auth/register/verify-otp", json={"email": "ghost@example.com", "otp": "123456"})
    assert response.status_code == 400
    assert response.json()["detail"] == "No pending signup found."


def test_verify_when_email_taken_meanwhile(client, db):
    """Test a user registered in the meantime wins and the pending row is dropped."""
    otp = _request_otp(client).json()["otp_preview"]
    create_user(db, "otp@example.com", "Someone Else", password="otherpass123")

    response = client.post("/api/auth/register/verify-otp", json={"email": "otp@example.com", "otp": otp})
    assert response.status_code == 409
    assert _pending(db) is None
    assert db.query(User).count() == 1


def test_request_otp_replaces_previous(client, db):
    """Test a second request overwrites the first; only the newest code works."""
    first = _request_otp(client).json()["otp_preview"]
    second = _request_otp(client, name="Renamed").json()["otp_preview"]

    assert db.query(PendingSignup).count() == 1
    assert _pending(db).name == "Renamed"

    if first != second:
        response = client.post("/api/auth/register/verify-otp", json={"email": "otp@example.com", "otp": first})
        assert response.status_code == 400

    response = client.post("/api/auth/register/verify-otp", json={"email": "otp@example.com", "otp": second})
    assert response.status_code == 201


def test_request_otp_existing_user(client, auth_headers):
    """Test requesting a code for a registered email returns 409."""
    response = _request_otp(client, email=auth_headers.email)
    assert response.status_code == 409


@pytest.mark.parametrize(
    "overrides",
    [
        {"terms_accepted": False},
        {"password": "short"},
        {"email": "bad-email"},
        {"phone": ""},
        {"name": "   "},
    ],
)
def test_request_otp_validation(client, db, overrides):
    """Test invalid requests are rejected with 400 and stage nothing."""
    response = _request_otp(client, **overrides)
    assert response.status_code == 400
    assert db.query(PendingSignup).count() == 0


def test_request_otp_missing_phone(client):
    """Test phone is required for OTP signups."""
    body = {key: value for key, value in SIGNUP.items() if key != "phone"}
    response = client.post("/api/auth/register/request-otp", json=body)
    assert response.status_code == 400
    assert "phone" in response.json()["detail"]


class TestSignupService:
    """Service-level tests for delivery and preview gating."""

    def _command(self, **overrides):
        return OtpRequest(**{**SIGNUP, **overrides})

    def test_delivered_otp_is_not_previewed(self, db):
        """Test a delivered code never comes back to the caller."""
        email_service = MagicMock()
        email_service.send_otp_email.return_value = True
        service = SignupService(db, email_service)

        result = service.request_otp(self._command())

        assert result.delivered is True
        assert result.otp_preview is None
        email_service.send_otp_email.assert_called_once()
        assert email_service.send_otp_email.call_args[0][0] == "otp@example.com"

    def test_production_hides_preview(self, db):
        """Test production never echoes the code, even when delivery fails."""
        email_service = MagicMock()
        email_service.send_otp_email.return_value = False
        service = SignupService(db, email_service)
        service.settings = Settings(
            environment="production",
            access_token_secret="prod-access",
            refresh_token_secret="prod-refresh",
            database_url="postgresql://stayease@db.internal/stayease",
        )

        result = service.request_otp(self._command())

        assert result.delivered is False
        assert result.otp_preview is None
        assert _pending(db) is not None

    def test_register_duplicate_raises_conflict(self, db):
        """Test direct registration conflicts on an existing email."""
        create_user(db, "dup@example.com", "Dup", password="duppass123")
        service = SignupService(db, MagicMock())

        from stayease.schemas.auth import UserRegister

        with pytest.raises(HTTPException) as exc_info:
            service.register(UserRegister(name="Dup", email="DUP@example.com", password="duppass123"))
        assert exc_info.value.status_code == 409

    def test_purge_expired(self, db):
        """Test only expired pending rows are purged."""
        email_service = MagicMock()
        email_service.send_otp_email.return_value = True
        service = SignupService(db, email_service)
        service.request_otp(self._command(email="stale@example.com"))
        service.request_otp(self._command(email="fresh@example.com"))

        stale = _pending(db, "stale@example.com")
        stale.otp_expires_at = utcnow() - timedelta(seconds=1)
        db.commit()

        assert service.purge_expired() == 1
        assert _pending(db, "stale@example.com") is None
        assert _pending(db, "fresh@example.com") is not None
