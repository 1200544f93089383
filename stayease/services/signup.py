"""Registration service: direct signup and OTP-verified signup."""

import logging
from datetime import datetime, timedelta
from typing import NamedTuple

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from stayease.config import get_settings
from stayease.models.pending_signup import PendingSignup
from stayease.models.user import User
from stayease.schemas.auth import OtpRequest, UserRegister
from stayease.services.auth import (
    generate_otp,
    get_password_hash,
    hash_token,
    is_expired,
    token_matches,
    utcnow,
)
from stayease.services.email_service import EmailService, redact_email
from stayease.services.users import create_user, get_user_by_email, normalize_email

logger = logging.getLogger(__name__)


class OtpRequestResult(NamedTuple):
    delivered: bool
    otp_preview: str | None


def _email_taken() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail="Email already registered.",
    )


def _bad_request(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class SignupService:
    """Creates accounts, either immediately or after an emailed OTP is confirmed.

    OTP signups move through NONE -> OTP_REQUESTED -> consumed. The pending row
    is the only state; deleting it on success makes a second verification
    impossible.
    """

    def __init__(self, db: Session, email_service: EmailService | None = None):
        self.db = db
        self.email_service = email_service or EmailService()
        self.settings = get_settings()

    def _create_user(self, **kwargs) -> User:
        try:
            return create_user(self.db, **kwargs)
        except IntegrityError:
            # Lost a race with another registration for the same email
            self.db.rollback()
            raise _email_taken() from None

    def register(self, data: UserRegister) -> User:
        """Create an account straight away."""
        if get_user_by_email(self.db, data.email):
            raise _email_taken()

        return self._create_user(
            email=data.email,
            name=data.name,
            password=data.password,
            role=data.role,
        )

    def request_otp(self, data: OtpRequest) -> OtpRequestResult:
        """Stage a signup and send its verification code.

        Any earlier pending signup for the same email is replaced. The code is
        handed back as a preview only when email delivery failed outside
        production.
        """
        if get_user_by_email(self.db, data.email):
            raise _email_taken()

        otp = generate_otp()
        expires_at = utcnow() + timedelta(minutes=self.settings.otp_expire_minutes)
        self._upsert_pending(data, otp, expires_at)

        delivered = self.email_service.send_otp_email(
            data.email, otp, expires_minutes=self.settings.otp_expire_minutes
        )
        if not delivered:
            logger.warning(f"OTP email not delivered to {redact_email(data.email)}")

        show_preview = not delivered and not self.settings.is_production
        return OtpRequestResult(delivered=delivered, otp_preview=otp if show_preview else None)

    def _upsert_pending(self, data: OtpRequest, otp: str, expires_at: datetime) -> PendingSignup:
        fields = {
            "name": data.name,
            "phone": data.phone,
            "password_hash": get_password_hash(data.password),
            "role": data.role.value,
            "terms_accepted": data.terms_accepted,
            "otp_hash": hash_token(otp),
            "otp_expires_at": expires_at,
            "otp_verified": False,
        }

        pending = self._get_pending(data.email)
        if pending is None:
            pending = PendingSignup(email=data.email, **fields)
            self.db.add(pending)
        else:
            for key, value in fields.items():
                setattr(pending, key, value)

        try:
            self.db.commit()
        except IntegrityError:
            # A concurrent request inserted the row first; overwrite it instead
            self.db.rollback()
            pending = self._get_pending(data.email)
            for key, value in fields.items():
                setattr(pending, key, value)
            self.db.commit()

        self.db.refresh(pending)
        logger.info(f"Pending signup staged for {redact_email(data.email)}")
        return pending

    def _get_pending(self, email: str) -> PendingSignup | None:
        return self.db.query(PendingSignup).filter(PendingSignup.email == normalize_email(email)).first()

    def verify_otp(self, email: str, otp: str) -> User:
        """Confirm a pending signup and turn it into a user."""
        pending = self._get_pending(email)
        if pending is None:
            raise _bad_request("No pending signup found.")

        if is_expired(pending.otp_expires_at):
            self.db.delete(pending)
            self.db.commit()
            raise _bad_request("OTP expired. Request a new OTP.")

        if not token_matches(otp.strip(), pending.otp_hash):
            raise _bad_request("Invalid OTP.")

        if get_user_by_email(self.db, pending.email):
            self.db.delete(pending)
            self.db.commit()
            raise _email_taken()

        pending.otp_verified = True
        user = self._create_user(
            email=pending.email,
            name=pending.name,
            password_hash=pending.password_hash,
            phone=pending.phone,
            role=pending.role,
        )
        self.db.delete(pending)
        self.db.commit()
        logger.info(f"Pending signup for user {user.id} verified")
        return user

    def purge_expired(self, now: datetime | None = None) -> int:
        """Delete pending signups whose OTP can no longer be verified."""
        now = now or utcnow()
        deleted = (
            self.db.query(PendingSignup)
            .filter(PendingSignup.otp_expires_at <= now)
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted
