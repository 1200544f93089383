"""Celery tasks that clear auth data nobody can redeem anymore.

Expiry is always enforced at verification time; these tasks only keep the
tables small.
"""

import logging

from sqlalchemy.orm import Session

from stayease.celery_app import app as celery_app
from stayease.database import SessionLocal
from stayease.services.passwords import PasswordService
from stayease.services.signup import SignupService

logger = logging.getLogger(__name__)


@celery_app.task
def purge_expired_pending_signups() -> dict:
    """Delete pending signups whose OTP has expired.

    Returns:
        dict with the number of deleted rows
    """
    db: Session = SessionLocal()
    try:
        deleted = SignupService(db).purge_expired()
        if deleted:
            logger.info(f"Purged {deleted} expired pending signups")
        return {"deleted": deleted}
    finally:
        db.close()


@celery_app.task
def purge_expired_reset_tokens() -> dict:
    """Clear password reset tokens past their expiry.

    Returns:
        dict with the number of cleared users
    """
    db: Session = SessionLocal()
    try:
        cleared = PasswordService(db).purge_expired_reset_tokens()
        if cleared:
            logger.info(f"Cleared {cleared} expired reset tokens")
        return {"cleared": cleared}
    finally:
        db.close()
