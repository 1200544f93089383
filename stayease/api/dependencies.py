"""FastAPI dependencies for authentication and services."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from stayease.database import get_db
from stayease.models.user import User
from stayease.services.auth import decode_access_token
from stayease.services.captcha import CaptchaService
from stayease.services.email_service import EmailService
from stayease.services.passwords import PasswordService
from stayease.services.sessions import SessionService
from stayease.services.signup import SignupService
from stayease.services.users import get_user_by_id

# auto_error=False so a missing header is our 401, not Starlette's 403
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthenticatedUser:
    """Identity carried by a verified access token."""

    id: int
    role: str
    email: str


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_claims(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> AuthenticatedUser:
    """Resolve the caller from the bearer access token without touching the database."""
    if credentials is None:
        raise _unauthorized("Authentication required.")

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise _unauthorized("Invalid or expired token.")

    try:
        user_id = int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise _unauthorized("Invalid or expired token.") from None

    return AuthenticatedUser(id=user_id, role=payload.get("role", ""), email=payload.get("email", ""))


def get_current_user(
    claims: Annotated[AuthenticatedUser, Depends(get_current_claims)],
    db: Annotated[Session, Depends(get_db)],
) -> User:
    """Get the current authenticated user record."""
    user = get_user_by_id(db, claims.id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")
    return user


def require_role(*roles: str) -> Callable[..., AuthenticatedUser]:
    """Build a dependency that admits only the given roles."""

    def check_role(
        claims: Annotated[AuthenticatedUser, Depends(get_current_claims)],
    ) -> AuthenticatedUser:
        if roles and claims.role not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not authorized.")
        return claims

    return check_role


def get_captcha_service(request: Request) -> CaptchaService:
    """Get the process-wide CAPTCHA service created at startup."""
    return request.app.state.captcha_service


def get_email_service() -> EmailService:
    """Get email service instance."""
    return EmailService()


def get_session_service(
    db: Annotated[Session, Depends(get_db)],
) -> SessionService:
    """Get session service with dependencies."""
    return SessionService(db)


def get_signup_service(
    db: Annotated[Session, Depends(get_db)],
    email_service: Annotated[EmailService, Depends(get_email_service)],
) -> SignupService:
    """Get signup service with dependencies."""
    return SignupService(db, email_service)


def get_password_service(
    db: Annotated[Session, Depends(get_db)],
    email_service: Annotated[EmailService, Depends(get_email_service)],
) -> PasswordService:
    """Get password service with dependencies."""
    return PasswordService(db, email_service)
