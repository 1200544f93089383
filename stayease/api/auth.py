"""Authentication API endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from stayease.api.dependencies import (
    get_captcha_service,
    get_current_user,
    get_password_service,
    get_session_service,
    get_signup_service,
)
from stayease.config import get_settings
from stayease.database import get_db
from stayease.models.user import User
from stayease.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    MessageResponse,
    OtpRequest,
    OtpRequestResponse,
    OtpVerify,
    ProfileUpdateResponse,
    ResetPasswordRequest,
    UserEnvelope,
    UserLogin,
    UserRegister,
    UserUpdate,
    to_public_view,
)
from stayease.services.auth import verify_password
from stayease.services.captcha import CaptchaService
from stayease.services.passwords import FORGOT_PASSWORD_MESSAGE, PasswordService
from stayease.services.sessions import SessionService, TokenPair
from stayease.services.signup import SignupService
from stayease.services.users import get_user_by_email, update_profile

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/api/auth", tags=["auth"])

LOGIN_CAPTCHA_PURPOSE = "login"


def set_refresh_cookie(response: Response, refresh_token: str) -> None:
    """Attach the refresh token as an httpOnly cookie scoped to the auth routes."""
    response.set_cookie(
        key=settings.refresh_cookie_name,
        value=refresh_token,
        max_age=settings.refresh_token_max_age,
        path=settings.refresh_cookie_path,
        httponly=True,
        secure=settings.refresh_cookie_secure,
        samesite=settings.cookie_same_site.lower(),
    )


def clear_refresh_cookie(response: Response) -> None:
    """Remove the refresh cookie from the client."""
    response.delete_cookie(
        key=settings.refresh_cookie_name,
        path=settings.refresh_cookie_path,
        httponly=True,
        secure=settings.refresh_cookie_secure,
        samesite=settings.cookie_same_site.lower(),
    )


def _session_response(response: Response, user: User, tokens: TokenPair, message: str | None) -> AuthResponse:
    set_refresh_cookie(response, tokens.refresh_token)
    return AuthResponse(
        message=message,
        access_token=tokens.access_token,
        user=to_public_view(user),
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    response: Response,
    signup_service: Annotated[SignupService, Depends(get_signup_service)],
    session_service: Annotated[SessionService, Depends(get_session_service)],
):
    """Register a new user without email verification."""
    user = signup_service.register(user_data)
    tokens = session_service.issue(user)
    return _session_response(response, user, tokens, "Registration successful")


@router.post(
    "/register/request-otp",
    response_model=OtpRequestResponse,
    response_model_exclude_none=True,
)
async def request_otp(
    signup_data: OtpRequest,
    signup_service: Annotated[SignupService, Depends(get_signup_service)],
):
    """Stage a registration and email a one-time code."""
    result = signup_service.request_otp(signup_data)
    if result.delivered:
        return OtpRequestResponse(message="OTP sent to your email.")
    return OtpRequestResponse(
        message="Email delivery unavailable. Using dev OTP preview."
        if result.otp_preview
        else "Email delivery unavailable. Please try again later.",
        otp_preview=result.otp_preview,
    )


@router.post("/register/verify-otp", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def verify_otp(
    verify_data: OtpVerify,
    response: Response,
    signup_service: Annotated[SignupService, Depends(get_signup_service)],
    session_service: Annotated[SessionService, Depends(get_session_service)],
):
    """Confirm a staged registration with its OTP."""
    user = signup_service.verify_otp(verify_data.email, verify_data.otp)
    tokens = session_service.issue(user)
    return _session_response(response, user, tokens, "Registration successful")


@router.post("/login", response_model=AuthResponse)
async def login(
    credentials: UserLogin,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
    captcha_service: Annotated[CaptchaService, Depends(get_captcha_service)],
    session_service: Annotated[SessionService, Depends(get_session_service)],
):
    """Login with email, password and a CAPTCHA answer."""
    if not credentials.captcha_id or not credentials.captcha_text:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="CAPTCHA is required.")

    if not captcha_service.verify(credentials.captcha_id, credentials.captcha_text, LOGIN_CAPTCHA_PURPOSE):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired CAPTCHA.")

    user = get_user_by_email(db, credentials.email)
    if not user or not verify_password(credentials.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials.",
            headers={"WWW-Authenticate": "Bearer"},
        )

    tokens = session_service.issue(user)
    return _session_response(response, user, tokens, "Login successful")


@router.post("/refresh", response_model=AuthResponse, response_model_exclude_none=True)
async def refresh(
    request: Request,
    response: Response,
    session_service: Annotated[SessionService, Depends(get_session_service)],
):
    """Exchange the refresh cookie for a new access token and refresh cookie."""
    user, tokens = session_service.rotate(request.cookies.get(settings.refresh_cookie_name))
    return _session_response(response, user, tokens, None)


@router.post("/logout", response_model=MessageResponse)
async def logout(
    request: Request,
    response: Response,
    session_service: Annotated[SessionService, Depends(get_session_service)],
):
    """Logout; the cookie is cleared even when the token is unusable."""
    session_service.revoke(request.cookies.get(settings.refresh_cookie_name))
    clear_refresh_cookie(response)
    return MessageResponse(message="Logged out.")


@router.post(
    "/forgot-password",
    response_model=ForgotPasswordResponse,
    response_model_exclude_none=True,
)
async def forgot_password(
    data: ForgotPasswordRequest,
    password_service: Annotated[PasswordService, Depends(get_password_service)],
):
    """Request a password reset token."""
    reset_token = password_service.forgot_password(data.email)
    return ForgotPasswordResponse(message=FORGOT_PASSWORD_MESSAGE, reset_token=reset_token)


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    data: ResetPasswordRequest,
    password_service: Annotated[PasswordService, Depends(get_password_service)],
):
    """Set a new password using a reset token."""
    password_service.reset_password(data.token, data.new_password)
    return MessageResponse(message="Password reset successful.")


@router.post("/change-password", response_model=AuthResponse)
async def change_password(
    data: ChangePasswordRequest,
    response: Response,
    current_user: Annotated[User, Depends(get_current_user)],
    password_service: Annotated[PasswordService, Depends(get_password_service)],
    session_service: Annotated[SessionService, Depends(get_session_service)],
):
    """Change the password; other sessions lose their refresh tokens."""
    user = password_service.change_password(current_user, data.current_password, data.new_password)
    tokens = session_service.issue(user)
    return _session_response(response, user, tokens, "Password updated.")


@router.get("/me", response_model=UserEnvelope)
async def get_me(
    current_user: Annotated[User, Depends(get_current_user)],
):
    """Get current user information."""
    return UserEnvelope(user=to_public_view(current_user))


@router.put("/me", response_model=ProfileUpdateResponse)
async def update_me(
    data: UserUpdate,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """Update name and phone of the current user."""
    user = update_profile(db, current_user, name=data.name, phone=data.phone)
    return ProfileUpdateResponse(message="Profile updated.", user=to_public_view(user))
