"""Pydantic schemas for API requests and responses."""

from stayease.schemas.auth import (
    AuthResponse,
    ChangePasswordRequest,
    ForgotPasswordRequest,
    OtpRequest,
    OtpVerify,
    ResetPasswordRequest,
    UserLogin,
    UserRegister,
    UserResponse,
    UserUpdate,
)
from stayease.schemas.captcha import CaptchaResponse

__all__ = [
    "UserRegister",
    "OtpRequest",
    "OtpVerify",
    "UserLogin",
    "ForgotPasswordRequest",
    "ResetPasswordRequest",
    "ChangePasswordRequest",
    "UserUpdate",
    "UserResponse",
    "AuthResponse",
    "CaptchaResponse",
]
