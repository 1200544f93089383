"""Authentication schemas."""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from stayease.models.enums import UserRole

PASSWORD_MIN_LENGTH = 8


def _lower(value: str) -> str:
    return value.strip().lower()


class UserRegister(BaseModel):
    """Direct registration request."""

    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr = Field(..., max_length=255)
    password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, max_length=128)
    role: UserRole = UserRole.GUEST

    normalize_email = field_validator("email")(_lower)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value

    @field_validator("role", mode="before")
    @classmethod
    def self_signup_role(cls, value: object) -> UserRole:
        return UserRole.for_self_signup(value if isinstance(value, str) else None)


class OtpRequest(UserRegister):
    """Registration request that stages the account until the OTP is confirmed."""

    phone: str = Field(..., min_length=1, max_length=50)
    terms_accepted: bool = False

    @field_validator("phone")
    @classmethod
    def phone_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Phone is required")
        return value

    @field_validator("terms_accepted")
    @classmethod
    def terms_must_be_accepted(cls, value: bool) -> bool:
        if not value:
            raise ValueError("Please accept terms and conditions")
        return value


class OtpVerify(BaseModel):
    """OTP confirmation request."""

    email: EmailStr = Field(..., max_length=255)
    otp: str = Field(..., min_length=1, max_length=12)

    normalize_email = field_validator("email")(_lower)


class UserLogin(BaseModel):
    """User login request. CAPTCHA fields are checked by the endpoint."""

    email: EmailStr = Field(..., max_length=255)
    password: str = Field(..., min_length=1, max_length=128)
    captcha_id: str | None = Field(None, max_length=64)
    captcha_text: str | None = Field(None, max_length=32)

    normalize_email = field_validator("email")(_lower)


class ForgotPasswordRequest(BaseModel):
    """Password reset request; accepts any string so the reply never varies."""

    email: str = Field("", max_length=255)

    normalize_email = field_validator("email")(_lower)


class ResetPasswordRequest(BaseModel):
    """Password reset with a previously issued token."""

    token: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, max_length=128)


class ChangePasswordRequest(BaseModel):
    """Password change for the signed-in user."""

    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=PASSWORD_MIN_LENGTH, max_length=128)


class UserUpdate(BaseModel):
    """Profile update request."""

    name: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=50)


class UserResponse(BaseModel):
    """Public view of a user."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    role: str
    phone: str = ""


def to_public_view(user) -> UserResponse:
    """Map a stored user record to the shape shown to clients."""
    return UserResponse.model_validate(user)


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str


class AuthResponse(BaseModel):
    """Authentication response with access token and user info."""

    message: str | None = None
    access_token: str
    token_type: str = "bearer"  # noqa: S105
    user: UserResponse


class UserEnvelope(BaseModel):
    """Current user response."""

    user: UserResponse


class ProfileUpdateResponse(BaseModel):
    """Profile update acknowledgement."""

    message: str
    user: UserResponse


class OtpRequestResponse(BaseModel):
    """OTP request acknowledgement; the preview only appears outside production."""

    message: str
    otp_preview: str | None = None


class ForgotPasswordResponse(BaseModel):
    """Reset request acknowledgement; identical whether or not the account exists."""

    message: str
    reset_token: str | None = None
