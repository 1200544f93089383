"""CAPTCHA schemas."""

from pydantic import BaseModel


class CaptchaResponse(BaseModel):
    """Issued challenge; the id is submitted back with the answer."""

    captcha_id: str
    captcha_svg: str
    expires_in_seconds: int
