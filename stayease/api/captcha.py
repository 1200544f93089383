"""CAPTCHA API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from stayease.api.dependencies import get_captcha_service
from stayease.schemas.captcha import CaptchaResponse
from stayease.services.captcha import DEFAULT_PURPOSE, CaptchaService

router = APIRouter(prefix="/api/captcha", tags=["captcha"])


@router.get("", response_model=CaptchaResponse)
async def issue_captcha(
    captcha_service: Annotated[CaptchaService, Depends(get_captcha_service)],
    purpose: Annotated[str, Query(min_length=1, max_length=32)] = DEFAULT_PURPOSE,
):
    """Issue a single-use challenge for one purpose (login, booking, listing...)."""
    return captcha_service.issue(purpose)
