"""Admin API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from stayease.api.dependencies import AuthenticatedUser, require_role
from stayease.database import get_db
from stayease.models.enums import UserRole
from stayease.models.user import User
from stayease.schemas.auth import UserResponse, to_public_view

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.get("/users", response_model=list[UserResponse])
async def list_users(
    admin: Annotated[AuthenticatedUser, Depends(require_role(UserRole.ADMIN.value))],
    db: Annotated[Session, Depends(get_db)],
):
    """List all accounts, newest first."""
    users = db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    return [to_public_view(user) for user in users]
