"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from stayease.api import admin, auth, captcha
from stayease.config import get_settings
from stayease.database import SessionLocal
from stayease.services.auth import utcnow
from stayease.services.captcha import CaptchaService, build_challenge_store
from stayease.services.users import ensure_admin

logger = logging.getLogger(__name__)
settings = get_settings()


def seed_admin_user() -> None:
    """Create the configured admin account on first start."""
    if not (settings.admin_email and settings.admin_password):
        return
    db = SessionLocal()
    try:
        ensure_admin(db, settings.admin_email, settings.admin_password)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not seed admin user: {e}")
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown events."""
    app.state.captcha_service = CaptchaService(
        build_challenge_store(settings),
        ttl_seconds=settings.captcha_ttl_seconds,
    )
    seed_admin_user()
    yield
    app.state.captcha_service.store.clear()


app = FastAPI(
    title="StayEase Auth API",
    description="Accounts, sessions and CAPTCHA for the StayEase rental platform",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request."
    error = errors[0]
    field = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query"))
    message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
    return f"{field}: {message}" if field else message


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    """Malformed or incomplete input is a 400, like every other validation failure."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": _validation_message(exc)},
    )


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception):
    """Log unexpected failures and hide their details from the client."""
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error."},
    )


# Register routers
app.include_router(captcha.router)
app.include_router(auth.router)
app.include_router(admin.router)


@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "environment": settings.environment, "time": utcnow().isoformat()}
