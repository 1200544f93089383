"""Celery application configuration."""

from celery import Celery

from stayease.config import get_settings

settings = get_settings()

app = Celery(
    "stayease",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["stayease.tasks.maintenance"],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=120,
    task_soft_time_limit=90,
    beat_schedule={
        "purge-expired-pending-signups": {
            "task": "stayease.tasks.maintenance.purge_expired_pending_signups",
            "schedule": 15 * 60,
        },
        "purge-expired-reset-tokens": {
            "task": "stayease.tasks.maintenance.purge_expired_reset_tokens",
            "schedule": 15 * 60,
        },
    },
)
