"""Celery application configuration."""

from celery import Celery

from src.config import get_settings

settings = get_settings()

app = Celery(
    "profile_avatars",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["src.tasks.avatar_cleanup"],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=settings.task_time_limit_seconds,
    task_soft_time_limit=settings.task_soft_time_limit_seconds,
    beat_schedule={
        "process-avatar-deletions": {
            "task": "src.tasks.avatar_cleanup.process_avatar_deletions",
            "schedule": float(settings.avatar_cleanup_interval_seconds),
        },
        "sweep-orphaned-avatars": {
            "task": "src.tasks.avatar_cleanup.sweep_orphaned_avatars",
            "schedule": float(settings.avatar_sweep_interval_seconds),
        },
    },
)
