import logging

from celery import Celery
from celery.schedules import crontab

from grylin.core.config import settings

logging.basicConfig(
    level=settings.api_log_level.upper(),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)

celery_app = Celery(
    "grylin",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)

# ─── Scheduled tasks ──────────────────────────
celery_app.conf.beat_schedule = {
    "check-deadlines-daily": {
        "task": "grylin.services.notifications.check_deadlines_all",
        "schedule": crontab(hour=6, minute=0),
    },
    "send-pending-alerts": {
        "task": "grylin.services.notifications.send_pending_alerts",
        "schedule": crontab(minute="*/15"),
    },
    "sync-email-accounts": {
        "task": "grylin.services.notifications.sync_email_accounts",
        "schedule": crontab(minute=30, hour="*/6"),
    },
}

# autodiscover_tasks() only looks for a "tasks.py" file, which we don't use.
celery_app.conf.include = [
    "grylin.services.notifications",
]
