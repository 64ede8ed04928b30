"""
Celery app running the retention sweeps on beat timers.

    celery -A celery_app worker --beat

With the default ``memory://`` broker tasks only run in-process, which is
what tests and local development use.
"""
import logging

from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging as celery_setup_logging

from core.config import settings
from core.logging_config import setup_logging

logger = logging.getLogger(__name__)

celery_app = Celery(
    "onetime_tokens",
    broker=settings.CELERY_BROKER_URL,
    include=["tasks.cleanup"],
)

if settings.CELERY_BROKER_URL.startswith("memory://"):
    logger.warning("CELERY_BROKER_URL is not configured; Celery will run in in-memory mode.")

celery_app.conf.update(
    result_backend=None,
    task_serializer="json",
    accept_content=["json"],
    task_ignore_result=True,
    broker_connection_retry_on_startup=True,
    timezone="UTC",
    enable_utc=True,
)

# Independent timers: a failed or skipped run of one never affects the other
celery_app.conf.beat_schedule = {
    "sweep-expired-records-hourly": {
        "task": "cleanup.sweep_expired_records",
        "schedule": crontab(minute=0),
    },
    "sweep-stale-used-tokens-daily": {
        "task": "cleanup.sweep_stale_used_tokens",
        "schedule": crontab(hour=2, minute=30),
    },
}


@celery_setup_logging.connect
def configure_worker_logging(**kwargs):
    setup_logging(log_level=settings.LOG_LEVEL, log_dir=settings.LOG_DIR)
