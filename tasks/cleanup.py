from celery_app import celery_app
from core.database import SessionLocal
from services.cleanup_service import CleanupService, CleanupStats
from utils.logger import get_logger

logger = get_logger(__name__)


@celery_app.task(name="cleanup.sweep_expired_records")
def sweep_expired_records():
    """Delete expired one-time tokens and sessions."""
    db = SessionLocal()
    try:
        return CleanupService.cleanup_expired(db).model_dump()
    finally:
        db.close()


@celery_app.task(name="cleanup.sweep_stale_used_tokens")
def sweep_stale_used_tokens():
    """Delete tokens redeemed before the retention window."""
    db = SessionLocal()
    try:
        return CleanupService.cleanup_stale_used(db).model_dump()
    finally:
        db.close()


@celery_app.task(name="cleanup.run_full_cleanup")
def run_full_cleanup():
    """
    Manual trigger for both passes. Each pass gets its own session and a
    failure in one is logged without stopping the other.
    """
    stats = CleanupStats()
    failed = []

    for name, run_pass in (
        ("expired", CleanupService.cleanup_expired),
        ("stale_used", CleanupService.cleanup_stale_used),
    ):
        db = SessionLocal()
        try:
            stats = stats.merge(run_pass(db))
        except Exception:
            # cleanup_* already logged the stack trace
            failed.append(name)
        finally:
            db.close()

    if failed:
        logger.warning("Full cleanup finished with failed passes", extra={"failed_passes": failed})

    return {**stats.model_dump(), "failed_passes": failed}
