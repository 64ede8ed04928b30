"""
Retention sweeps for one-time tokens and sessions.

Two passes, meant to run on separate timers:
- expired pass (hourly): tokens and sessions whose expires_at has passed
- stale-used pass (daily): tokens redeemed longer ago than the retention window

Both are plain bulk DELETEs, idempotent and safe to run concurrently with
each other and with token redemption. A token deleted while someone redeems
it simply reads as NOT_FOUND.
"""

import time
from datetime import datetime, timedelta
from typing import Optional

from pydantic import BaseModel
from sqlalchemy import delete
from sqlalchemy.orm import Session

from core.config import settings
from models.one_time_tokens import OneTimeToken
from models.sessions import UserSession
from utils.logger import get_logger, log_database_query
from utils.timeutils import utc_now

logger = get_logger(__name__)


class CleanupStats(BaseModel):
    expired_tokens: int = 0
    expired_sessions: int = 0
    old_used_tokens: int = 0

    def merge(self, other: "CleanupStats") -> "CleanupStats":
        return CleanupStats(
            expired_tokens=self.expired_tokens + other.expired_tokens,
            expired_sessions=self.expired_sessions + other.expired_sessions,
            old_used_tokens=self.old_used_tokens + other.old_used_tokens,
        )


def _timed_delete(db: Session, stmt, table: str) -> int:
    started = time.perf_counter()
    result = db.execute(stmt.execution_options(synchronize_session=False))
    rows = result.rowcount or 0
    log_database_query(logger, "DELETE", table, (time.perf_counter() - started) * 1000, rows_affected=rows)
    return rows


class CleanupService:

    @staticmethod
    def delete_expired_tokens(db: Session, now: datetime) -> int:
        return _timed_delete(
            db, delete(OneTimeToken).where(OneTimeToken.expires_at <= now), OneTimeToken.__tablename__
        )

    @staticmethod
    def delete_expired_sessions(db: Session, now: datetime) -> int:
        return _timed_delete(
            db, delete(UserSession).where(UserSession.expires_at <= now), UserSession.__tablename__
        )

    @staticmethod
    def delete_stale_used_tokens(db: Session, now: datetime, retention: timedelta) -> int:
        cutoff = now - retention
        return _timed_delete(
            db,
            delete(OneTimeToken).where(
                OneTimeToken.used_at.is_not(None),
                OneTimeToken.used_at < cutoff,
            ),
            OneTimeToken.__tablename__,
        )

    @staticmethod
    def cleanup_expired(db: Session, now: Optional[datetime] = None) -> CleanupStats:
        """
        Frequent pass: expired tokens and sessions, committed together.

        Raises:
            SQLAlchemyError: After rolling back, so the scheduler records the failure
        """
        now = now or utc_now()
        try:
            stats = CleanupStats(
                expired_tokens=CleanupService.delete_expired_tokens(db, now),
                expired_sessions=CleanupService.delete_expired_sessions(db, now),
            )
            db.commit()
        except Exception:
            db.rollback()
            logger.error("Expired records cleanup failed", exc_info=True)
            raise

        logger.info("Expired records cleanup completed", extra=stats.model_dump())
        return stats

    @staticmethod
    def cleanup_stale_used(db: Session, now: Optional[datetime] = None,
                           retention: Optional[timedelta] = None) -> CleanupStats:
        """
        Infrequent pass: used tokens older than the retention window
        (USED_TOKEN_RETENTION_DAYS, 30 days by default).
        """
        now = now or utc_now()
        if retention is None:
            retention = timedelta(days=settings.USED_TOKEN_RETENTION_DAYS)
        try:
            stats = CleanupStats(
                old_used_tokens=CleanupService.delete_stale_used_tokens(db, now, retention)
            )
            db.commit()
        except Exception:
            db.rollback()
            logger.error("Used token cleanup failed", exc_info=True)
            raise

        logger.info("Used token cleanup completed", extra=stats.model_dump())
        return stats
