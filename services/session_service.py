import secrets
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session

from core.config import settings
from models.sessions import UserSession
from utils.logger import get_logger
from utils.timeutils import get_expiry_time, utc_now

logger = get_logger(__name__)


class SessionService:
    """
    Sessions opened after a successful login-link redemption.
    Plain multi-use records; expiry is enforced by the cleanup sweep.
    """

    @staticmethod
    def create_session(db: Session, user_id: int, ttl: Optional[timedelta] = None,
                       now: Optional[datetime] = None) -> UserSession:
        if ttl is None:
            ttl = timedelta(hours=settings.SESSION_TTL_HOURS)
        now = now or utc_now()

        model = UserSession(
            session_id=secrets.token_urlsafe(64),
            user_id=user_id,
            expires_at=get_expiry_time(ttl, now),
            last_seen_at=now,
        )
        db.add(model)
        db.commit()
        db.refresh(model)

        logger.info("Session created", extra={"user_id": user_id})
        return model

    @staticmethod
    def touch(db: Session, session_id: str, now: Optional[datetime] = None) -> bool:
        """
        Bumps last_seen_at on a live session.

        Returns:
            False if the session does not exist or has expired
        """
        now = now or utc_now()
        result = db.execute(
            update(UserSession)
            .where(UserSession.session_id == session_id, UserSession.expires_at > now)
            .values(last_seen_at=now)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount == 1
