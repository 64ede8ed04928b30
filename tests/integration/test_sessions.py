from datetime import datetime, timedelta, timezone

from core.config import settings
from models.sessions import UserSession
from services.session_service import SessionService
from utils.timeutils import as_utc


def test_create_session(session, user):
    now = datetime.now(timezone.utc)
    model = SessionService.create_session(session, user.id, now=now)

    assert model.user_id == user.id
    assert len(model.session_id) > 64
    assert as_utc(model.expires_at) == now + timedelta(hours=settings.SESSION_TTL_HOURS)
    assert as_utc(model.last_seen_at) == now


def test_sessions_are_distinct(session, user):
    first = SessionService.create_session(session, user.id)
    second = SessionService.create_session(session, user.id)

    assert first.session_id != second.session_id


def test_touch_updates_last_seen(session, user):
    start = datetime.now(timezone.utc)
    model = SessionService.create_session(session, user.id, now=start)
    later = start + timedelta(minutes=5)

    assert SessionService.touch(session, model.session_id, now=later) is True

    session.expire_all()
    refreshed = session.get(UserSession, model.session_id)
    assert as_utc(refreshed.last_seen_at) == later


def test_touch_expired_or_missing_session(session, user):
    start = datetime.now(timezone.utc)
    model = SessionService.create_session(session, user.id, ttl=timedelta(minutes=1), now=start)

    assert SessionService.touch(session, model.session_id, now=start + timedelta(minutes=2)) is False
    assert SessionService.touch(session, "missing", now=start) is False


def test_sessions_cascade_with_user(session, user):
    SessionService.create_session(session, user.id)
    session.delete(user)
    session.commit()

    assert session.query(UserSession).count() == 0
