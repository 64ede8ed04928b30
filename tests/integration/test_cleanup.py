from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import OperationalError

from celery_app import celery_app
from models.one_time_tokens import OneTimeToken
from models.sessions import UserSession
from services.cleanup_service import CleanupService
from services.session_service import SessionService
from services.token_service import TokenService
from tasks import cleanup as cleanup_tasks


def token_hashes(session):
    session.expire_all()
    return {t.token_hash for t in session.query(OneTimeToken).all()}


def session_ids(session):
    session.expire_all()
    return {s.session_id for s in session.query(UserSession).all()}


def store_token_expiring_at(session, token_service, user_id, expires_at):
    issued = token_service.issue(user_id)
    assert token_service.store(session, issued.token_hash, user_id, expires_at)
    return issued


def redeemed_at(session, user_id, when):
    """Stores and redeems a token as if it happened at ``when``."""
    service = TokenService(clock=lambda: when)
    issued = service.issue_and_store(session, user_id)
    assert service.redeem(session, issued.token).success
    return issued


def test_expired_pass_uses_expiry_boundary(session, token_service, user):
    now = datetime.now(timezone.utc)
    expired = store_token_expiring_at(session, token_service, user.id, now - timedelta(seconds=1))
    live = store_token_expiring_at(session, token_service, user.id, now + timedelta(seconds=1))

    stats = CleanupService.cleanup_expired(session, now=now)

    assert stats.expired_tokens == 1
    assert token_hashes(session) == {live.token_hash}
    assert expired.token_hash not in token_hashes(session)


def test_expired_pass_removes_sessions(session, user):
    now = datetime.now(timezone.utc)
    old = SessionService.create_session(session, user.id, ttl=timedelta(hours=1), now=now - timedelta(hours=2))
    current = SessionService.create_session(session, user.id, ttl=timedelta(hours=1), now=now)
    old_id, current_id = old.session_id, current.session_id

    stats = CleanupService.cleanup_expired(session, now=now)

    assert stats.expired_sessions == 1
    assert session_ids(session) == {current_id}
    assert old_id not in session_ids(session)


def test_expired_pass_is_idempotent(session, token_service, user):
    now = datetime.now(timezone.utc)
    store_token_expiring_at(session, token_service, user.id, now - timedelta(minutes=5))

    assert CleanupService.cleanup_expired(session, now=now).expired_tokens == 1
    assert CleanupService.cleanup_expired(session, now=now).expired_tokens == 0


def test_stale_used_pass_respects_retention(session, user):
    now = datetime.now(timezone.utc)
    stale = redeemed_at(session, user.id, now - timedelta(days=31))
    recent = redeemed_at(session, user.id, now - timedelta(days=1))
    unused = TokenService().issue_and_store(session, user.id)

    stats = CleanupService.cleanup_stale_used(session, now=now, retention=timedelta(days=30))

    assert stats.old_used_tokens == 1
    assert stale.token_hash not in token_hashes(session)
    assert {recent.token_hash, unused.token_hash} <= token_hashes(session)


def test_stale_used_pass_default_retention_is_thirty_days(session, user):
    now = datetime.now(timezone.utc)
    redeemed_at(session, user.id, now - timedelta(days=29))

    assert CleanupService.cleanup_stale_used(session, now=now).old_used_tokens == 0


def test_cleanup_rolls_back_and_reraises(session, monkeypatch):
    def broken_execute(*args, **kwargs):
        raise OperationalError("DELETE", {}, Exception("connection lost"))

    monkeypatch.setattr(session, "execute", broken_execute)

    with pytest.raises(OperationalError):
        CleanupService.cleanup_expired(session)


def test_redeem_after_sweep_reports_not_found(session, token_service, user):
    issued = store_token_expiring_at(
        session, token_service, user.id, datetime.now(timezone.utc) - timedelta(seconds=1)
    )
    CleanupService.cleanup_expired(session)

    assert token_service.redeem(session, issued.token).error.value == "NOT_FOUND"


# --- celery tasks ------------------------------------------------------------

@pytest.fixture
def task_db(monkeypatch, session_factory):
    monkeypatch.setattr(cleanup_tasks, "SessionLocal", session_factory)


def test_beat_schedule_has_independent_timers():
    schedule = celery_app.conf.beat_schedule

    tasks = {entry["task"] for entry in schedule.values()}
    assert tasks == {"cleanup.sweep_expired_records", "cleanup.sweep_stale_used_tokens"}


def test_sweep_expired_records_task(session, token_service, user, task_db):
    store_token_expiring_at(session, token_service, user.id, datetime.now(timezone.utc) - timedelta(seconds=1))

    result = cleanup_tasks.sweep_expired_records()

    assert result["expired_tokens"] == 1
    assert token_hashes(session) == set()


def test_sweep_stale_used_tokens_task(session, user, task_db):
    redeemed_at(session, user.id, datetime.now(timezone.utc) - timedelta(days=45))

    result = cleanup_tasks.sweep_stale_used_tokens()

    assert result["old_used_tokens"] == 1


def test_full_cleanup_runs_second_pass_when_first_fails(session, user, task_db, monkeypatch):
    redeemed_at(session, user.id, datetime.now(timezone.utc) - timedelta(days=45))

    def broken_pass(db, now=None):
        raise OperationalError("DELETE", {}, Exception("connection lost"))

    monkeypatch.setattr(CleanupService, "cleanup_expired", staticmethod(broken_pass))

    result = cleanup_tasks.run_full_cleanup()

    assert result["failed_passes"] == ["expired"]
    assert result["old_used_tokens"] == 1
