from utils.timeutils import as_utc, get_expiry_time, utc_now
from datetime import datetime, timedelta, timezone

def test_expiry_time_defaults_to_now():
    expiry = get_expiry_time(timedelta(minutes=10))
    now = datetime.now(timezone.utc)
    assert expiry > now
    assert expiry < now + timedelta(minutes=11)

def test_expiry_time_from_given_instant():
    start = datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert get_expiry_time(timedelta(hours=1), start) == datetime(2026, 1, 1, 1, tzinfo=timezone.utc)

def test_as_utc_treats_naive_as_utc():
    naive = datetime(2026, 1, 1, 12, 0)
    assert as_utc(naive) == datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

def test_as_utc_converts_offsets():
    plus_two = datetime(2026, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    assert as_utc(plus_two).hour == 12
    assert as_utc(plus_two).tzinfo == timezone.utc

def test_utc_now_is_aware():
    assert utc_now().tzinfo is not None
