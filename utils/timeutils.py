from datetime import datetime, timezone, timedelta
from typing import Optional

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(value: datetime) -> datetime:
    # SQLite hands DateTime(timezone=True) columns back naive; everything is stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)

def get_expiry_time(ttl: timedelta, now: Optional[datetime] = None) -> datetime:
    return (now or utc_now()) + ttl
