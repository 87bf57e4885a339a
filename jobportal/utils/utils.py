import math
import secrets
from datetime import datetime, timedelta, timezone

SECONDS_PER_DAY = 86400


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes read back from storage as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def days_until(end: datetime, now: datetime) -> int:
    """Whole days left before ``end``, rounded up. Zero once ``end`` has passed."""
    remaining = (as_utc(end) - as_utc(now)).total_seconds()
    if remaining <= 0:
        return 0
    return math.ceil(remaining / SECONDS_PER_DAY)


def add_days(start: datetime, days: int) -> datetime:
    return start + timedelta(days=days)


def random_token(prefix: str, nbytes: int = 8) -> str:
    return f"{prefix}_{secrets.token_hex(nbytes)}"
