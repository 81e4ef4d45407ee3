from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utc_now_aware() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_naive() -> datetime:
    return utc_now_aware().astimezone(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def expiry_after(now: datetime, seconds: int) -> datetime:
    return now + timedelta(seconds=max(1, int(seconds)))
