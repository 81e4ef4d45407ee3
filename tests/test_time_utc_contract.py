from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

from ledger_runs.utils.time import as_naive_utc, expiry_after, utc_now_aware, utc_now_naive


def test_utc_now_aware_returns_aware_utc() -> None:
    now = utc_now_aware()
    assert now.tzinfo is not None
    assert now.utcoffset() == timezone.utc.utcoffset(now)


def test_utc_now_naive_is_utc_naive_timestamp() -> None:
    before = utc_now_aware()
    naive = utc_now_naive()
    after = utc_now_aware()

    assert naive.tzinfo is None
    as_aware = naive.replace(tzinfo=timezone.utc)
    assert before <= as_aware <= after


def test_no_datetime_utcnow_in_package_code() -> None:
    banned = "datetime.utcnow("
    hits: list[str] = []
    for path in Path("ledger_runs").rglob("*.py"):
        text = path.read_text(encoding="utf-8")
        if banned in text:
            hits.append(str(path))

    assert hits == []



def test_as_naive_utc_converts_offsets() -> None:
    aware = datetime(2026, 1, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    assert as_naive_utc(aware) == datetime(2026, 1, 1, 12, 0)
    assert as_naive_utc(None) is None


def test_expiry_after_never_goes_backwards() -> None:
    start = datetime(2026, 1, 1, 12, 0)
    assert expiry_after(start, 86400) == datetime(2026, 1, 2, 12, 0)
    assert expiry_after(start, 0) == start + timedelta(seconds=1)
