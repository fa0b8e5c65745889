"""Date manipulation utilities"""

from datetime import datetime, timezone
from typing import Tuple


def to_utc(ts: datetime) -> datetime:
    """Normalize a timestamp to aware UTC (naive values are taken as UTC)"""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ledger_period(ts: datetime) -> Tuple[int, int]:
    """(year, month) bucket of a report creation timestamp, evaluated in UTC"""
    ts = to_utc(ts)
    return ts.year, ts.month
