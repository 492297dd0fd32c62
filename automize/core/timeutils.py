# automize/core/timeutils.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(ts: Optional[datetime]) -> Optional[datetime]:
    """
    SQLite devuelve datetimes naive; Postgres los trae con tz.
    Normaliza ambos a UTC aware.
    """
    if ts is None:
        return None
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def start_of_day(now: Optional[datetime] = None) -> datetime:
    now = as_utc(now) or utc_now()
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def time_range_start(
    time_range_days: Optional[int],
    now: Optional[datetime] = None,
) -> Optional[datetime]:
    """
    None -> sin límite (all time)
    0    -> hoy (desde medianoche UTC)
    N    -> ahora - N días
    """
    if time_range_days is None:
        return None
    now = as_utc(now) or utc_now()
    if int(time_range_days) <= 0:
        return start_of_day(now)
    return now - timedelta(days=int(time_range_days))


def iso(ts: Optional[datetime]) -> Optional[str]:
    ts = as_utc(ts)
    return ts.isoformat() if ts else None
