# Overview: Clock and ISO-8601 helpers; every datetime stored by the ledger is UTC-naive.

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as a UTC-naive datetime (the stored form)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def normalize_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Aware datetimes are converted to UTC and stripped; naive ones are already UTC."""
    if dt is None or dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def is_future(dt: datetime) -> bool:
    """True when `dt` lies after the current UTC time."""
    return normalize_utc(dt) > utcnow()


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a client-supplied transaction date or window bound.

    Accepts "YYYY-MM-DDTHH:MM[:SS]" (taken as UTC), a trailing "Z" or an
    explicit offset. Blank input gives None; anything unparseable raises
    ValueError.
    """
    if value is None or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return normalize_utc(datetime.fromisoformat(text))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Serialize to second precision with a trailing 'Z'."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = normalize_utc(dt)
    return dt.replace(microsecond=0).isoformat() + "Z"
