# Overview: UTC helpers shared by models, services and the POS core.

"""
Every DateTime column stores naive UTC. Timestamps leave the system as
second-precision ISO-8601 text with a trailing ``Z``.
"""

from __future__ import annotations

from datetime import datetime, timezone


def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: str | None) -> datetime | None:
    """Request text to naive UTC; offsets are converted, naive input is taken as UTC."""
    text = (value or "").strip()
    if not text:
        return None
    return _as_naive_utc(datetime.fromisoformat(text.replace("Z", "+00:00")))


def to_utc_z(value: datetime | None) -> str | None:
    if value is None:
        return None
    return _as_naive_utc(value).replace(microsecond=0).isoformat() + "Z"


def has_expired(expires_at: datetime | None, now: datetime | None = None) -> bool:
    """A missing expiry never lapses."""
    if expires_at is None:
        return False
    return _as_naive_utc(expires_at) < (now or utcnow())
