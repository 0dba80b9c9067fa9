"""Timestamp helpers shared by the measurement and audit layers."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat_utc(value: datetime) -> str:
    """Render ``value`` as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def parse_timestamp(value: str) -> Optional[datetime]:
    """Parse an ISO-8601-ish timestamp; naive values are taken as UTC.

    Returns ``None`` instead of raising so callers can fall back to the raw
    string.
    """
    candidate = value.strip()
    if not candidate:
        return None

    if candidate.endswith(("Z", "z")):
        candidate = candidate[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError:
        return None


def normalize_timestamp(value: str) -> str:
    parsed = parse_timestamp(value)
    if parsed is None:
        return value
    return isoformat_utc(parsed)
