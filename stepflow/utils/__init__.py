"""Shared helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone


def utcnow() -> datetime:
    """Timezone aware current UTC time."""
    return datetime.now(timezone.utc)


def next_timestamp(now: datetime, previous: datetime | None) -> datetime:
    """Return ``now`` unless it does not move past ``previous``.

    Successive mutations of one record must carry strictly increasing
    ``updated_at`` values, even when the clock has not advanced.
    """

    if previous is not None and now <= previous:
        return previous + timedelta(microseconds=1)
    return now
