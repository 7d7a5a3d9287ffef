from datetime import datetime, timezone
from typing import Optional


class Clock:
    """Source of the current time. Services take one so tests can pin it."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Attach UTC to naive datetimes read back from the store.

    Every timestamp is written in UTC, but some drivers (SQLite) drop the
    offset on the way back.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
