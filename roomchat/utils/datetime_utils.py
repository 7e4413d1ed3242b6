"""
Timezone-aware datetime helpers.

SQLite hands timestamps back without tzinfo while PostgreSQL returns aware
values, so anything compared against "now" goes through ``as_utc`` first.
"""
from datetime import datetime, timezone
from typing import Optional

UTC = timezone.utc


def utc_now() -> datetime:
    """Current UTC time with tzinfo set."""
    return datetime.now(UTC)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a stored timestamp to an aware UTC datetime (naive is read as UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
