"""Wall-clock helpers."""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as a naive UTC datetime (the storage format)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
