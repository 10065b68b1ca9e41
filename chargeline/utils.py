"""
Time helpers shared by the charging services.

All times are stored as timezone-naive UTC. Services never read the system
clock directly; they take a ``clock`` callable so availability and overrun
decisions can be made against fixed timestamps.
"""

from datetime import datetime, timezone
from typing import Callable, Union

Clock = Callable[[], datetime]


def utc_now_iso():
    """
    Get current UTC time in ISO format with Z suffix.

    Returns:
        str: Current UTC time in ISO format with Z suffix (e.g., "2024-01-01T12:00:00.123456Z")
    """
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def utc_now_naive():
    """
    Get current UTC time as timezone-naive datetime for database storage.

    This is the default clock for every service.

    Returns:
        datetime: Current UTC time as timezone-naive datetime
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: Union[str, datetime, None]):
    """
    Normalise a timestamp to timezone-naive UTC.

    Handles datetimes (aware or naive) and ISO strings with either a Z
    suffix or an explicit offset. Naive input is assumed to be UTC already.

    Args:
        value: datetime, ISO timestamp string or None

    Returns:
        datetime: Timezone-naive UTC datetime, or None
    """
    if value is None:
        return None

    if isinstance(value, str):
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        value = datetime.fromisoformat(value)

    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value
