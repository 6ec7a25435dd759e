"""
Clock helpers.

All timestamps are stored as naive UTC so values read back from SQLite and
PostgreSQL compare the same way.
"""

from collections.abc import Callable
from datetime import datetime, timezone

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)
