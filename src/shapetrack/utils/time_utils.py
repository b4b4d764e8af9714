"""Clock and timestamp helpers.

Timestamps are stored as UTC text in SQLite's native "YYYY-MM-DD HH:MM:SS"
form so DATE(timestamp) works in queries. Calendar-day rules ("assessed
today") use the UTC date of the injected clock.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], datetime]

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(timezone.utc)


def format_timestamp(moment: datetime) -> str:
    """Format a datetime for storage, converting aware values to UTC."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime(TIMESTAMP_FORMAT)


def calendar_date(moment: datetime) -> str:
    """UTC calendar date of a datetime as YYYY-MM-DD."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.date().isoformat()
