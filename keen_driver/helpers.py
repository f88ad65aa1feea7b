"""
Integration helpers for callers that keep their own criteria objects.
"""

from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .exceptions import ValidationError
from .models import QueryTimeFrame


DEFAULT_LAST_N_DAYS = 7


def timezone_name_to_offset_seconds(name: Optional[str]) -> int:
    """
    Standard (non-DST) UTC offset of an IANA time zone, in seconds.

    The API's `timezone` parameter takes an offset in seconds. A blank name
    yields 0 (UTC).

    Raises:
        ValidationError: If the zone name is unknown

    Example:
        >>> timezone_name_to_offset_seconds("Europe/Prague")
        3600
    """
    if not name or not name.strip():
        return 0

    try:
        zone = ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValidationError(
            f"Unknown time zone '{name}'",
            details={"provided": name, "suggestion": "Use an IANA name such as 'Europe/Prague'"}
        )

    # Standard offset is the smaller of the January / July offsets
    year = datetime.now(timezone.utc).year
    offsets = [
        zone.utcoffset(datetime(year, 1, 1)),
        zone.utcoffset(datetime(year, 7, 1)),
    ]
    return int(min(offsets).total_seconds())


def to_query_time_frame(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    last_n_days: Optional[int] = None
) -> QueryTimeFrame:
    """
    Build a time frame from an optional date range.

    Both stamps set -> absolute frame; otherwise this_{n}_days where n is
    last_n_days when positive, else 7.
    """
    if start is not None and end is not None:
        return QueryTimeFrame.absolute(start, end)

    n = last_n_days if last_n_days and last_n_days > 0 else DEFAULT_LAST_N_DAYS
    return QueryTimeFrame.this_n_days(n)
