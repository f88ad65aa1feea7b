"""
Helpers that turn query responses into plain rows.

Response shapes handled (the `result` node of a query response):

    plain:            {"result": 42}
    extraction:       {"result": [{...event...}, ...]}
    group_by:         {"result": [{"country": "CZ", "result": 10}, ...]}
    interval:         {"result": [{"timeframe": {"start": ..., "end": ...},
                                   "value": 10}, ...]}
    interval+group:   {"result": [{"timeframe": {...},
                                   "value": [{"country": "CZ", "result": 3}]}]}
"""

from datetime import datetime
from typing import List, Dict, Any, Optional, Sequence, Union

from .constants import NODE_RESULT, NODE_VALUE, NODE_TIMEFRAME
from .exceptions import ValidationError
from .models import QueryInterval, QueryIntervalValue, TimeUnit


_DATE_FORMATS = {
    TimeUnit.MINUTE: "%Y-%m-%d-%H-%M",
    TimeUnit.HOUR: "%Y-%m-%d-%H",
    TimeUnit.DAY: "%Y-%m-%d",
    TimeUnit.WEEK: "%Y-%m-%d",
    TimeUnit.MONTH: "%Y-%m",
    TimeUnit.YEAR: "%Y",
}


def interval_date_format(unit: Optional[Union[TimeUnit, QueryInterval]]) -> str:
    """
    strftime format that identifies one bucket of the given unit.

    Accepts a TimeUnit or a QueryInterval (its unit is used).
    Returns "" when there is no unit.
    """
    if isinstance(unit, QueryInterval):
        unit = unit.unit
    if unit is None:
        return ""
    return _DATE_FORMATS.get(unit, "")


def parse_timestamp(text: str) -> datetime:
    """Parse an ISO-8601 timestamp as returned by the API ("...Z" allowed)."""
    if not isinstance(text, str) or not text:
        raise ValidationError("Timestamp must be a non-empty string", details={"provided": text})
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(
            f"Invalid timestamp '{text}'",
            details={"provided": text, "expected_format": "ISO-8601"}
        )


def stamp_identifier(start: datetime, interval: Union[TimeUnit, QueryInterval]) -> str:
    """Bucket label of `start` for the interval unit, e.g. '2024-03-01-14'."""
    date_format = interval_date_format(interval)
    return start.strftime(date_format) if date_format else ""


def query_result_to_list(response: Optional[Dict[str, Any]]) -> List[Any]:
    """Return the `result` list of a response (extraction, select_unique)."""
    if not response:
        return []
    return list(response.get(NODE_RESULT) or [])


def _group_row(
    item: Dict[str, Any],
    group_by: Sequence[str],
    property_mapping: Optional[Dict[str, str]]
) -> Dict[str, Any]:
    mapping = property_mapping or {}
    row = {mapping.get(name, name): item.get(name) for name in group_by}
    row["count"] = int(item.get(NODE_RESULT) or 0)
    return row


def query_result_to_groups(
    response: Optional[Dict[str, Any]],
    group_by: Optional[Sequence[str]],
    property_mapping: Optional[Dict[str, str]] = None
) -> List[Dict[str, Any]]:
    """
    Flatten a grouped count into rows.

    Args:
        response: Query response JSON
        group_by: Group-by property names used in the query
        property_mapping: Optional rename of group-by names in the rows

    Returns:
        One dict per group: the group-by values plus integer "count"

    Example:
        >>> query_result_to_groups(
        ...     {"result": [{"country": "CZ", "result": 3}]},
        ...     ["country"],
        ...     {"country": "Country"},
        ... )
        [{'Country': 'CZ', 'count': 3}]
    """
    if not response or not group_by:
        return []
    return [_group_row(item, group_by, property_mapping) for item in query_result_to_list(response)]


def query_result_to_interval(
    response: Optional[Dict[str, Any]],
    interval: Optional[QueryInterval]
) -> List[QueryIntervalValue]:
    """Map an interval query result to QueryIntervalValue buckets."""
    if not response or interval is None or not str(interval):
        return []

    values = []
    for item in query_result_to_list(response):
        timeframe = item.get(NODE_TIMEFRAME) or {}
        values.append(QueryIntervalValue(
            value=item.get(NODE_VALUE),
            start=parse_timestamp(timeframe.get("start")),
            end=parse_timestamp(timeframe.get("end")),
        ))
    return values


def query_result_to_interval_groups(
    response: Optional[Dict[str, Any]],
    interval: Optional[QueryInterval],
    group_by: Optional[Sequence[str]],
    property_mapping: Optional[Dict[str, str]] = None
) -> List[Dict[str, Any]]:
    """
    Flatten an interval + group_by result into rows.

    Each row holds "stamp" (bucket label from interval_date_format), the
    group-by values and integer "count".
    """
    if not response or interval is None or not group_by:
        return []

    rows = []
    for bucket in query_result_to_interval(response, interval):
        stamp = stamp_identifier(bucket.start, interval)
        for group in bucket.value or []:
            row = {"stamp": stamp}
            row.update(_group_row(group, group_by, property_mapping))
            rows.append(row)
    return rows
