"""
Query value types for the Keen driver.

Every type here is an immutable descriptor that knows how to render itself to
the wire: either a query-string value (str(obj)) or a JSON fragment
(obj.to_json()). The driver never builds these strings by hand.

Example:
    >>> str(QueryTimeFrame.this_n_days(7))
    'this_7_days'
    >>> str(QueryInterval.every_n_hours(6))
    'every_6_hours'
    >>> QueryFilter("price", FilterOperator.GREATER_THAN, 10).to_json()
    {'property_name': 'price', 'operator': 'gt', 'property_value': 10}
"""

import json
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Union

from .constants import (
    QUERY_COUNT,
    QUERY_COUNT_UNIQUE,
    QUERY_MINIMUM,
    QUERY_MAXIMUM,
    QUERY_AVERAGE,
    QUERY_SUM,
    QUERY_SELECT_UNIQUE,
)
from .exceptions import ValidationError


# ============================================================================
# JSON helpers
# ============================================================================


def json_default(value: Any) -> Any:
    """json.dumps fallback for datetimes, enums and value types."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if hasattr(value, "to_json"):
        return value.to_json()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps(value: Any) -> str:
    """Compact JSON, the form the API expects inside query strings."""
    return json.dumps(value, default=json_default, separators=(",", ":"))


def require_text(value: Optional[str], name: str) -> str:
    """Raise ValidationError unless value is a non-blank string."""
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(
            f"{name} must be a non-empty string",
            details={"argument": name, "provided": value}
        )
    return value


# ============================================================================
# Enumerations
# ============================================================================


class TimeUnit(Enum):
    """Unit used by relative time frames and every-N intervals"""
    MINUTE = "minute"
    HOUR = "hour"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    @property
    def plural(self) -> str:
        return f"{self.value}s"

    def __str__(self):
        return self.value


class QueryType(Enum):
    """Aggregate analysis requested from the API"""
    COUNT = QUERY_COUNT
    COUNT_UNIQUE = QUERY_COUNT_UNIQUE
    MINIMUM = QUERY_MINIMUM
    MAXIMUM = QUERY_MAXIMUM
    AVERAGE = QUERY_AVERAGE
    SUM = QUERY_SUM
    SELECT_UNIQUE = QUERY_SELECT_UNIQUE

    def __str__(self):
        return self.value

    @classmethod
    def parse(cls, text: str) -> "QueryType":
        """
        Parse a query type from its wire value or a loose name.

        "count_unique", "COUNT_UNIQUE", "Count Unique" and "countunique"
        all resolve to QueryType.COUNT_UNIQUE.

        Raises:
            ValidationError: If text names no known query type
        """
        if isinstance(text, cls):
            return text

        normalized = str(text or "").replace(" ", "").replace("_", "").lower()
        for member in cls:
            if member.value.replace("_", "") == normalized:
                return member

        raise ValidationError(
            f"Unknown query type '{text}'",
            details={"provided": text, "available": [m.value for m in cls]}
        )


class FilterOperator(Enum):
    """Comparison operator of a query filter"""
    EQUAL = "eq"
    NOT_EQUAL = "ne"
    LESS_THAN = "lt"
    LESS_THAN_OR_EQUAL = "lte"
    GREATER_THAN = "gt"
    GREATER_THAN_OR_EQUAL = "gte"
    EXISTS = "exists"
    IN = "in"
    CONTAINS = "contains"
    WITHIN = "within"

    def __str__(self):
        return self.value


class FrameType(Enum):
    """Relative time frame anchor"""
    THIS = "this"
    PREVIOUS = "previous"


class IntervalType(Enum):
    """Bucketing kind of a query interval"""
    NONE = "none"
    MINUTELY = "minutely"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    EVERY_N = "every_n"


# ============================================================================
# Filters
# ============================================================================


@dataclass(frozen=True)
class GeoValue:
    """Property value of a `within` filter: a point plus a radius in miles."""
    longitude: float
    latitude: float
    max_distance_miles: float

    def to_json(self) -> Dict[str, Any]:
        return {
            "coordinates": [self.longitude, self.latitude],
            "max_distance_miles": self.max_distance_miles,
        }


@dataclass(frozen=True)
class QueryFilter:
    """
    A single `filters` entry.

    Args:
        property_name: Event property to test (dotted paths allowed)
        operator: FilterOperator or its wire value ("eq", "gt", ...)
        property_value: Value to compare with; datetimes are sent as ISO-8601

    Raises:
        ValidationError: If property_name is blank, value is None or the
            operator is unknown
    """
    property_name: str
    operator: FilterOperator
    property_value: Any

    def __post_init__(self):
        require_text(self.property_name, "property_name")

        if self.property_value is None:
            raise ValidationError(
                "property_value is required",
                details={"property_name": self.property_name}
            )

        if not isinstance(self.operator, FilterOperator):
            try:
                object.__setattr__(self, "operator", FilterOperator(self.operator))
            except ValueError:
                raise ValidationError(
                    f"Unknown filter operator '{self.operator}'",
                    details={
                        "provided": self.operator,
                        "available": [op.value for op in FilterOperator]
                    }
                )

    def to_json(self) -> Dict[str, Any]:
        return {
            "property_name": self.property_name,
            "operator": self.operator.value,
            "property_value": self.property_value,
        }


# ============================================================================
# Time frames
# ============================================================================


@dataclass(frozen=True, eq=False)
class QueryTimeFrame:
    """
    Window of events a query considers.

    Relative frames render as `this_day`, `previous_hour`, `this_7_days`...
    Absolute frames render as compact JSON `{"start": ..., "end": ...}`.
    Compares equal to its wire string, so `QueryTimeFrame.yesterday() == "previous_day"`.

    Use the factory classmethods rather than the constructor:

        QueryTimeFrame.previous_n_days(14)
        QueryTimeFrame.absolute(datetime(2024, 1, 1), datetime(2024, 2, 1))
    """
    frame_type: Optional[FrameType] = None
    n: int = 1
    unit: Optional[TimeUnit] = None
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    def __post_init__(self):
        if self.start is not None or self.end is not None:
            if self.start is None or self.end is None:
                raise ValidationError(
                    "Absolute time frame requires both start and end",
                    details={"start": self.start, "end": self.end}
                )
            if (self.start.tzinfo is None) != (self.end.tzinfo is None):
                raise ValidationError(
                    "start and end must both be naive or both be timezone-aware",
                    details={"start": self.start.isoformat(), "end": self.end.isoformat()}
                )
            if self.start > self.end:
                raise ValidationError(
                    "Start date must be before end date",
                    details={"start": self.start.isoformat(), "end": self.end.isoformat()}
                )
            return

        if self.frame_type is None or self.unit is None:
            raise ValidationError("Relative time frame requires frame_type and unit")

        if not isinstance(self.n, int) or self.n < 1:
            raise ValidationError(
                f"Relative time frame needs n >= 1 (got {self.n})",
                details={"provided": self.n}
            )

    @property
    def is_absolute(self) -> bool:
        return self.start is not None

    def to_json_value(self) -> Union[str, Dict[str, str]]:
        """Value used inside JSON bodies (funnel steps, saved queries)."""
        if self.is_absolute:
            return {"start": self.start.isoformat(), "end": self.end.isoformat()}
        if self.n == 1:
            return f"{self.frame_type.value}_{self.unit.value}"
        return f"{self.frame_type.value}_{self.n}_{self.unit.plural}"

    def to_json(self) -> Union[str, Dict[str, str]]:
        return self.to_json_value()

    def __str__(self):
        value = self.to_json_value()
        return value if isinstance(value, str) else dumps(value)

    def __eq__(self, other):
        if isinstance(other, (QueryTimeFrame, str)):
            return str(self) == str(other)
        return NotImplemented

    def __hash__(self):
        return hash(str(self))

    # ----- absolute -----

    @classmethod
    def absolute(cls, start: datetime, end: datetime) -> "QueryTimeFrame":
        return cls(start=start, end=end)

    # ----- this_* -----

    @classmethod
    def this_minute(cls) -> "QueryTimeFrame":
        return cls(FrameType.THIS, 1, TimeUnit.MINUTE)

    @classmethod
    def this_hour(cls) -> "QueryTimeFrame":
        return cls(FrameType.THIS, 1, TimeUnit.HOUR)

    @classmethod
    def this_day(cls) -> "QueryTimeFrame":
        return cls(FrameType.THIS, 1, TimeUnit.DAY)

    @classmethod
    def this_week(cls) -> "QueryTimeFrame":
        return cls(FrameType.THIS, 1, TimeUnit.WEEK)

    @classmethod
    def this_month(cls) -> "QueryTimeFrame":
        return cls(FrameType.THIS, 1, TimeUnit.MONTH)

    @classmethod
    def this_year(cls) -> "QueryTimeFrame":
        return cls(FrameType.THIS, 1, TimeUnit.YEAR)

    @classmethod
    def this_n_minutes(cls, n: int) -> "QueryTimeFrame":
        return cls(FrameType.THIS, n, TimeUnit.MINUTE)

    @classmethod
    def this_n_hours(cls, n: int) -> "QueryTimeFrame":
        return cls(FrameType.THIS, n, TimeUnit.HOUR)

    @classmethod
    def this_n_days(cls, n: int) -> "QueryTimeFrame":
        return cls(FrameType.THIS, n, TimeUnit.DAY)

    @classmethod
    def this_n_weeks(cls, n: int) -> "QueryTimeFrame":
        return cls(FrameType.THIS, n, TimeUnit.WEEK)

    @classmethod
    def this_n_months(cls, n: int) -> "QueryTimeFrame":
        return cls(FrameType.THIS, n, TimeUnit.MONTH)

    @classmethod
    def this_n_years(cls, n: int) -> "QueryTimeFrame":
        return cls(FrameType.THIS, n, TimeUnit.YEAR)

    # ----- previous_* -----

    @classmethod
    def previous_n_minutes(cls, n: int) -> "QueryTimeFrame":
        return cls(FrameType.PREVIOUS, n, TimeUnit.MINUTE)

    @classmethod
    def previous_n_hours(cls, n: int) -> "QueryTimeFrame":
        return cls(FrameType.PREVIOUS, n, TimeUnit.HOUR)

    @classmethod
    def previous_n_days(cls, n: int) -> "QueryTimeFrame":
        return cls(FrameType.PREVIOUS, n, TimeUnit.DAY)

    @classmethod
    def previous_n_weeks(cls, n: int) -> "QueryTimeFrame":
        return cls(FrameType.PREVIOUS, n, TimeUnit.WEEK)

    @classmethod
    def previous_n_months(cls, n: int) -> "QueryTimeFrame":
        return cls(FrameType.PREVIOUS, n, TimeUnit.MONTH)

    @classmethod
    def previous_n_years(cls, n: int) -> "QueryTimeFrame":
        return cls(FrameType.PREVIOUS, n, TimeUnit.YEAR)

    @classmethod
    def previous_minute(cls) -> "QueryTimeFrame":
        return cls(FrameType.PREVIOUS, 1, TimeUnit.MINUTE)

    @classmethod
    def previous_hour(cls) -> "QueryTimeFrame":
        return cls(FrameType.PREVIOUS, 1, TimeUnit.HOUR)

    @classmethod
    def yesterday(cls) -> "QueryTimeFrame":
        return cls(FrameType.PREVIOUS, 1, TimeUnit.DAY)

    @classmethod
    def previous_week(cls) -> "QueryTimeFrame":
        return cls(FrameType.PREVIOUS, 1, TimeUnit.WEEK)

    @classmethod
    def previous_month(cls) -> "QueryTimeFrame":
        return cls(FrameType.PREVIOUS, 1, TimeUnit.MONTH)

    @classmethod
    def previous_year(cls) -> "QueryTimeFrame":
        return cls(FrameType.PREVIOUS, 1, TimeUnit.YEAR)


# ============================================================================
# Intervals
# ============================================================================


@dataclass(frozen=True, eq=False)
class QueryInterval:
    """
    Bucketing of a query result over time.

    Compares equal to its wire string, so `QueryInterval.daily() == "daily"`.
    """
    kind: IntervalType = IntervalType.NONE
    n: int = 1
    unit: Optional[TimeUnit] = None

    def __str__(self):
        if self.kind is IntervalType.NONE:
            return ""
        if self.kind is IntervalType.EVERY_N:
            if self.n <= 0 or self.unit is None:
                return ""
            return f"every_{self.n}_{self.unit.plural}"
        return self.kind.value

    def __eq__(self, other):
        if isinstance(other, (QueryInterval, str)):
            return str(self) == str(other)
        return NotImplemented

    def __hash__(self):
        return hash(str(self))

    def to_json(self) -> str:
        return str(self)

    @classmethod
    def none(cls) -> "QueryInterval":
        return cls(IntervalType.NONE, 0, None)

    @classmethod
    def minutely(cls) -> "QueryInterval":
        return cls(IntervalType.MINUTELY, 1, TimeUnit.MINUTE)

    @classmethod
    def hourly(cls) -> "QueryInterval":
        return cls(IntervalType.HOURLY, 1, TimeUnit.HOUR)

    @classmethod
    def daily(cls) -> "QueryInterval":
        return cls(IntervalType.DAILY, 1, TimeUnit.DAY)

    @classmethod
    def weekly(cls) -> "QueryInterval":
        return cls(IntervalType.WEEKLY, 1, TimeUnit.WEEK)

    @classmethod
    def monthly(cls) -> "QueryInterval":
        return cls(IntervalType.MONTHLY, 1, TimeUnit.MONTH)

    @classmethod
    def yearly(cls) -> "QueryInterval":
        return cls(IntervalType.YEARLY, 1, TimeUnit.YEAR)

    @classmethod
    def every_n_minutes(cls, n: int) -> "QueryInterval":
        return cls(IntervalType.EVERY_N, n, TimeUnit.MINUTE)

    @classmethod
    def every_n_hours(cls, n: int) -> "QueryInterval":
        return cls(IntervalType.EVERY_N, n, TimeUnit.HOUR)

    @classmethod
    def every_n_days(cls, n: int) -> "QueryInterval":
        return cls(IntervalType.EVERY_N, n, TimeUnit.DAY)

    @classmethod
    def every_n_weeks(cls, n: int) -> "QueryInterval":
        return cls(IntervalType.EVERY_N, n, TimeUnit.WEEK)

    @classmethod
    def every_n_months(cls, n: int) -> "QueryInterval":
        return cls(IntervalType.EVERY_N, n, TimeUnit.MONTH)

    @classmethod
    def every_n_years(cls, n: int) -> "QueryInterval":
        return cls(IntervalType.EVERY_N, n, TimeUnit.YEAR)


# ============================================================================
# Multi-analysis and funnels
# ============================================================================


@dataclass(frozen=True)
class MultiAnalysisParameter:
    """One labelled analysis of a multi_analysis query."""
    label: str
    query_type: QueryType
    target_property: Optional[str] = None

    def __post_init__(self):
        require_text(self.label, "label")
        object.__setattr__(self, "query_type", QueryType.parse(self.query_type))

    def to_json(self) -> Dict[str, Dict[str, str]]:
        analysis = {"analysis_type": self.query_type.value}
        if self.target_property:
            analysis["target_property"] = self.target_property
        return {self.label: analysis}


@dataclass(frozen=True)
class FunnelStep:
    """
    One step of a funnel query.

    Only set fields are rendered; `optional` and `inverted` are sent when True.
    """
    event_collection: str
    actor_property: str
    filters: Optional[Sequence[QueryFilter]] = None
    timeframe: Optional[QueryTimeFrame] = None
    timezone: Optional[int] = None
    optional: bool = False
    inverted: bool = False

    def __post_init__(self):
        require_text(self.event_collection, "event_collection")
        require_text(self.actor_property, "actor_property")

    def to_json(self) -> Dict[str, Any]:
        step = {
            "event_collection": self.event_collection,
            "actor_property": self.actor_property,
        }
        if self.filters:
            step["filters"] = [f.to_json() for f in self.filters]
        if self.timeframe is not None:
            step["timeframe"] = self.timeframe.to_json_value()
        if self.timezone is not None:
            step["timezone"] = self.timezone
        if self.optional:
            step["optional"] = True
        if self.inverted:
            step["inverted"] = True
        return step


# ============================================================================
# Result values
# ============================================================================


@dataclass(frozen=True)
class QueryGroupValue:
    """A result value together with the group it belongs to."""
    value: Any
    group: str


@dataclass(frozen=True)
class QueryIntervalValue:
    """A result value for one interval bucket [start, end)."""
    value: Any
    start: datetime
    end: datetime
