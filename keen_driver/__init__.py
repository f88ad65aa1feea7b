"""
Keen IO Analytics Python Driver

A driver for the Keen IO event-analytics REST API.

Example:
    Basic usage:

    >>> from keen_driver import KeenDriver, QueryType, QueryTimeFrame, IpToGeo
    >>>
    >>> # Create driver from environment
    >>> client = KeenDriver.from_env()
    >>>
    >>> # Write an event
    >>> client.add_event(
    ...     "purchases",
    ...     {"item": "golden widget", "price": 25.0, "ip": "8.8.8.8"},
    ...     add_ons=IpToGeo("ip", "geo"),
    ... )
    >>>
    >>> # Aggregate
    >>> response = client.query(
    ...     QueryType.SUM,
    ...     "purchases",
    ...     timeframe=QueryTimeFrame.this_n_days(7),
    ...     target_property="price",
    ... )
    >>> print(f"Revenue this week: {response['result']}")
    >>>
    >>> # Extract raw events
    >>> events = client.extract("purchases", timeframe=QueryTimeFrame.yesterday())
    >>> print(f"Extracted {len(events)} events")
    >>>
    >>> client.close()

Supports:
    - Event ingestion with add-ons (IP to geo, user agent, URL, referrer)
    - Collection schema and deletion
    - count, count_unique, minimum, maximum, average, sum, select_unique
    - Extraction, multi-analysis, funnels and saved queries

Features:
    - ✅ Query value types (time frames, intervals, filters, funnel steps)
    - ✅ Operation-specific key handling (master / read / write)
    - ✅ Structured exception hierarchy
    - ✅ Result helpers for group_by and interval answers
    - ✅ Debug logging mode

Authentication:
    Set environment variables:
    - KEEN_PROJECT_ID: Required
    - KEEN_MASTER_KEY: Schema, deletion, saved queries
    - KEEN_READ_KEY: Queries
    - KEEN_WRITE_KEY: Event ingestion
    - KEEN_BASE_URL: Override API base URL (default: https://api.keen.io/3.0/)
    - KEEN_DEBUG: "true" or "false" (default: "false")
"""

__version__ = "1.0.0"
__license__ = "MIT"

from .client import (
    KeenDriver,
    DriverCapabilities,
    PaginationStyle,
)

from .models import (
    TimeUnit,
    QueryType,
    FilterOperator,
    FrameType,
    IntervalType,
    GeoValue,
    QueryFilter,
    QueryTimeFrame,
    QueryInterval,
    MultiAnalysisParameter,
    FunnelStep,
    QueryGroupValue,
    QueryIntervalValue,
)

from .addons import (
    EventAddOn,
    IpToGeo,
    UserAgentParser,
    UrlParser,
    ReferrerParser,
)

from .results import (
    interval_date_format,
    parse_timestamp,
    query_result_to_list,
    query_result_to_groups,
    query_result_to_interval,
    query_result_to_interval_groups,
)

from .helpers import (
    timezone_name_to_offset_seconds,
    to_query_time_frame,
)

from .exceptions import (
    DriverError,
    AuthenticationError,
    ConnectionError,
    ObjectNotFoundError,
    RateLimitError,
    ValidationError,
    TimeoutError,
    PayloadSizeError,
    OperationFailureError,
)

__all__ = [
    # Driver classes
    "KeenDriver",
    # Data classes
    "DriverCapabilities",
    "PaginationStyle",
    # Query value types
    "TimeUnit",
    "QueryType",
    "FilterOperator",
    "FrameType",
    "IntervalType",
    "GeoValue",
    "QueryFilter",
    "QueryTimeFrame",
    "QueryInterval",
    "MultiAnalysisParameter",
    "FunnelStep",
    "QueryGroupValue",
    "QueryIntervalValue",
    # Add-ons
    "EventAddOn",
    "IpToGeo",
    "UserAgentParser",
    "UrlParser",
    "ReferrerParser",
    # Result helpers
    "interval_date_format",
    "parse_timestamp",
    "query_result_to_list",
    "query_result_to_groups",
    "query_result_to_interval",
    "query_result_to_interval_groups",
    "timezone_name_to_offset_seconds",
    "to_query_time_frame",
    # Exceptions
    "DriverError",
    "AuthenticationError",
    "ConnectionError",
    "ObjectNotFoundError",
    "RateLimitError",
    "ValidationError",
    "TimeoutError",
    "PayloadSizeError",
    "OperationFailureError",
]
