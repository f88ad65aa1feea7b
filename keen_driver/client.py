"""
Keen IO Analytics Driver

A Python driver for the Keen IO REST API (version 3.0).

Supports:
- Event ingestion with data enrichment add-ons (Events API)
- Collection schema inspection and deletion (Events API, master key)
- Aggregate queries: count, count_unique, minimum, maximum, average, sum,
  select_unique, with filters, group_by, intervals and time frames
- Raw event extraction, multi-analysis and funnel queries (Queries API)
- Saved queries (Saved Queries API, master key)

Bug Prevention Measures:
- ✅ Correct initialization order (4-phase)
- ✅ Operation-specific key selection (master / read / write)
- ✅ Collection name validation before any request
- ✅ Empty query parameters never reach the URL
- ✅ error_code in a 2xx envelope is treated as a failure
"""

import os
import copy
import dataclasses
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone as dt_timezone
from enum import Enum
from typing import List, Dict, Any, Optional, Sequence, Union
from urllib.parse import quote

import requests

from .addons import EventAddOn
from .constants import (
    DEFAULT_BASE_URL,
    EVENTS_RESOURCE,
    QUERIES_RESOURCE,
    SAVED_QUERIES_RESOURCE,
    QUERY_EXTRACTION,
    QUERY_FUNNEL,
    QUERY_MULTI_ANALYSIS,
    PARAM_EVENT_COLLECTION,
    PARAM_TARGET_PROPERTY,
    PARAM_TIMEFRAME,
    PARAM_GROUP_BY,
    PARAM_INTERVAL,
    PARAM_TIMEZONE,
    PARAM_FILTERS,
    PARAM_LATEST,
    PARAM_STEPS,
    PARAM_ANALYSES,
    NODE_ERROR_CODE,
    NODE_MESSAGE,
    MAX_COLLECTION_NAME_LENGTH,
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
from .models import (
    FunnelStep,
    MultiAnalysisParameter,
    QueryFilter,
    QueryInterval,
    QueryTimeFrame,
    QueryType,
    dumps,
    require_text,
)
from .results import (
    query_result_to_groups,
    query_result_to_interval_groups,
    query_result_to_list,
)


GroupBy = Union[str, Sequence[str]]
AddOns = Union[EventAddOn, Sequence[EventAddOn]]


# ============================================================================
# Driver API Contract
# ============================================================================


class PaginationStyle(Enum):
    """How the driver handles pagination"""
    NONE = "none"
    OFFSET = "offset"
    CURSOR = "cursor"
    PAGE_NUMBER = "page"


@dataclass
class DriverCapabilities:
    """What the driver can do"""
    read: bool = True
    write: bool = False
    update: bool = False
    delete: bool = False
    batch_operations: bool = False
    streaming: bool = False
    pagination: PaginationStyle = PaginationStyle.NONE
    query_language: Optional[str] = None
    max_page_size: Optional[int] = None
    supports_transactions: bool = False
    supports_relationships: bool = False


# ============================================================================
# Main Driver Implementation
# ============================================================================


class KeenDriver:
    """
    Keen IO Analytics Driver.

    Every request goes to:
        {base_url}projects/{project_id}/{resource}[/{feature}][?query]

    CRITICAL: Each operation needs a DIFFERENT key!
    - Write key: add_event
    - Read key: query, count_by_group, extract, multi_analysis, funnel
    - Master key: delete_collection, get_schema, get_available_queries,
      post_saved_query
    The key goes verbatim into the Authorization header (no "Bearer").

    IMPORTANT INITIALIZATION ORDER (Bug Prevention #0):
    1. Set custom attributes
    2. Set request attributes
    3. Create session
    4. Validate credentials

    Example:
        client = KeenDriver.from_env()
        client.add_event("purchases", {"item": "golden widget", "price": 25})
        result = client.query(QueryType.SUM, "purchases", target_property="price")
        client.close()
    """

    # Collection names that already passed validation (shared by all drivers)
    _valid_collection_names = set()

    def __init__(
        self,
        project_id: Optional[str] = None,
        master_key: Optional[str] = None,
        read_key: Optional[str] = None,
        write_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: int = 30,
        debug: bool = False,
        **kwargs
    ):
        """
        Initialize Keen driver.

        Args:
            project_id: Keen project ID (required)
            master_key: Master key (schema, deletion, saved queries)
            read_key: Read key (queries)
            write_key: Write key (event ingestion)
            base_url: API base URL (default: https://api.keen.io/3.0/)
            timeout: Request timeout in seconds (default: 30)
            debug: Enable debug logging (default: False)
            **kwargs: Additional arguments

        Raises:
            AuthenticationError: If project ID or every key is missing
        """

        # ===== PHASE 1: Set custom attributes =====
        self.driver_name = "KeenDriver"
        self.project_id = project_id
        self.master_key = master_key
        self.read_key = read_key
        self.write_key = write_key

        base_url = base_url or DEFAULT_BASE_URL
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"

        # Setup logging
        if debug:
            logging.basicConfig(level=logging.DEBUG)
        self.logger = logging.getLogger(__name__)
        if debug:
            self.logger.setLevel(logging.DEBUG)
        else:
            self.logger.setLevel(logging.WARNING)

        # ===== PHASE 2: Set request attributes =====
        self.timeout = timeout or 30
        self.debug = debug

        # ===== PHASE 3: Create session =====
        self.session = self._create_session()

        # ===== PHASE 4: Validate credentials =====
        self._validate_connection()

    @classmethod
    def from_env(cls, **kwargs) -> "KeenDriver":
        """
        Create driver instance from environment variables.

        Environment variables:
            KEEN_PROJECT_ID: Project ID (required)
            KEEN_MASTER_KEY: Master key (optional)
            KEEN_READ_KEY: Read key (optional)
            KEEN_WRITE_KEY: Write key (optional)
            KEEN_BASE_URL: API base URL (default: https://api.keen.io/3.0/)
            KEEN_TIMEOUT: Request timeout in seconds (default: 30)
            KEEN_DEBUG: Enable debug logging (default: False)

        Returns:
            Configured KeenDriver instance

        Raises:
            AuthenticationError: If KEEN_PROJECT_ID or every key is missing

        Example:
            driver = KeenDriver.from_env()
            events = driver.extract("purchases", timeframe=QueryTimeFrame.yesterday())
        """
        project_id = os.getenv("KEEN_PROJECT_ID")
        master_key = os.getenv("KEEN_MASTER_KEY")
        read_key = os.getenv("KEEN_READ_KEY")
        write_key = os.getenv("KEEN_WRITE_KEY")
        base_url = os.getenv("KEEN_BASE_URL") or None
        timeout = int(os.getenv("KEEN_TIMEOUT", "30"))
        debug = os.getenv("KEEN_DEBUG", "false").lower() == "true"

        if not project_id:
            raise AuthenticationError(
                "Missing Keen project ID. Set KEEN_PROJECT_ID environment variable.",
                details={
                    "env_vars": ["KEEN_PROJECT_ID"],
                    "suggestion": "Set KEEN_PROJECT_ID in your .env file"
                }
            )

        if not (master_key or read_key or write_key):
            raise AuthenticationError(
                "Missing Keen credentials. Set at least one of KEEN_MASTER_KEY, "
                "KEEN_READ_KEY or KEEN_WRITE_KEY.",
                details={
                    "env_vars": ["KEEN_MASTER_KEY", "KEEN_READ_KEY", "KEEN_WRITE_KEY"],
                    "suggestion": "Set the key matching the operations you need in your .env file"
                }
            )

        # Only set debug from env if not provided in kwargs
        if 'debug' not in kwargs:
            kwargs['debug'] = debug

        return cls(
            project_id=project_id,
            master_key=master_key,
            read_key=read_key,
            write_key=write_key,
            base_url=base_url,
            timeout=timeout,
            **kwargs
        )

    # ========================================================================
    # Driver API Contract
    # ========================================================================

    def get_capabilities(self) -> DriverCapabilities:
        """
        Return driver capabilities.

        Returns:
            DriverCapabilities with boolean flags for features
        """
        return DriverCapabilities(
            read=True,  # Queries API
            write=True,  # Events API
            update=False,  # Events are immutable
            delete=True,  # Collection deletion
            batch_operations=False,
            streaming=False,
            pagination=PaginationStyle.NONE,
            query_language=None,  # Structured query parameters only
            max_page_size=None,
            supports_transactions=False,
            supports_relationships=False
        )

    def list_objects(self) -> List[str]:
        """
        Discover the event collections of the project.

        Returns:
            List of collection names

        Example:
            collections = client.list_objects()
            # Returns: ["purchases", "pageviews", ...]
        """
        schema = self.get_schema()
        if not isinstance(schema, list):
            return []
        return [
            item["name"] for item in schema
            if isinstance(item, dict) and item.get("name")
        ]

    def get_fields(self, object_name: str) -> Dict[str, Any]:
        """
        Get the property schema of an event collection.

        Args:
            object_name: Collection name (case-sensitive)

        Returns:
            Mapping of property path to inferred type, e.g. {"price": "num"}

        Raises:
            ObjectNotFoundError: If the collection doesn't exist
        """
        schema = self.get_schema(object_name)
        if not isinstance(schema, dict):
            return {}
        return dict(schema.get("properties") or {})

    # ========================================================================
    # Collection Operations (Master Key)
    # ========================================================================

    def delete_collection(self, collection_name: str) -> None:
        """
        Delete an event collection and all its events.

        Deletion may be denied by the API for collections with many events.

        Args:
            collection_name: Collection to delete

        Raises:
            ValidationError: If the collection name is invalid
            AuthenticationError: If the master key is missing
        """
        self._validate_collection_name(collection_name)
        master_key = self._require_key(self.master_key, "master", "KEEN_MASTER_KEY")

        request = self._build_request(
            "DELETE", EVENTS_RESOURCE, collection_name, auth_key=master_key
        )
        self._execute(request, context="Events API")

        if self.debug:
            self.logger.debug(f"[Events API] Deleted collection '{collection_name}'")

    def get_schema(self, collection_name: Optional[str] = None) -> Any:
        """
        Return schema information for one collection, or all of them.

        Args:
            collection_name: Collection to inspect; None lists every collection

        Returns:
            For one collection: {"properties": {...}, ...}
            For all collections: [{"name": ..., "properties": {...}}, ...]

        Raises:
            ValidationError: If the collection name is invalid
            AuthenticationError: If the master key is missing
        """
        if collection_name is not None:
            self._validate_collection_name(collection_name)
        master_key = self._require_key(self.master_key, "master", "KEEN_MASTER_KEY")

        request = self._build_request(
            "GET", EVENTS_RESOURCE, collection_name, auth_key=master_key
        )
        return self._execute(request, context="Events API")

    # ========================================================================
    # Write Operations (Write Key)
    # ========================================================================

    def add_event(
        self,
        collection_name: str,
        event: Any,
        add_ons: Optional[AddOns] = None
    ) -> Dict[str, Any]:
        """
        Add a single event to a collection.

        Args:
            collection_name: Target collection (created on first event)
            event: Event properties (dict or dataclass instance)
            add_ons: One add-on or a list of add-ons to run server-side

        Returns:
            API response, e.g. {"created": True}

        Raises:
            ValidationError: If the collection name or event is invalid
            AuthenticationError: If the write key is missing

        Example:
            client.add_event(
                "pageviews",
                {"url": "https://example.com/", "ip": "8.8.8.8"},
                add_ons=IpToGeo("ip", "geo"),
            )

        CRITICAL:
        - The `keen` property is reserved; if present it MUST be an object
        - keen.timestamp is set to now (UTC) unless the event carries one
        """
        self._validate_collection_name(collection_name)
        if event is None:
            raise ValidationError("event is required", details={"collection": collection_name})
        write_key = self._require_key(self.write_key, "write", "KEEN_WRITE_KEY")

        payload = self._prepare_event(event, self._normalize_add_ons(add_ons))

        request = self._build_request(
            "POST", EVENTS_RESOURCE, collection_name, auth_key=write_key, body=payload
        )
        result = self._execute(request, context="Events API")

        if self.debug:
            self.logger.debug(f"[Events API] Added event to '{collection_name}'")
        return result

    # ========================================================================
    # Query Operations (Read Key)
    # ========================================================================

    def get_available_queries(self) -> Dict[str, str]:
        """
        List the query resources of the project.

        Returns:
            Mapping of query name to its resource URL
        """
        master_key = self._require_key(self.master_key, "master", "KEEN_MASTER_KEY")

        request = self._build_request("GET", QUERIES_RESOURCE, auth_key=master_key)
        reply = self._execute(request, context="Queries API")

        if not isinstance(reply, dict):
            return {}
        return {name: url for name, url in reply.items() if isinstance(url, str)}

    def query(
        self,
        query_type: Union[QueryType, str],
        collection_name: str,
        timeframe: Optional[QueryTimeFrame] = None,
        filters: Optional[Sequence[QueryFilter]] = None,
        group_by: Optional[GroupBy] = None,
        interval: Optional[QueryInterval] = None,
        timezone: Optional[Union[int, str]] = None,
        target_property: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Run an aggregate query.

        Args:
            query_type: QueryType (or its wire value, e.g. "count_unique")
            collection_name: Collection to analyze
            timeframe: Window of events to consider
            filters: Filters every counted event must match
            group_by: One property name or a list of them
            interval: Bucket the result over time
            timezone: Offset in seconds (or IANA zone name) for the timeframe
            target_property: Property to aggregate (required except for count)

        Returns:
            Query response; the answer is under "result"

        Raises:
            ValidationError: If arguments are missing or invalid
            AuthenticationError: If the read key is missing

        Example:
            result = client.query(
                QueryType.COUNT,
                "purchases",
                timeframe=QueryTimeFrame.this_n_days(7),
                group_by=["country", "platform"],
                interval=QueryInterval.daily(),
            )
        """
        query_type = QueryType.parse(query_type)
        require_text(collection_name, "collection_name")
        self._require_target_property(query_type, target_property, collection_name)
        read_key = self._require_key(self.read_key, "read", "KEEN_READ_KEY")

        parameters = self._create_criteria_data(
            collection_name=collection_name,
            timeframe=timeframe,
            timezone=timezone,
            filters=filters,
            interval=interval,
            group_by=group_by,
            target_property=target_property
        )

        request = self._build_request(
            "GET", QUERIES_RESOURCE, query_type.value, parameters, auth_key=read_key
        )
        return self._execute(request, context="Queries API")

    def count_by_group(
        self,
        collection_name: str,
        group_by: GroupBy,
        timeframe: Optional[QueryTimeFrame] = None,
        filters: Optional[Sequence[QueryFilter]] = None,
        interval: Optional[QueryInterval] = None,
        timezone: Optional[Union[int, str]] = None,
        property_mapping: Optional[Dict[str, str]] = None
    ) -> List[Dict[str, Any]]:
        """
        Count events per group and flatten the answer into rows.

        Returns:
            One dict per group with the group-by values and "count"; with an
            interval each row also carries "stamp" (bucket label)

        Example:
            rows = client.count_by_group("purchases", "country")
            # [{"country": "CZ", "count": 12}, {"country": "DE", "count": 7}]
        """
        names = self._group_by_names(group_by)
        if not names:
            raise ValidationError(
                "group_by requires at least one property name",
                details={"collection": collection_name}
            )

        response = self.query(
            QueryType.COUNT,
            collection_name,
            timeframe=timeframe,
            filters=filters,
            group_by=names,
            interval=interval,
            timezone=timezone
        )

        if interval is not None and str(interval):
            return query_result_to_interval_groups(response, interval, names, property_mapping)
        return query_result_to_groups(response, names, property_mapping)

    def extract(
        self,
        collection_name: str,
        timeframe: Optional[QueryTimeFrame] = None,
        filters: Optional[Sequence[QueryFilter]] = None,
        timezone: Optional[Union[int, str]] = None,
        latest: int = 100
    ) -> List[Dict[str, Any]]:
        """
        Extract raw events from a collection (Extraction API).

        Args:
            collection_name: Collection to read
            timeframe: Window of events to extract
            filters: Filters every extracted event must match
            timezone: Offset in seconds (or IANA zone name)
            latest: Return only the N most recent events; <= 0 means no limit

        Returns:
            List of event dicts

        Example:
            events = client.extract("purchases", timeframe=QueryTimeFrame.yesterday())
        """
        require_text(collection_name, "collection_name")
        read_key = self._require_key(self.read_key, "read", "KEEN_READ_KEY")

        parameters = self._create_criteria_data(
            collection_name=collection_name,
            timeframe=timeframe,
            filters=filters,
            timezone=timezone
        )
        parameters[PARAM_LATEST] = str(latest) if latest and latest > 0 else ""

        request = self._build_request(
            "GET", QUERIES_RESOURCE, QUERY_EXTRACTION, parameters, auth_key=read_key
        )
        response = self._execute(request, context="Extraction API")
        events = query_result_to_list(response)

        if self.debug:
            self.logger.debug(f"[Extraction API] Extracted {len(events)} events from '{collection_name}'")
        return events

    def multi_analysis(
        self,
        collection_name: str,
        analyses: Sequence[MultiAnalysisParameter],
        timeframe: Optional[QueryTimeFrame] = None,
        filters: Optional[Sequence[QueryFilter]] = None,
        group_by: Optional[GroupBy] = None,
        interval: Optional[QueryInterval] = None,
        timezone: Optional[Union[int, str]] = None
    ) -> Dict[str, Any]:
        """
        Run several labelled analyses over the same events in one request.

        Example:
            result = client.multi_analysis("purchases", [
                MultiAnalysisParameter("total", QueryType.SUM, "price"),
                MultiAnalysisParameter("buyers", QueryType.COUNT_UNIQUE, "user.id"),
            ])
            # result["result"] == {"total": 1020.5, "buyers": 31}
        """
        require_text(collection_name, "collection_name")
        if not analyses:
            raise ValidationError(
                "multi_analysis requires at least one analysis",
                details={"collection": collection_name}
            )
        read_key = self._require_key(self.read_key, "read", "KEEN_READ_KEY")

        parameters = self._create_criteria_data(
            collection_name=collection_name,
            timeframe=timeframe,
            timezone=timezone,
            filters=filters,
            interval=interval,
            group_by=group_by,
            analyses=analyses
        )

        request = self._build_request(
            "GET", QUERIES_RESOURCE, QUERY_MULTI_ANALYSIS, parameters, auth_key=read_key
        )
        return self._execute(request, context="Queries API")

    def funnel(
        self,
        steps: Sequence[FunnelStep],
        timeframe: Optional[QueryTimeFrame] = None,
        timezone: Optional[Union[int, str]] = None
    ) -> Dict[str, Any]:
        """
        Run a funnel query.

        Each step names its own collection; the funnel counts actors (by
        actor_property) that completed every step in order.

        Returns:
            Query response; "result" holds one count per step
        """
        if not steps:
            raise ValidationError("funnel requires at least one step")
        read_key = self._require_key(self.read_key, "read", "KEEN_READ_KEY")

        parameters = self._create_criteria_data(
            timeframe=timeframe,
            timezone=timezone,
            steps=steps
        )

        request = self._build_request(
            "GET", QUERIES_RESOURCE, QUERY_FUNNEL, parameters, auth_key=read_key
        )
        return self._execute(request, context="Queries API")

    # ========================================================================
    # Saved Queries (Master Key)
    # ========================================================================

    def post_saved_query(
        self,
        saved_query_name: str,
        query_type: Union[QueryType, str],
        collection_name: str,
        timeframe: Optional[QueryTimeFrame] = None,
        filters: Optional[Sequence[QueryFilter]] = None,
        group_by: Optional[GroupBy] = None,
        interval: Optional[QueryInterval] = None,
        timezone: Optional[Union[int, str]] = None,
        target_property: Optional[str] = None
    ) -> Dict[str, Any]:
        """
        Create or replace a saved query.

        Returns:
            API response describing the saved query

        CRITICAL:
        - Uses PUT, so an existing query with the same name is overwritten
        - Body is JSON (not query string parameters)
        """
        require_text(saved_query_name, "saved_query_name")
        require_text(collection_name, "collection_name")
        query_type = QueryType.parse(query_type)
        self._require_target_property(query_type, target_property, collection_name)
        master_key = self._require_key(self.master_key, "master", "KEEN_MASTER_KEY")

        names = self._group_by_names(group_by)
        saved_query = {
            "analysis_type": query_type.value,
            "event_collection": collection_name,
            "target_property": target_property or None,
            "filters": [f.to_json() for f in filters] if filters else None,
            "timeframe": timeframe.to_json_value() if timeframe is not None else None,
            "timezone": timezone,
            "interval": (str(interval) or None) if interval is not None else None,
            "group_by": names or None,
        }
        body = {key: value for key, value in saved_query.items() if value is not None}

        request = self._build_request(
            "PUT", SAVED_QUERIES_RESOURCE, saved_query_name, auth_key=master_key, body=body
        )
        result = self._execute(request, context="Saved Queries API")

        if self.debug:
            self.logger.debug(f"[Saved Queries API] Saved query '{saved_query_name}'")
        return result

    # ========================================================================
    # Utility Methods
    # ========================================================================

    def get_rate_limit_status(self) -> Dict[str, Any]:
        """
        Get current rate limit status (if supported by API).

        Returns:
            Dictionary with rate limit information
        """
        return {
            "remaining": None,
            "limit": None,
            "reset_at": None,
            "retry_after": None,
            "note": "Keen doesn't provide real-time rate limit headers"
        }

    def close(self):
        """
        Close session and cleanup resources.

        Example:
            client = KeenDriver.from_env()
            try:
                client.add_event("signups", {...})
            finally:
                client.close()
        """
        if self.session:
            self.session.close()
            if self.debug:
                self.logger.debug("Session closed")

    # ========================================================================
    # Request Building
    # ========================================================================

    def _create_criteria_data(
        self,
        collection_name: Optional[str] = None,
        timeframe: Optional[QueryTimeFrame] = None,
        filters: Optional[Sequence[QueryFilter]] = None,
        interval: Optional[QueryInterval] = None,
        group_by: Optional[GroupBy] = None,
        analyses: Optional[Sequence[MultiAnalysisParameter]] = None,
        steps: Optional[Sequence[FunnelStep]] = None,
        timezone: Optional[Union[int, str]] = None,
        target_property: Optional[str] = None
    ) -> Dict[str, str]:
        """
        Assemble the flat query-string parameter map of a query.

        Every value is already in wire form:
        - timeframe / interval: their wire strings
        - filters / steps: compact JSON arrays
        - group_by: the bare name for one property, JSON array for several
        - analyses: JSON object {label: {"analysis_type", "target_property"}}

        Returns:
            Dict of parameter name to string value (insertion ordered)
        """
        parameters = {}

        if collection_name is not None:
            parameters[PARAM_EVENT_COLLECTION] = collection_name

        if timeframe is not None:
            parameters[PARAM_TIMEFRAME] = str(timeframe)

        if timezone is not None:
            parameters[PARAM_TIMEZONE] = str(timezone)

        if filters:
            parameters[PARAM_FILTERS] = dumps([f.to_json() for f in filters])

        if interval is not None:
            parameters[PARAM_INTERVAL] = str(interval)

        if steps is not None:
            parameters[PARAM_STEPS] = dumps([step.to_json() for step in steps])

        names = self._group_by_names(group_by)
        if len(names) == 1:
            parameters[PARAM_GROUP_BY] = names[0]
        elif len(names) > 1:
            parameters[PARAM_GROUP_BY] = dumps(names)

        if analyses:
            merged = {}
            for analysis in analyses:
                if analysis.label in merged:
                    raise ValidationError(
                        f"Duplicate multi_analysis label '{analysis.label}'",
                        details={"label": analysis.label}
                    )
                merged.update(analysis.to_json())
            parameters[PARAM_ANALYSES] = dumps(merged)

        if target_property and target_property.strip():
            parameters[PARAM_TARGET_PROPERTY] = target_property

        return parameters

    @staticmethod
    def _build_query_string(parameters: Optional[Dict[str, Any]]) -> str:
        """
        Encode parameters as key=value pairs joined by '&'.

        BUG PREVENTION #3: Empty values are DROPPED, never sent as "key=".
        Values are percent-encoded (only RFC 3986 unreserved chars kept).
        """
        if not parameters:
            return ""
        return "&".join(
            f"{key}={quote(str(value), safe='')}"
            for key, value in parameters.items()
            if value is not None and str(value) != ""
        )

    def _build_url(
        self,
        resource: str,
        feature: Optional[str] = None,
        parameters: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Build the full request URL.

        Example:
            _build_url("queries", "count", {"event_collection": "purchases"})
            # https://api.keen.io/3.0/projects/PID/queries/count?event_collection=purchases
        """
        path_feature = quote(feature, safe="") if feature else ""
        url = f"{self.base_url}projects/{self.project_id}/{resource}/{path_feature}".rstrip("/")

        query_string = self._build_query_string(parameters)
        return f"{url}?{query_string}" if query_string else url

    def _build_request(
        self,
        method: str,
        resource: str,
        feature: Optional[str] = None,
        parameters: Optional[Dict[str, Any]] = None,
        auth_key: Optional[str] = None,
        body: Optional[Any] = None
    ) -> requests.PreparedRequest:
        """
        Build a prepared request with URL, Authorization header and JSON body.

        BUG PREVENTION #1: Authorization carries the raw key, no scheme prefix.
        BUG PREVENTION #2: Content-Type is set only when a body is sent.
        """
        headers = {}
        if auth_key and auth_key.strip():
            headers["Authorization"] = auth_key

        data = None
        if body is not None:
            headers["Content-Type"] = "application/json"
            data = dumps(body)

        request = requests.Request(
            method,
            self._build_url(resource, feature, parameters),
            headers=headers,
            data=data
        )
        return self.session.prepare_request(request)

    # ========================================================================
    # Response Handling
    # ========================================================================

    def _execute(self, request: requests.PreparedRequest, context: str = "") -> Any:
        """
        Send a prepared request and return the parsed JSON body.

        Returns:
            Parsed JSON ({} for an empty body, e.g. HTTP 204)

        Raises:
            Appropriate DriverError subclass for HTTP, network and envelope errors
        """
        try:
            if self.debug:
                self.logger.debug(f"[{context}] {request.method} {request.url}")

            response = self.session.send(request, timeout=self.timeout)
            response.raise_for_status()

            # raise_for_status() lets 1xx / 3xx through
            if not 200 <= response.status_code < 300:
                raise requests.HTTPError(
                    f"Unexpected HTTP status {response.status_code}", response=response
                )

        except requests.HTTPError as e:
            return self._handle_api_error(e, context=context)
        except requests.exceptions.Timeout:
            raise TimeoutError(
                f"{context} request timed out",
                details={"timeout": self.timeout, "url": request.url}
            )
        except requests.exceptions.ConnectionError as e:
            raise ConnectionError(
                f"Cannot reach {context}: {e}",
                details={"url": request.url, "suggestion": "Check base URL and network connectivity"}
            )

        if not response.content:
            return {}

        try:
            data = response.json()
        except ValueError as e:
            raise ConnectionError(
                f"{context} returned invalid JSON",
                details={"error": str(e)}
            )

        self._check_api_error_code(request.url, data)
        return data

    @staticmethod
    def _check_api_error_code(operation_name: str, data: Any) -> None:
        """
        Raise if a 2xx JSON envelope carries a non-blank error_code.

        Raises:
            OperationFailureError: With error_code, api_message and operation
        """
        if not isinstance(data, dict):
            return

        error_code = data.get(NODE_ERROR_CODE)
        if error_code is None or not str(error_code).strip():
            return

        message = data.get(NODE_MESSAGE)
        raise OperationFailureError(
            f"{error_code}: {message}" if message else str(error_code),
            details={
                "error_code": str(error_code),
                "api_message": message,
                "operation": operation_name
            }
        )

    def _handle_api_error(self, error: Exception, context: str = "") -> None:
        """
        Convert HTTP errors to structured driver exceptions.

        Args:
            error: requests.HTTPError exception
            context: Context string (e.g., "Queries API")

        Raises:
            Appropriate DriverError subclass
        """
        if not isinstance(error, requests.HTTPError):
            raise DriverError(f"Unexpected error: {error}")

        response = error.response
        status_code = response.status_code

        error_code = None
        try:
            error_data = response.json()
            error_msg = error_data.get(NODE_MESSAGE, error_data.get("error", "Unknown error"))
            error_code = error_data.get(NODE_ERROR_CODE)
        except (ValueError, KeyError, AttributeError):
            error_msg = response.text[:500]

        details = {
            "status_code": status_code,
            "context": context,
            "api_response": error_msg,
        }
        if error_code:
            details["error_code"] = error_code

        if status_code in (401, 403):
            details["suggestion"] = "Check project ID and that the right key (master/read/write) is set"
            raise AuthenticationError(f"Authentication failed: {error_msg}", details=details)

        elif status_code == 400:
            raise ValidationError(f"Validation failed: {error_msg}", details=details)

        elif status_code == 404:
            raise ObjectNotFoundError(f"Resource not found: {error_msg}", details=details)

        elif status_code == 413:
            raise PayloadSizeError(f"Request payload too large: {error_msg}", details=details)

        elif status_code == 429:
            retry_after = response.headers.get("Retry-After", "60")
            try:
                details["retry_after"] = int(retry_after)
            except (TypeError, ValueError):
                details["retry_after"] = None
            raise RateLimitError(
                f"API rate limit exceeded: {error_msg}. Retry after {retry_after} seconds.",
                details=details
            )

        elif status_code >= 500:
            raise ConnectionError(f"API server error: {error_msg}", details=details)

        else:
            raise DriverError(f"API request failed (HTTP {status_code}): {error_msg}", details=details)

    # ========================================================================
    # Internal Methods (Bug Prevention)
    # ========================================================================

    def _create_session(self) -> requests.Session:
        """
        Create HTTP session with headers shared by all requests.

        Authorization is NOT set here: it is chosen per request because
        each operation needs a different key.

        Returns:
            Configured requests.Session
        """
        session = requests.Session()

        session.headers.update({
            "Accept": "application/json",
            "User-Agent": f"{self.driver_name}-Python-Driver/1.0.0",
        })

        return session

    def _validate_connection(self):
        """
        Validate credentials at initialization (fail fast!).

        Raises:
            AuthenticationError: Missing project ID or no key at all
        """
        if not self.project_id:
            raise AuthenticationError(
                "Project ID required",
                details={"suggestion": "Set KEEN_PROJECT_ID environment variable"}
            )

        if not (self.master_key or self.read_key or self.write_key):
            raise AuthenticationError(
                "At least one of master key, read key or write key is required",
                details={"suggestion": "Set KEEN_MASTER_KEY, KEEN_READ_KEY or KEEN_WRITE_KEY"}
            )

        if self.debug:
            self.logger.debug(f"[Validation] Project: {self.project_id}")
            for label, key in (("Master", self.master_key), ("Read", self.read_key), ("Write", self.write_key)):
                if key:
                    self.logger.debug(f"[Validation] {label} Key: {key[:10]}...")
                else:
                    self.logger.debug(f"[Validation] {label} Key not set")

    @staticmethod
    def _require_key(key: Optional[str], label: str, env_var: str) -> str:
        """Return the key or raise AuthenticationError naming what is missing."""
        if not key or not key.strip():
            raise AuthenticationError(
                f"This operation requires the {label} key",
                details={"env_var": env_var, "suggestion": f"Set {env_var} or pass {label}_key"}
            )
        return key

    @staticmethod
    def _require_target_property(
        query_type: QueryType,
        target_property: Optional[str],
        collection_name: str
    ) -> None:
        """Every query type except count aggregates a property."""
        if query_type is not QueryType.COUNT and not (target_property and target_property.strip()):
            raise ValidationError(
                f"{query_type.value} query requires target_property",
                details={"query_type": query_type.value, "collection": collection_name}
            )

    @classmethod
    def _validate_collection_name(cls, collection_name: str) -> None:
        """
        Apply collection name rules.

        Rules: non-blank, <= 64 characters, ASCII only, no '$',
        not starting with '_'. Names that passed are cached.

        Raises:
            ValidationError: With the violated rules
        """
        if collection_name in cls._valid_collection_names:
            return

        require_text(collection_name, "collection_name")

        problems = []
        if len(collection_name) > MAX_COLLECTION_NAME_LENGTH:
            problems.append(f"longer than {MAX_COLLECTION_NAME_LENGTH} characters")
        if not collection_name.isascii():
            problems.append("contains non-ASCII characters")
        if "$" in collection_name:
            problems.append("contains '$'")
        if collection_name.startswith("_"):
            problems.append("starts with '_'")

        if problems:
            raise ValidationError(
                f"Invalid event collection name '{collection_name}': {', '.join(problems)}",
                details={
                    "provided": collection_name,
                    "problems": problems,
                    "rules": "length <= 64; ASCII only; no '$'; must not start with '_'"
                }
            )

        cls._valid_collection_names.add(collection_name)

    @staticmethod
    def _group_by_names(group_by: Optional[GroupBy]) -> List[str]:
        if not group_by:
            return []
        if isinstance(group_by, str):
            return [group_by]
        return [name for name in group_by if name]

    @staticmethod
    def _normalize_add_ons(add_ons: Optional[AddOns]) -> List[EventAddOn]:
        if add_ons is None:
            return []
        if isinstance(add_ons, EventAddOn):
            return [add_ons]
        return list(add_ons)

    @staticmethod
    def _prepare_event(event: Any, add_ons: Sequence[EventAddOn]) -> Dict[str, Any]:
        """
        Turn a user object into the JSON event sent to the API.

        - dicts are deep-copied, dataclass instances converted with asdict()
        - ensures a `keen` object exists (ValidationError if `keen` is not one)
        - attaches add-ons under keen.addons
        - sets keen.timestamp to the current UTC time unless already set
        """
        if isinstance(event, Mapping):
            payload = copy.deepcopy(dict(event))
        elif dataclasses.is_dataclass(event) and not isinstance(event, type):
            payload = dataclasses.asdict(event)
        else:
            raise ValidationError(
                "event must be a mapping or a dataclass instance",
                details={"provided": type(event).__name__}
            )

        keen = payload.setdefault("keen", {})
        if not isinstance(keen, dict):
            raise ValidationError(
                "The 'keen' property of an event must be an object",
                details={"provided": type(keen).__name__}
            )

        if add_ons:
            keen["addons"] = [add_on.to_json() for add_on in add_ons]

        if "timestamp" not in keen:
            keen["timestamp"] = datetime.now(dt_timezone.utc).isoformat()

        return payload
