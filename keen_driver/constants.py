"""
Keen IO REST API constants (API version 3.0).

URL layout: {base_url}projects/{project_id}/{resource}/{feature}?{query}
"""

DEFAULT_BASE_URL = "https://api.keen.io/3.0/"

# Resources
EVENTS_RESOURCE = "events"
QUERIES_RESOURCE = "queries"
SAVED_QUERIES_RESOURCE = "saved_queries"

# Query features (path segment after /queries)
QUERY_COUNT = "count"
QUERY_COUNT_UNIQUE = "count_unique"
QUERY_MINIMUM = "minimum"
QUERY_MAXIMUM = "maximum"
QUERY_AVERAGE = "average"
QUERY_SUM = "sum"
QUERY_SELECT_UNIQUE = "select_unique"
QUERY_EXTRACTION = "extraction"
QUERY_FUNNEL = "funnel"
QUERY_MULTI_ANALYSIS = "multi_analysis"

# Query string parameter names
PARAM_EVENT_COLLECTION = "event_collection"
PARAM_TARGET_PROPERTY = "target_property"
PARAM_TIMEFRAME = "timeframe"
PARAM_GROUP_BY = "group_by"
PARAM_INTERVAL = "interval"
PARAM_TIMEZONE = "timezone"
PARAM_FILTERS = "filters"
PARAM_LATEST = "latest"
PARAM_STEPS = "steps"
PARAM_ANALYSES = "analyses"

# Response JSON nodes
NODE_RESULT = "result"
NODE_VALUE = "value"
NODE_TIMEFRAME = "timeframe"
NODE_ERROR_CODE = "error_code"
NODE_MESSAGE = "message"

# Collection name rules
MAX_COLLECTION_NAME_LENGTH = 64
