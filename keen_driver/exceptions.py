"""
Keen Driver Exception Hierarchy

Structured exceptions for clear error handling by callers.
Each exception carries a message plus a details dict for programmatic handling.
"""

from typing import Dict, Any, Optional


class DriverError(Exception):
    """Base exception for all driver errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self):
        """Return descriptive error message"""
        return f"{self.__class__.__name__}: {self.message}"


class AuthenticationError(DriverError):
    """
    Missing or rejected project credentials.

    Caller should:
    - Check KEEN_PROJECT_ID is set
    - Use the right key for the operation (master / read / write)
    """
    pass


class ConnectionError(DriverError):
    """
    Cannot reach API (network issue, API down, wrong base URL),
    or the API answered with something that is not JSON.
    """
    pass


class ObjectNotFoundError(DriverError):
    """
    Requested collection or saved query doesn't exist.

    Caller should:
    - Call list_objects() to see which collections exist
    - Check collection name spelling
    """
    pass


class RateLimitError(DriverError):
    """
    API rate limit exceeded (HTTP 429).

    details["retry_after"] holds the server hint in seconds.
    """
    pass


class ValidationError(DriverError):
    """
    Invalid input, rejected either locally or by the API (HTTP 400).

    Caller should:
    - Check collection name rules (<= 64 ASCII chars, no '$', no leading '_')
    - Check required query arguments (target_property, steps, analyses)
    """
    pass


class TimeoutError(DriverError):
    """
    Request timed out.

    Caller should:
    - Increase timeout parameter
    - Narrow the timeframe or lower `latest` for extractions
    """
    pass


class PayloadSizeError(DriverError):
    """Request payload exceeds API size limit (HTTP 413)."""
    pass


class OperationFailureError(DriverError):
    """
    The API answered 2xx but the JSON envelope carries an error_code.

    details holds "error_code", "api_message" and "operation" (request URL).
    """

    @property
    def error_code(self) -> Optional[str]:
        return self.details.get("error_code")
