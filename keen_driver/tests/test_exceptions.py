"""
Test suite for Keen driver exceptions.

Tests:
- Exception hierarchy and inheritance
- Exception initialization and attributes
- Error message formatting
- Structured error details
"""

import pytest
from keen_driver import (
    DriverError,
    AuthenticationError,
    ConnectionError,
    ObjectNotFoundError,
    OperationFailureError,
    RateLimitError,
    ValidationError,
    TimeoutError,
    PayloadSizeError
)


class TestDriverErrorBase:
    """Test base DriverError exception."""

    def test_driver_error_creation(self):
        error = DriverError("Test error message")
        assert error.message == "Test error message"
        assert error.details == {}

    def test_driver_error_with_details(self):
        details = {"status_code": 500, "context": "Queries API"}
        error = DriverError("Server error", details=details)
        assert error.details == details

    def test_driver_error_string_representation(self):
        assert str(DriverError("Test error")) == "DriverError: Test error"

    def test_subclass_string_representation(self):
        error = AuthenticationError("This operation requires the master key")
        assert str(error) == "AuthenticationError: This operation requires the master key"


class TestOperationFailureError:
    """Test OperationFailureError exception."""

    def test_error_code_from_details(self):
        error = OperationFailureError(
            "InvalidPropertyNameError: bad name",
            details={
                "error_code": "InvalidPropertyNameError",
                "api_message": "bad name",
                "operation": "https://api.keen.io/3.0/projects/p/queries/count"
            }
        )
        assert error.error_code == "InvalidPropertyNameError"
        assert error.details["api_message"] == "bad name"

    def test_error_code_missing(self):
        assert OperationFailureError("failed").error_code is None


class TestRateLimitError:
    """Test RateLimitError exception."""

    def test_rate_limit_error_retry_after_extraction(self):
        error = RateLimitError("Rate limited", details={"retry_after": 120, "status_code": 429})
        assert error.details.get("retry_after") == 120
        assert error.details.get("status_code") == 429


class TestExceptionHierarchy:
    """Test exception hierarchy and relationships."""

    def test_all_exceptions_inherit_from_driver_error(self):
        exceptions = [
            AuthenticationError("test"),
            ConnectionError("test"),
            ObjectNotFoundError("test"),
            OperationFailureError("test"),
            RateLimitError("test"),
            ValidationError("test"),
            TimeoutError("test"),
            PayloadSizeError("test")
        ]

        for exc in exceptions:
            assert isinstance(exc, DriverError)
            assert isinstance(exc, Exception)

    def test_driver_errors_do_not_shadow_builtins(self):
        """ConnectionError / TimeoutError are driver types, not the builtins."""
        assert not issubclass(ConnectionError, OSError)
        assert not issubclass(TimeoutError, OSError)

    def test_exception_catching_by_base_class(self):
        try:
            raise ValidationError("Invalid event collection name '$bad'")
        except DriverError as e:
            assert isinstance(e, ValidationError)


class TestExceptionUsagePatterns:
    """Test common exception usage patterns."""

    def test_catching_specific_exception(self):
        with pytest.raises(PayloadSizeError):
            raise PayloadSizeError("Request payload too large", details={"status_code": 413})

    def test_exception_context_preservation(self):
        try:
            try:
                raise ConnectionError("Network error")
            except ConnectionError as e:
                raise TimeoutError(f"Failed after: {e.message}") from e
        except TimeoutError as e:
            assert "Network error" in e.message
            assert e.__cause__ is not None
