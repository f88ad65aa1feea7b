"""
Pytest configuration and shared fixtures for Keen driver tests.

Provides:
- Mock session fixtures (requests are really prepared, never sent)
- Mock API responses
- Test data
- Configuration
"""

import json
import pytest
from unittest.mock import Mock, MagicMock, patch
from typing import Dict, Any
from urllib.parse import urlsplit, parse_qs

import requests


PROJECT_ID = "test_project_id"


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set up mock environment variables."""
    monkeypatch.setenv("KEEN_PROJECT_ID", PROJECT_ID)
    monkeypatch.setenv("KEEN_MASTER_KEY", "test_master_key_12345")
    monkeypatch.setenv("KEEN_READ_KEY", "test_read_key_67890")
    monkeypatch.setenv("KEEN_WRITE_KEY", "test_write_key_24680")
    monkeypatch.setenv("KEEN_TIMEOUT", "30")
    monkeypatch.setenv("KEEN_DEBUG", "false")
    monkeypatch.delenv("KEEN_BASE_URL", raising=False)


@pytest.fixture
def mock_session():
    """Create a mock requests session that prepares requests for real."""
    session = MagicMock()
    session.headers = {}
    session.prepare_request = MagicMock(side_effect=lambda request: request.prepare())
    session.send = MagicMock()
    return session


@pytest.fixture
def keen_client(mock_session):
    """Create a test Keen driver instance with mocked session."""
    from keen_driver import KeenDriver

    with patch.object(KeenDriver, '_create_session', return_value=mock_session):
        client = KeenDriver(
            project_id=PROJECT_ID,
            master_key="test_master_key_12345",
            read_key="test_read_key_67890",
            write_key="test_write_key_24680",
            timeout=30,
            debug=False
        )
        client.session = mock_session
        return client


@pytest.fixture
def make_response():
    """Factory for mock HTTP responses."""

    def _make(json_data=None, status_code=200, content=None, headers=None, text=None):
        response = Mock()
        response.status_code = status_code
        response.headers = headers or {}
        response.json.return_value = json_data
        if content is None:
            content = json.dumps(json_data).encode("utf-8") if json_data is not None else b""
        response.content = content
        response.text = text if text is not None else content.decode("utf-8", "replace")

        if status_code >= 400:
            response.raise_for_status.side_effect = requests.HTTPError(response=response)
        return response

    return _make


@pytest.fixture
def sent_request(keen_client):
    """Return the PreparedRequest passed to the last session.send call."""

    def _sent():
        return keen_client.session.send.call_args[0][0]

    return _sent


@pytest.fixture
def query_params():
    """Decode the query string of a prepared request into a flat dict."""

    def _params(prepared):
        parsed = parse_qs(urlsplit(prepared.url).query, keep_blank_values=True)
        return {key: values[0] for key, values in parsed.items()}

    return _params


@pytest.fixture
def sample_event() -> Dict[str, Any]:
    """Create sample event data for testing."""
    return {
        "item": "golden widget",
        "price": 25.0,
        "user": {"id": "user_123", "ip": "8.8.8.8"},
        "referrer": "https://www.google.com/",
    }


@pytest.fixture
def mock_schema_response() -> list:
    """Mock response from GET /events (all collections)."""
    return [
        {
            "name": "purchases",
            "url": f"/3.0/projects/{PROJECT_ID}/events/purchases",
            "properties": {"item": "string", "price": "num", "keen.timestamp": "datetime"}
        },
        {
            "name": "pageviews",
            "url": f"/3.0/projects/{PROJECT_ID}/events/pageviews",
            "properties": {"url": "string", "keen.timestamp": "datetime"}
        }
    ]


@pytest.fixture
def mock_group_by_response() -> Dict[str, Any]:
    """Mock count response grouped by country."""
    return {
        "result": [
            {"country": "CZ", "result": 12},
            {"country": "DE", "result": 7},
        ]
    }


@pytest.fixture
def mock_interval_group_response() -> Dict[str, Any]:
    """Mock count response with a daily interval and group_by country."""
    return {
        "result": [
            {
                "timeframe": {"start": "2024-03-01T00:00:00.000Z", "end": "2024-03-02T00:00:00.000Z"},
                "value": [{"country": "CZ", "result": 3}, {"country": "DE", "result": 1}]
            },
            {
                "timeframe": {"start": "2024-03-02T00:00:00.000Z", "end": "2024-03-03T00:00:00.000Z"},
                "value": [{"country": "CZ", "result": 5}]
            }
        ]
    }


@pytest.fixture
def mock_extraction_response() -> Dict[str, Any]:
    """Mock response from the extraction endpoint."""
    return {
        "result": [
            {"item": "golden widget", "price": 25.0, "keen": {"timestamp": "2024-03-01T10:00:00.000Z"}},
            {"item": "silver widget", "price": 15.0, "keen": {"timestamp": "2024-03-01T11:00:00.000Z"}},
        ]
    }


@pytest.fixture
def mock_error_envelope() -> Dict[str, Any]:
    """Mock 2xx body carrying an API error code."""
    return {
        "message": "You must specify a target_property.",
        "error_code": "InvalidPropertyNameError"
    }
