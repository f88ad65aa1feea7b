"""
Test suite for Keen driver.

Tests are organized into:
- test_client.py - Main driver functionality tests
- test_models.py - Query value types (time frames, intervals, filters)
- test_addons.py - Event add-on tests
- test_results.py - Result flattening helpers
- test_helpers.py - Time zone and time frame helpers
- test_exceptions.py - Exception handling tests
- test_integration.py - Integration and workflow tests
- conftest.py - Pytest fixtures and configuration

Run tests with:
    pytest keen_driver/tests/
    pytest keen_driver/tests/ -v
    pytest keen_driver/tests/ --cov=keen_driver

Test coverage includes:
- Driver initialization and configuration
- URL, query string and Authorization header construction
- API methods (events, schema, queries, saved queries)
- Error handling
- Workflows and integration scenarios
- Exception hierarchy
"""
