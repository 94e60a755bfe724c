"""
Integration tests for the pglock library.

These tests require an actual PostgreSQL instance, provisioned through
testcontainers.

Tests are skipped automatically if required infrastructure is not available.

Run integration tests:
    pytest tests/integration/ -v

Skip integration tests:
    pytest tests/ -v -m "not integration"
"""
