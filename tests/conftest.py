"""
Shared pytest fixtures for the pglock library tests.

This module provides:
- Sample data fixtures (lock_name)
- In-memory backend fixtures (advisory_locks, connection, other_connection)
- Lock fixtures with fast retry settings (fast_lock)
- Log capture fixtures (event_log)
- Tracing fixtures (mock_tracer)
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any
from uuid import uuid4

import pytest

from pglock import InMemoryAdvisoryLocks, InMemoryConnection, LockEvent, PgLock
from pglock.observability import MockTracer

# ============================================================================
# OpenTelemetry SDK Availability Check
# ============================================================================

OTEL_SDK_AVAILABLE = False
try:
    from opentelemetry.sdk.trace import TracerProvider
    from opentelemetry.sdk.trace.export import SimpleSpanProcessor
    from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

    OTEL_SDK_AVAILABLE = True
except ImportError:
    TracerProvider = None  # type: ignore[assignment, misc]
    SimpleSpanProcessor = None  # type: ignore[assignment, misc]
    InMemorySpanExporter = None  # type: ignore[assignment, misc]


skip_if_no_otel_sdk = pytest.mark.skipif(
    not OTEL_SDK_AVAILABLE, reason="opentelemetry-sdk not installed"
)


# =============================================================================
# Sample Data Fixtures
# =============================================================================


@pytest.fixture
def lock_name() -> str:
    """
    Provide a unique lock name.

    Returns:
        A name that no other test uses, so PostgreSQL-backed tests never
        contend across test cases.
    """
    return f"pglock-test:{uuid4()}"


# =============================================================================
# In-Memory Backend Fixtures
# =============================================================================


@pytest.fixture
def advisory_locks() -> InMemoryAdvisoryLocks:
    """Provide a fresh in-memory advisory lock table."""
    return InMemoryAdvisoryLocks()


@pytest.fixture
def connection(advisory_locks: InMemoryAdvisoryLocks) -> InMemoryConnection:
    """Provide a connection (database session) on the in-memory table."""
    return advisory_locks.connect()


@pytest.fixture
def other_connection(advisory_locks: InMemoryAdvisoryLocks) -> InMemoryConnection:
    """Provide a second, independent session on the same in-memory table."""
    return advisory_locks.connect()


# =============================================================================
# Lock Fixtures
# =============================================================================


@pytest.fixture
def event_log() -> list[LockEvent]:
    """Provide a list that a log callback can append lock events to."""
    return []


@pytest.fixture
def mock_tracer() -> MockTracer:
    """Provide a tracer that records spans."""
    return MockTracer()


@pytest.fixture
def fast_lock(
    lock_name: str,
    connection: InMemoryConnection,
) -> Callable[..., PgLock]:
    """
    Factory for locks on the in-memory connection with no retry delay.

    Usage:
        def test_something(fast_lock):
            lock = fast_lock(attempts=2, ttl=0)
    """

    def _make(name: str | None = None, **overrides: Any) -> PgLock:
        options: dict[str, Any] = {
            "connection": connection,
            "attempt_interval": 0,
            "enable_tracing": False,
        }
        options.update(overrides)
        return PgLock(name or lock_name, **options)

    return _make
