"""
Shared pytest fixtures for integration tests.

This module provides fixtures for PostgreSQL test infrastructure using
testcontainers for automatic container management.

If testcontainers or Docker is not available, tests are automatically skipped.
"""

from __future__ import annotations

from collections.abc import Generator
from typing import TYPE_CHECKING, Any

import pytest

if TYPE_CHECKING:
    from sqlalchemy.engine import Connection, Engine


# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for integration tests."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (may require docker)"
    )
    config.addinivalue_line("markers", "postgres: marks tests that require PostgreSQL")


# ============================================================================
# Testcontainers Detection
# ============================================================================

TESTCONTAINERS_AVAILABLE = False

try:
    from testcontainers.postgres import PostgresContainer

    TESTCONTAINERS_AVAILABLE = True
except ImportError:
    PostgresContainer = None  # type: ignore[assignment, misc]


def is_docker_available() -> bool:
    """Check if Docker is available for running containers."""
    import subprocess

    try:
        result = subprocess.run(
            ["docker", "info"],
            capture_output=True,
            timeout=5,
        )
        return result.returncode == 0
    except (subprocess.TimeoutExpired, OSError):
        return False


DOCKER_AVAILABLE = is_docker_available()


# ============================================================================
# Skip Conditions
# ============================================================================

skip_if_no_postgres_infra = pytest.mark.skipif(
    not (TESTCONTAINERS_AVAILABLE and DOCKER_AVAILABLE),
    reason="PostgreSQL test infrastructure not available",
)


# ============================================================================
# PostgreSQL Fixtures
# ============================================================================


@pytest.fixture(scope="session")
def postgres_container() -> Generator[Any, None, None]:
    """
    Provide PostgreSQL container for integration tests.

    Uses testcontainers to automatically start and stop a PostgreSQL container.
    Container is shared across all tests in the session for efficiency.
    """
    if not TESTCONTAINERS_AVAILABLE or not DOCKER_AVAILABLE:
        pytest.skip("PostgreSQL testcontainer not available")

    container = PostgresContainer("postgres:15", driver="psycopg")
    container.start()

    yield container

    container.stop()


@pytest.fixture(scope="session")
def postgres_connection_url(postgres_container: Any) -> str:
    """Get PostgreSQL connection URL from container."""
    url = postgres_container.get_connection_url()
    # Older testcontainers releases ignore ``driver`` and hand back psycopg2
    return url.replace("postgresql://", "postgresql+psycopg://").replace("psycopg2", "psycopg")


@pytest.fixture(scope="session")
def postgres_engine(postgres_connection_url: str) -> Generator[Engine, None, None]:
    """Provide a SQLAlchemy engine connected to the PostgreSQL container."""
    from sqlalchemy import create_engine

    engine = create_engine(postgres_connection_url, echo=False, pool_size=5, max_overflow=10)

    yield engine

    engine.dispose()


@pytest.fixture
def pg_connection(postgres_engine: Engine) -> Generator[Connection, None, None]:
    """Provide a connection (database session) that is closed after the test."""
    with postgres_engine.connect() as conn:
        yield conn


@pytest.fixture
def other_pg_connection(postgres_engine: Engine) -> Generator[Connection, None, None]:
    """Provide a second, independent database session."""
    with postgres_engine.connect() as conn:
        yield conn
