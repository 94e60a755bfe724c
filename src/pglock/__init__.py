"""
pglock - PostgreSQL advisory locks for Python.

Serializes access to a named resource across processes and hosts that share
a PostgreSQL database, without a dedicated lock service.

This library provides:
- ``PgLock``: retrying acquisition, TTL-bounded critical sections and
  guaranteed release
- Session-scoped and transaction-scoped advisory locks
- An in-memory backend for tests and single-process use

Example:
    >>> from sqlalchemy import create_engine
    >>> from pglock import PgLock, UnableToLockError
    >>>
    >>> engine = create_engine("postgresql+psycopg://localhost/app")
    >>> with engine.connect() as conn:
    ...     try:
    ...         PgLock(name="nightly-report", connection=conn).lock_or_raise(
    ...             lambda lock: build_report()
    ...         )
    ...     except UnableToLockError:
    ...         print("another worker is building the report")
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pglock-py")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from pglock.config import (
    LockConfig,
    LockDefaults,
    LockEvent,
    LockLogCallback,
    LockMode,
    LockOutcome,
)
from pglock.connection import (
    AdvisoryLockConnection,
    SQLAlchemyAdvisoryConnection,
    advisory_connection,
)
from pglock.deadline import Deadline, DeadlineExceeded, run_with_deadline
from pglock.exceptions import (
    CriticalSectionTimeoutError,
    InvalidLockConfigError,
    MissingConnectionError,
    PgLockError,
    UnableToLock,
    UnableToLockError,
)
from pglock.in_memory import InMemoryAdvisoryLocks, InMemoryConnection
from pglock.keys import LOCK_NAMESPACE, lock_key
from pglock.locket import Locket
from pglock.session import PgLock

__all__ = [
    "__version__",
    # Lock session
    "PgLock",
    "Locket",
    # Keys
    "LOCK_NAMESPACE",
    "lock_key",
    # Configuration
    "LockConfig",
    "LockDefaults",
    "LockEvent",
    "LockLogCallback",
    "LockMode",
    "LockOutcome",
    # Connections
    "AdvisoryLockConnection",
    "SQLAlchemyAdvisoryConnection",
    "advisory_connection",
    "InMemoryAdvisoryLocks",
    "InMemoryConnection",
    # Deadlines
    "Deadline",
    "DeadlineExceeded",
    "run_with_deadline",
    # Exceptions
    "PgLockError",
    "UnableToLockError",
    "UnableToLock",
    "CriticalSectionTimeoutError",
    "MissingConnectionError",
    "InvalidLockConfigError",
]
