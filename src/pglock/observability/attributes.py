"""
Standard span attributes for pglock.

These follow OpenTelemetry semantic conventions where applicable.

Example:
    >>> from pglock.observability.attributes import ATTR_LOCK_KEY, ATTR_LOCK_NAME
    >>>
    >>> with tracer.span(
    ...     "pglock.lock.acquire",
    ...     {ATTR_LOCK_NAME: "nightly-report", ATTR_LOCK_KEY: -2077502800},
    ... ):
    ...     pass
"""

# =============================================================================
# Lock Attributes
# =============================================================================

ATTR_LOCK_NAME = "pglock.lock.name"
"""Lock name as given by the caller (string)."""

ATTR_LOCK_NAMESPACE = "pglock.lock.namespace"
"""First half of the advisory key (integer)."""

ATTR_LOCK_KEY = "pglock.lock.key"
"""Second half of the advisory key, derived from the name (integer)."""

ATTR_LOCK_MODE = "pglock.lock.mode"
"""Lock scope: 'session' or 'transaction' (string)."""

ATTR_LOCK_ATTEMPTS = "pglock.lock.attempts"
"""Maximum acquisition attempts (integer)."""

ATTR_LOCK_ACQUIRED = "pglock.lock.acquired"
"""Whether the lock was acquired (boolean)."""

ATTR_LOCK_TTL = "pglock.lock.ttl"
"""Critical-section deadline in seconds, 0 when disabled (float)."""

# =============================================================================
# Database Attributes (OTEL semantic)
# =============================================================================

ATTR_DB_SYSTEM = "db.system"
"""Database system identifier (e.g., 'postgresql')."""

__all__ = [
    "ATTR_DB_SYSTEM",
    "ATTR_LOCK_ACQUIRED",
    "ATTR_LOCK_ATTEMPTS",
    "ATTR_LOCK_KEY",
    "ATTR_LOCK_MODE",
    "ATTR_LOCK_NAME",
    "ATTR_LOCK_NAMESPACE",
    "ATTR_LOCK_TTL",
]
