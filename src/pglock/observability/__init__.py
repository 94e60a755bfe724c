"""
Observability utilities for pglock.

Provides the tracer abstraction injected into ``PgLock`` and the standard
span attribute names used by lock spans.

Note:
    OpenTelemetry is an optional dependency. All utilities in this module
    gracefully handle the case where OpenTelemetry is not installed.
"""

from pglock.observability.attributes import (
    ATTR_DB_SYSTEM,
    ATTR_LOCK_ACQUIRED,
    ATTR_LOCK_ATTEMPTS,
    ATTR_LOCK_KEY,
    ATTR_LOCK_MODE,
    ATTR_LOCK_NAME,
    ATTR_LOCK_NAMESPACE,
    ATTR_LOCK_TTL,
)
from pglock.observability.tracer import (
    OTEL_AVAILABLE,
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    "OTEL_AVAILABLE",
    # Tracers
    "MockTracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "Tracer",
    "create_tracer",
    # Attributes
    "ATTR_DB_SYSTEM",
    "ATTR_LOCK_ACQUIRED",
    "ATTR_LOCK_ATTEMPTS",
    "ATTR_LOCK_KEY",
    "ATTR_LOCK_MODE",
    "ATTR_LOCK_NAME",
    "ATTR_LOCK_NAMESPACE",
    "ATTR_LOCK_TTL",
]
