"""Library exceptions for the pglock package."""

from __future__ import annotations

from typing import Any


class PgLockError(Exception):
    """Base exception for pglock library."""

    pass


class UnableToLockError(PgLockError):
    """
    Raised when a lock could not be acquired within the allowed attempts.

    Attributes:
        name: The lock name that could not be acquired
        attempts: How many acquisition attempts were made
    """

    def __init__(self, name: Any, attempts: int) -> None:
        self.name = name
        self.attempts = attempts
        super().__init__(f"Was unable to acquire a lock {name!r} after {attempts} attempts")


UnableToLock = UnableToLockError


class CriticalSectionTimeoutError(PgLockError, TimeoutError):
    """
    Raised when a critical section outlives the lock's TTL.

    The lock has already been released by the time this propagates.

    Attributes:
        name: The lock name
        ttl: The deadline in seconds that was exceeded
    """

    def __init__(self, name: Any, ttl: float) -> None:
        self.name = name
        self.ttl = ttl
        super().__init__(f"Critical section for lock {name!r} exceeded ttl of {ttl}s")


class MissingConnectionError(PgLockError, ValueError):
    """Raised when no connection was given and no default could be resolved."""

    def __init__(self, name: Any) -> None:
        self.name = name
        super().__init__(f"Must provide a valid connection object for lock {name!r}")


class InvalidLockConfigError(PgLockError, ValueError):
    """Raised when lock configuration values are out of range."""

    def __init__(self, field: str, value: Any, message: str) -> None:
        self.field = field
        self.value = value
        super().__init__(f"Invalid {field}={value!r}: {message}")


__all__ = [
    "CriticalSectionTimeoutError",
    "InvalidLockConfigError",
    "MissingConnectionError",
    "PgLockError",
    "UnableToLock",
    "UnableToLockError",
]
