"""
Configuration and value types for pglock.

Example:
    >>> from pglock import PgLock
    >>> from pglock.config import LockConfig, LockDefaults
    >>>
    >>> config = LockConfig(name="nightly-report", attempts=5, ttl=30)
    >>> defaults = LockDefaults(connection_factory=engine.connect, log=print)
    >>> with PgLock.from_config(config, defaults=defaults) as pg_lock:
    ...     pg_lock.lock(build_report)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal, TypedDict

from pglock.exceptions import InvalidLockConfigError


class LockMode(Enum):
    """How long an acquired advisory lock is held."""

    SESSION = "session"
    """Held until explicitly released or the connection closes."""

    TRANSACTION = "transaction"
    """Held until the enclosing transaction commits or rolls back."""


class LockEvent(TypedDict, total=False):
    """
    Payload delivered to a lock's log callback.

    Keys:
        at: Which step emitted the event
        attempt: Zero-based attempt index (acquisition events only)
        args: The ``(namespace, key)`` pair of the advisory lock
        exception: The exception being reported (``exception`` events only)
        pg_lock: Always True, so shared sinks can filter lock events
    """

    at: Literal["create", "create_transaction_lock", "delete", "exception"]
    attempt: int
    args: tuple[int, int]
    exception: BaseException
    pg_lock: bool


LockLogCallback = Callable[[LockEvent], Any]


@dataclass(frozen=True)
class LockConfig:
    """
    Settings for one logical lock.

    Attributes:
        name: Lock identity; any object with a string form, including None
            and the empty string (required)
        attempts: Maximum acquisition attempts; values below 1 mean 1 (default: 3)
        attempt_interval: Seconds to sleep between attempts (default: 1.0)
        ttl: Seconds the critical section may run; 0 or None disables (default: 60.0)
        return_result: Surface the critical section's return value instead
            of True on success (default: True)
    """

    name: Any
    attempts: int = 3
    attempt_interval: float = 1.0
    ttl: float | None = 60.0
    return_result: bool = True

    def __post_init__(self) -> None:
        """Validate ranges and normalize a missing ttl to 0."""
        if self.attempt_interval < 0:
            raise InvalidLockConfigError(
                "attempt_interval", self.attempt_interval, "must not be negative"
            )
        if self.ttl is None:
            object.__setattr__(self, "ttl", 0)
        elif self.ttl < 0:
            raise InvalidLockConfigError("ttl", self.ttl, "must not be negative")

    @property
    def max_attempts(self) -> int:
        """Number of attempts actually made, never less than one."""
        return max(self.attempts, 1)


@dataclass
class LockDefaults:
    """
    Fallbacks used when a lock is built without a connection or log callback.

    Attributes:
        connection_factory: Called once per lock when no connection is passed.
            The lock owns the returned connection and closes it in
            ``PgLock.close()``, so the factory must return a new connection
        log: Log callback used when none is passed
    """

    connection_factory: Callable[[], Any] | None = None
    log: LockLogCallback | None = None

    def resolve_connection(self, connection: Any | None) -> Any | None:
        """Return ``connection``, or one from the factory when it is None."""
        if connection is not None:
            return connection
        if self.connection_factory is None:
            return None
        return self.connection_factory()

    def resolve_log(self, log: LockLogCallback | None) -> LockLogCallback | None:
        """Return ``log``, or the default callback when it is None."""
        return log if log is not None else self.log


@dataclass(frozen=True)
class LockOutcome:
    """
    Result of running a critical section under a lock.

    Separates "the section returned None" from "the lock was never held".

    Attributes:
        acquired: Whether the lock was held
        value: What the lock call should return on success
    """

    acquired: bool
    value: Any = None

    @classmethod
    def held(cls, value: Any) -> LockOutcome:
        return cls(acquired=True, value=value)

    @classmethod
    def not_acquired(cls) -> LockOutcome:
        return cls(acquired=False)


__all__ = [
    "LockConfig",
    "LockDefaults",
    "LockEvent",
    "LockLogCallback",
    "LockMode",
    "LockOutcome",
]
