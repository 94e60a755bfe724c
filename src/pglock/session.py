"""
PostgreSQL advisory lock sessions.

``PgLock`` runs one logical lock lifecycle on a borrowed connection: a
bounded, fixed-interval retry loop to acquire the lock, an optional critical
section run under a TTL deadline, and a release that happens on every exit
path.

Usage:
    >>> from pglock import PgLock
    >>>
    >>> with engine.connect() as conn:
    ...     result = PgLock(name="nightly-report", connection=conn).lock(build_report)
    ...     if result is False:
    ...         print("another worker is building the report")
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any, Literal

from pglock.config import (
    LockConfig,
    LockDefaults,
    LockEvent,
    LockLogCallback,
    LockMode,
    LockOutcome,
)
from pglock.connection import advisory_connection
from pglock.deadline import Deadline, DeadlineExceeded
from pglock.exceptions import (
    CriticalSectionTimeoutError,
    MissingConnectionError,
    UnableToLockError,
)
from pglock.keys import LOCK_NAMESPACE, lock_key
from pglock.locket import Locket
from pglock.observability import Tracer, create_tracer
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

logger = logging.getLogger(__name__)


class PgLock:
    """
    One named advisory lock and the policy for taking it.

    The lock name is hashed to a 32-bit key (``pglock.keys.lock_key``) and
    paired with ``LOCK_NAMESPACE``. Independent ``PgLock`` instances using the
    same name on the same database exclude each other.

    A ``PgLock`` wraps a single connection and must not be used from several
    threads at once. A connection passed in is borrowed and never closed here;
    one obtained from ``defaults.connection_factory`` belongs to the lock and
    is closed by ``close()`` or by leaving a ``with`` block.

    Args:
        name: Lock identity; any object with a string form
        attempts: Maximum acquisition attempts, at least one is always made
        attempt_interval: Seconds to sleep between failed attempts
        ttl: Seconds the critical section may run; 0 or None disables
        connection: SQLAlchemy ``Connection`` or ``AdvisoryLockConnection``
            (borrowed)
        log: Callback receiving a ``LockEvent`` dict for each lock step
        return_result: Return the critical section's value (True) or a plain
            True (False) on success
        defaults: Fallback connection factory and log callback
        tracer: Optional custom Tracer instance
        enable_tracing: Whether to create an OpenTelemetry tracer when no
            tracer is given

    Raises:
        MissingConnectionError: If no connection is given or resolvable
        InvalidLockConfigError: If a setting is out of range

    Example:
        >>> lock = PgLock(name="sync-accounts", connection=conn, attempts=5, ttl=30)
        >>> lock.lock(sync_accounts)          # result, or False if never acquired
        >>> lock.lock_or_raise(sync_accounts)  # result, or raises UnableToLockError
    """

    def __init__(
        self,
        name: Any,
        *,
        attempts: int = 3,
        attempt_interval: float = 1.0,
        ttl: float | None = 60.0,
        connection: Any | None = None,
        log: LockLogCallback | None = None,
        return_result: bool = True,
        defaults: LockDefaults | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> None:
        self.config = LockConfig(
            name=name,
            attempts=attempts,
            attempt_interval=attempt_interval,
            ttl=ttl,
            return_result=return_result,
        )
        defaults = defaults or LockDefaults()

        resolved = defaults.resolve_connection(connection)
        if resolved is None:
            raise MissingConnectionError(name)

        self._log = defaults.resolve_log(log)
        self._tracer = tracer or create_tracer(__name__, enable_tracing)
        self._enable_tracing = self._tracer.enabled
        self.key = lock_key(name)
        self.locket = Locket(advisory_connection(resolved), (LOCK_NAMESPACE, self.key))
        self._connection = resolved
        self._owns_connection = connection is None
        self.closed = False

    @classmethod
    def from_config(
        cls,
        config: LockConfig,
        connection: Any | None = None,
        *,
        log: LockLogCallback | None = None,
        defaults: LockDefaults | None = None,
        tracer: Tracer | None = None,
        enable_tracing: bool = True,
    ) -> PgLock:
        """Build a lock from a ``LockConfig``."""
        return cls(
            config.name,
            attempts=config.attempts,
            attempt_interval=config.attempt_interval,
            ttl=config.ttl,
            connection=connection,
            log=log,
            return_result=config.return_result,
            defaults=defaults,
            tracer=tracer,
            enable_tracing=enable_tracing,
        )

    @property
    def name(self) -> Any:
        return self.config.name

    @property
    def max_attempts(self) -> int:
        return self.config.max_attempts

    @property
    def attempt_interval(self) -> float:
        return self.config.attempt_interval

    @property
    def ttl(self) -> float:
        return self.config.ttl or 0

    @property
    def return_result(self) -> bool:
        return self.config.return_result

    # ------------------------------------------------------------------
    # Guarded execution
    # ------------------------------------------------------------------

    def lock(self, critical_section: Callable[[], Any] | None = None) -> Any:
        """
        Run ``critical_section`` while holding the lock.

        The lock is released when the section returns, raises, or runs past
        the TTL.

        Args:
            critical_section: Zero-argument callable (optional)

        Returns:
            The section's return value (or True when ``return_result`` is
            off), or False if the lock could not be acquired

        Raises:
            CriticalSectionTimeoutError: If the section outlived the TTL
        """
        outcome = self._run_locked(critical_section)
        if not outcome.acquired:
            return False
        return outcome.value

    def lock_or_raise(
        self,
        critical_section: Callable[[PgLock], Any] | None = None,
        error_class: type[Exception] = UnableToLockError,
    ) -> Any:
        """
        Like ``lock()``, but failing to acquire raises.

        The critical section receives this ``PgLock``.

        Args:
            critical_section: Callable taking the lock (optional)
            error_class: Raised as ``error_class(name=..., attempts=...)``
                when every attempt fails

        Returns:
            The section's return value, or True when ``return_result`` is off

        Raises:
            UnableToLockError: Or ``error_class``, if the lock was not acquired
            CriticalSectionTimeoutError: If the section outlived the TTL
        """
        outcome = self._run_locked(critical_section, self)
        if not outcome.acquired:
            raise error_class(name=self.name, attempts=self.max_attempts)
        return outcome.value

    @contextmanager
    def held(self, error_class: type[Exception] = UnableToLockError) -> Iterator[PgLock]:
        """
        Hold the lock for the duration of a ``with`` block.

        The body runs in the caller's frame, so the TTL is not enforced.

        Raises:
            UnableToLockError: Or ``error_class``, if the lock was not acquired

        Example:
            >>> with PgLock(name="rebuild-index", connection=conn).held():
            ...     rebuild_index()
        """
        try:
            if not self.create():
                raise error_class(name=self.name, attempts=self.max_attempts)
            yield self
        finally:
            if self.locket.acquired:
                self.delete()

    def lock_for_transaction(self) -> PgLock | Literal[False]:
        """
        Take a transaction-scoped lock on the connection's open transaction.

        There is no explicit release: the lock ends with the transaction.

        Returns:
            This lock, or False if not acquired (always False outside a
            transaction)
        """
        return self.create_transaction_lock()

    def lock_for_transaction_or_raise(
        self,
        error_class: type[Exception] = UnableToLockError,
    ) -> PgLock:
        """Like ``lock_for_transaction()``, but failing to acquire raises."""
        acquired = self.create_transaction_lock()
        if not acquired:
            raise error_class(name=self.name, attempts=self.max_attempts)
        return acquired

    # ------------------------------------------------------------------
    # Acquire / release
    # ------------------------------------------------------------------

    def create(self) -> PgLock | Literal[False]:
        """
        Acquire a session-scoped lock, retrying up to ``max_attempts`` times.

        Returns:
            This lock if acquired, False otherwise
        """
        return self._acquire(self.locket.lock, LockMode.SESSION, "create")

    def create_transaction_lock(self) -> PgLock | Literal[False]:
        """Acquire a transaction-scoped lock, retrying up to ``max_attempts`` times."""
        return self._acquire(
            self.locket.lock_for_transaction,
            LockMode.TRANSACTION,
            "create_transaction_lock",
        )

    def delete(self) -> None:
        """
        Release the lock and emit a ``delete`` event.

        Database errors from the release propagate. An exception raised by
        the log callback while recording the release is reported to that same
        callback as an ``exception`` event; if the callback raises again, that
        exception propagates.
        """
        with self._tracer.span("pglock.lock.release", self._span_attributes(self.locket.mode)):
            self.locket.unlock()
            logger.debug(
                "Released advisory lock: name=%s, key=%d",
                self.name,
                self.key,
                extra={"lock_name": str(self.name), "lock_key": self.key},
            )
            try:
                self._emit({"at": "delete", "args": self.locket.args})
            except Exception as e:
                logger.warning(
                    "Lock log callback failed on release: name=%s, error=%s",
                    self.name,
                    e,
                )
                self._emit({"at": "exception", "exception": e})

    def acquired(self) -> bool:
        """Whether this lock is currently held through this instance."""
        return self.locket.active()

    has_lock = acquired

    def close(self) -> None:
        """
        Release a held session lock and close the connection if this lock owns it.

        Borrowed connections are left open. Safe to call more than once.
        """
        if self.closed:
            return
        try:
            if self.locket.acquired and self.locket.mode is LockMode.SESSION:
                self.delete()
        finally:
            self.closed = True
            if self._owns_connection:
                logger.debug("Closing lock-owned connection: name=%s", self.name)
                self._connection.close()

    def __enter__(self) -> PgLock:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _acquire(
        self,
        attempt_lock: Callable[[], bool],
        mode: LockMode,
        event: Literal["create", "create_transaction_lock"],
    ) -> PgLock | Literal[False]:
        with self._tracer.span("pglock.lock.acquire", self._span_attributes(mode)) as span:
            for attempt in range(self.max_attempts):
                if attempt_lock():
                    logger.debug(
                        "Acquired advisory lock: name=%s, key=%d, mode=%s, attempt=%d",
                        self.name,
                        self.key,
                        mode.value,
                        attempt,
                        extra={
                            "lock_name": str(self.name),
                            "lock_key": self.key,
                            "attempt": attempt,
                        },
                    )
                    if span is not None:
                        span.set_attribute(ATTR_LOCK_ACQUIRED, True)
                    self._emit({"at": event, "attempt": attempt, "args": self.locket.args})
                    return self

                if attempt + 1 == self.max_attempts:
                    break
                logger.debug(
                    "Advisory lock busy, retrying: name=%s, attempt=%d, interval=%s",
                    self.name,
                    attempt,
                    self.attempt_interval,
                )
                time.sleep(self.attempt_interval)

            logger.debug(
                "Gave up on advisory lock: name=%s, key=%d, attempts=%d",
                self.name,
                self.key,
                self.max_attempts,
            )
            if span is not None:
                span.set_attribute(ATTR_LOCK_ACQUIRED, False)
            return False

    def _run_locked(self, critical_section: Callable[..., Any] | None, *args: Any) -> LockOutcome:
        try:
            if not self.create():
                return LockOutcome.not_acquired()
            result = None
            if critical_section is not None:
                result = self._run_critical_section(critical_section, *args)
            return LockOutcome.held(result if self.return_result else True)
        except BaseException as e:
            if self.locket.acquired:
                self._release_after_error(e)
            raise
        finally:
            if self.locket.acquired:
                self.delete()

    def _release_after_error(self, error: BaseException) -> None:
        try:
            self.delete()
        except Exception as release_error:
            # e.g. unlock inside a transaction PostgreSQL already marked failed
            logger.error(
                "Failed to release advisory lock after error in critical section: "
                "name=%s, key=%d, error=%r, release_error=%r",
                self.name,
                self.key,
                error,
                release_error,
            )
            release_error.add_note(
                f"Raised while releasing lock {self.name!r} after {error!r}; the lock may "
                "stay held until the connection closes"
            )
            raise

    def _run_critical_section(self, critical_section: Callable[..., Any], *args: Any) -> Any:
        deadline = Deadline(self.ttl)
        try:
            return deadline.run(critical_section, *args)
        except DeadlineExceeded as e:
            if e.deadline is not deadline:
                # An enclosing lock's deadline
                raise
            logger.warning(
                "Critical section exceeded ttl: name=%s, ttl=%ss",
                self.name,
                self.ttl,
            )
            raise CriticalSectionTimeoutError(self.name, self.ttl) from None

    def _emit(self, event: LockEvent) -> None:
        if self._log is None:
            return
        event["pg_lock"] = True
        self._log(event)

    def _span_attributes(self, mode: LockMode) -> dict[str, Any]:
        return {
            ATTR_DB_SYSTEM: "postgresql",
            ATTR_LOCK_NAME: str(self.name),
            ATTR_LOCK_NAMESPACE: LOCK_NAMESPACE,
            ATTR_LOCK_KEY: self.key,
            ATTR_LOCK_MODE: mode.value,
            ATTR_LOCK_ATTEMPTS: self.max_attempts,
            ATTR_LOCK_TTL: self.ttl,
        }

    def __repr__(self) -> str:
        return f"PgLock(name={self.name!r}, key={self.key}, acquired={self.locket.acquired})"


__all__ = ["PgLock"]
