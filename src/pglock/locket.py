"""
Low-level handle on a single advisory lock.

A ``Locket`` owns one ``(namespace, key)`` pair on one borrowed connection and
remembers whether it currently believes it holds the lock. It performs no
retries and no logging callbacks; ``PgLock`` builds those on top of it.
"""

from __future__ import annotations

import logging

from pglock.config import LockMode
from pglock.connection import AdvisoryLockConnection

logger = logging.getLogger(__name__)


class Locket:
    """
    Acquire and release one advisory lock on one connection.

    Database errors raised by the connection propagate; a False return from
    ``lock()`` or ``lock_for_transaction()`` only means someone else holds it.

    Args:
        connection: Advisory lock primitives (borrowed, never closed here)
        args: The ``(namespace, key)`` pair to lock

    Example:
        >>> locket = Locket(advisory_connection(conn), (LOCK_NAMESPACE, lock_key("jobs")))
        >>> if locket.lock():
        ...     try:
        ...         run_jobs()
        ...     finally:
        ...         locket.unlock()
    """

    def __init__(self, connection: AdvisoryLockConnection, args: tuple[int, int]) -> None:
        self.connection = connection
        self.args = args
        self.acquired = False
        self.mode = LockMode.SESSION
        self._transaction: object | None = None

    def lock(self) -> bool:
        """Try to take a session-scoped lock without blocking."""
        if not self.connection.try_acquire_session_lock(*self.args):
            return False
        self.acquired = True
        self.mode = LockMode.SESSION
        self._transaction = None
        return True

    def lock_for_transaction(self) -> bool:
        """
        Try to take a transaction-scoped lock without blocking.

        Outside a transaction the database would take and drop the lock in
        the same statement, so nothing is issued and False is returned.
        """
        transaction = self.connection.current_transaction()
        if transaction is None:
            logger.debug(
                "Transaction lock requested outside a transaction: args=%s",
                self.args,
            )
            return False
        if not self.connection.try_acquire_transaction_lock(*self.args):
            return False
        self.acquired = True
        self.mode = LockMode.TRANSACTION
        self._transaction = transaction
        return True

    def unlock(self) -> None:
        """
        Release the lock.

        Session locks are released on the database; transaction locks are
        left to the transaction boundary. ``acquired`` is cleared even when
        the release statement raises.
        """
        try:
            if self.mode is LockMode.SESSION:
                self.connection.release_session_lock(*self.args)
        finally:
            self.acquired = False
            self._transaction = None

    def active(self) -> bool:
        """
        Whether this handle believes it holds the lock.

        A transaction lock stops being active once the transaction it was
        taken in is no longer the connection's current transaction.
        """
        if self.acquired and self.mode is LockMode.TRANSACTION:
            if self.connection.current_transaction() is not self._transaction:
                self.acquired = False
                self._transaction = None
        return self.acquired

    def __repr__(self) -> str:
        return f"Locket(args={self.args!r}, mode={self.mode.value}, acquired={self.acquired})"


__all__ = ["Locket"]
