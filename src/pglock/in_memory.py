"""
In-memory advisory lock backend.

This module provides a stand-in for PostgreSQL's advisory lock table and a
connection type that talks to it. Several ``InMemoryConnection`` objects
created from one ``InMemoryAdvisoryLocks`` contend with each other exactly
like separate database sessions would.

Suitable for development, testing, and single-process deployments.
For coordination across processes, use a PostgreSQL connection instead.

Example:
    >>> locks = InMemoryAdvisoryLocks()
    >>> first, second = locks.connect(), locks.connect()
    >>> bool(PgLock(name="report", connection=first).create())
    True
    >>> PgLock(name="report", connection=second, attempts=1).create()
    False
"""

from __future__ import annotations

import itertools
import logging
import threading
from collections import Counter

logger = logging.getLogger(__name__)


class InMemoryTransaction:
    """Token for one transaction on an ``InMemoryConnection``."""

    def __init__(self, connection: InMemoryConnection) -> None:
        self.connection = connection
        self.is_active = True

    def __enter__(self) -> InMemoryTransaction:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self.is_active:
            return
        if exc_type is None:
            self.connection.commit()
        else:
            self.connection.rollback()


class InMemoryAdvisoryLocks:
    """
    Process-local advisory lock table.

    Session locks are reentrant per connection, as in PostgreSQL: a
    connection that locks the same key twice must unlock it twice.

    Thread Safety:
        All operations are guarded by a single lock, so connections may be
        used from different threads.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        # (namespace, key) -> id of the connection holding it
        self._holders: dict[tuple[int, int], int] = {}
        self._session_counts: Counter[tuple[int, int]] = Counter()
        self._xact_keys: dict[int, set[tuple[int, int]]] = {}
        self._ids = itertools.count(1)

    def connect(self) -> InMemoryConnection:
        """Open a new connection (database session) on this lock table."""
        return InMemoryConnection(self, next(self._ids))

    def holder_of(self, namespace: int, key: int) -> int | None:
        """Return the id of the connection holding the key, if any."""
        with self._lock:
            return self._holders.get((namespace, key))

    def try_acquire_session(self, connection_id: int, namespace: int, key: int) -> bool:
        with self._lock:
            if not self._claim(connection_id, (namespace, key)):
                return False
            self._session_counts[(namespace, key)] += 1
            return True

    def release_session(self, connection_id: int, namespace: int, key: int) -> bool:
        with self._lock:
            lock_id = (namespace, key)
            if self._holders.get(lock_id) != connection_id or not self._session_counts[lock_id]:
                logger.debug(
                    "Unlock of advisory lock not held: connection=%d, lock=%s",
                    connection_id,
                    lock_id,
                )
                return False
            self._session_counts[lock_id] -= 1
            self._maybe_free(connection_id, lock_id)
            return True

    def try_acquire_transaction(self, connection_id: int, namespace: int, key: int) -> bool:
        with self._lock:
            if not self._claim(connection_id, (namespace, key)):
                return False
            self._xact_keys.setdefault(connection_id, set()).add((namespace, key))
            return True

    def end_transaction(self, connection_id: int) -> None:
        """Drop every transaction lock held by the connection."""
        with self._lock:
            for lock_id in self._xact_keys.pop(connection_id, set()):
                self._maybe_free(connection_id, lock_id)

    def disconnect(self, connection_id: int) -> None:
        """Drop every lock held by the connection, as closing a session does."""
        with self._lock:
            self._xact_keys.pop(connection_id, None)
            for lock_id in [k for k, owner in self._holders.items() if owner == connection_id]:
                self._session_counts.pop(lock_id, None)
                del self._holders[lock_id]

    def _claim(self, connection_id: int, lock_id: tuple[int, int]) -> bool:
        owner = self._holders.get(lock_id)
        if owner is not None and owner != connection_id:
            return False
        self._holders[lock_id] = connection_id
        return True

    def _maybe_free(self, connection_id: int, lock_id: tuple[int, int]) -> None:
        if self._session_counts[lock_id]:
            return
        if lock_id in self._xact_keys.get(connection_id, set()):
            return
        self._session_counts.pop(lock_id, None)
        self._holders.pop(lock_id, None)


class InMemoryConnection:
    """
    One session on an ``InMemoryAdvisoryLocks`` table.

    Implements the ``AdvisoryLockConnection`` protocol plus the transaction
    controls a test needs: ``begin()``, ``commit()``, ``rollback()`` and
    ``close()``.
    """

    def __init__(self, locks: InMemoryAdvisoryLocks, connection_id: int) -> None:
        self.locks = locks
        self.connection_id = connection_id
        self.closed = False
        self._transaction: InMemoryTransaction | None = None

    def begin(self) -> InMemoryTransaction:
        """Open a transaction; usable as a context manager."""
        if self._transaction is not None:
            raise RuntimeError("A transaction is already in progress on this connection")
        self._transaction = InMemoryTransaction(self)
        return self._transaction

    def commit(self) -> None:
        self._end_transaction()

    def rollback(self) -> None:
        self._end_transaction()

    def close(self) -> None:
        self._end_transaction()
        self.locks.disconnect(self.connection_id)
        self.closed = True

    def in_transaction(self) -> bool:
        return self._transaction is not None

    def try_acquire_session_lock(self, namespace: int, key: int) -> bool:
        self._check_open()
        return self.locks.try_acquire_session(self.connection_id, namespace, key)

    def release_session_lock(self, namespace: int, key: int) -> bool:
        self._check_open()
        return self.locks.release_session(self.connection_id, namespace, key)

    def try_acquire_transaction_lock(self, namespace: int, key: int) -> bool:
        self._check_open()
        if self._transaction is None:
            # Taken and released by the same implicit transaction
            return self.locks.holder_of(namespace, key) in (None, self.connection_id)
        return self.locks.try_acquire_transaction(self.connection_id, namespace, key)

    def current_transaction(self) -> InMemoryTransaction | None:
        return self._transaction

    def _end_transaction(self) -> None:
        if self._transaction is None:
            return
        self._transaction.is_active = False
        self._transaction = None
        self.locks.end_transaction(self.connection_id)

    def _check_open(self) -> None:
        if self.closed:
            raise ConnectionError(f"In-memory connection {self.connection_id} is closed")

    def __repr__(self) -> str:
        return (
            f"InMemoryConnection(id={self.connection_id}, in_transaction={self.in_transaction()})"
        )


__all__ = [
    "InMemoryAdvisoryLocks",
    "InMemoryConnection",
    "InMemoryTransaction",
]
