"""
Connection handling for advisory lock primitives.

A lock talks to the database through four primitives, described by the
``AdvisoryLockConnection`` protocol. ``SQLAlchemyAdvisoryConnection`` maps
them onto PostgreSQL's advisory lock functions over a synchronous SQLAlchemy
``Connection``; ``InMemoryConnection`` (``pglock.in_memory``) implements them
without a database.

Example:
    >>> from sqlalchemy import create_engine
    >>> from pglock.connection import advisory_connection
    >>>
    >>> engine = create_engine("postgresql+psycopg://localhost/app")
    >>> with engine.connect() as conn:
    ...     adapter = advisory_connection(conn)
    ...     adapter.try_acquire_session_lock(-2147483648, 42)
    True
"""

from __future__ import annotations

import logging
from typing import Any, Final, Protocol, runtime_checkable

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.sql.elements import TextClause

logger = logging.getLogger(__name__)

TRY_LOCK: Final = text(
    "SELECT pg_try_advisory_lock(CAST(:namespace AS integer), CAST(:key AS integer))"
)
TRY_LOCK_XACT: Final = text(
    "SELECT pg_try_advisory_xact_lock(CAST(:namespace AS integer), CAST(:key AS integer))"
)
UNLOCK: Final = text(
    "SELECT pg_advisory_unlock(CAST(:namespace AS integer), CAST(:key AS integer))"
)


@runtime_checkable
class AdvisoryLockConnection(Protocol):
    """
    Protocol for connections that can take advisory locks.

    All acquire primitives are non-blocking: they return False when another
    session holds the lock.
    """

    def try_acquire_session_lock(self, namespace: int, key: int) -> bool:
        """Take a lock held until released or the connection closes."""
        ...

    def release_session_lock(self, namespace: int, key: int) -> bool:
        """Release a session lock; False if this connection did not hold it."""
        ...

    def try_acquire_transaction_lock(self, namespace: int, key: int) -> bool:
        """Take a lock released automatically when the transaction ends."""
        ...

    def current_transaction(self) -> object | None:
        """
        Return a token for the open transaction, or None outside one.

        The token must stay the same object for the lifetime of one
        transaction and differ between transactions.
        """
        ...


class SQLAlchemyAdvisoryConnection:
    """
    Advisory lock primitives over a synchronous SQLAlchemy connection.

    The connection is borrowed: this adapter never closes it. Session-lock
    statements issued while the caller has no transaction open are committed
    right away, so the adapter never leaves an autobegun transaction behind.
    Transaction-lock statements run inside the caller's transaction.

    Session-lock statements issued inside the caller's transaction share its
    fate: once PostgreSQL has marked that transaction failed, the release
    raises (``InFailedSqlTransaction``) and the session lock stays held until
    the connection is closed or the lock is released after a rollback.

    Args:
        connection: An open ``sqlalchemy.engine.Connection`` to PostgreSQL
    """

    def __init__(self, connection: Connection) -> None:
        self._connection = connection

    @property
    def connection(self) -> Connection:
        """The wrapped SQLAlchemy connection."""
        return self._connection

    def try_acquire_session_lock(self, namespace: int, key: int) -> bool:
        return self._scalar(TRY_LOCK, namespace, key, standalone=True)

    def release_session_lock(self, namespace: int, key: int) -> bool:
        released = self._scalar(UNLOCK, namespace, key, standalone=True)
        if not released:
            logger.debug(
                "Advisory unlock reported lock not held: namespace=%d, key=%d",
                namespace,
                key,
            )
        return released

    def try_acquire_transaction_lock(self, namespace: int, key: int) -> bool:
        return self._scalar(TRY_LOCK_XACT, namespace, key, standalone=False)

    def current_transaction(self) -> object | None:
        return self._connection.get_transaction()

    def _scalar(
        self,
        statement: TextClause,
        namespace: int,
        key: int,
        *,
        standalone: bool,
    ) -> bool:
        """
        Execute a lock function and return its boolean result.

        Args:
            statement: One of the advisory lock statements
            namespace: First half of the advisory key
            key: Second half of the advisory key
            standalone: Commit (or roll back on error) when the statement
                        opened the transaction itself
        """
        owns_transaction = standalone and not self._connection.in_transaction()
        try:
            result = self._connection.execute(
                statement,
                {"namespace": namespace, "key": key},
            ).scalar()
        except Exception:
            if owns_transaction and self._connection.in_transaction():
                self._connection.rollback()
            raise
        if owns_transaction:
            self._connection.commit()
        return bool(result)


def advisory_connection(conn: Any) -> AdvisoryLockConnection:
    """
    Coerce a connection-like object to an ``AdvisoryLockConnection``.

    Objects already implementing the protocol pass through unchanged;
    SQLAlchemy connections are wrapped.

    Args:
        conn: Protocol implementation or ``sqlalchemy.engine.Connection``

    Returns:
        Object implementing the advisory lock primitives

    Raises:
        TypeError: If ``conn`` is neither
    """
    if isinstance(conn, AdvisoryLockConnection):
        return conn
    if isinstance(conn, Connection):
        return SQLAlchemyAdvisoryConnection(conn)
    raise TypeError(
        f"Expected a SQLAlchemy Connection or AdvisoryLockConnection, got {type(conn).__name__}"
    )


__all__ = [
    "AdvisoryLockConnection",
    "SQLAlchemyAdvisoryConnection",
    "TRY_LOCK",
    "TRY_LOCK_XACT",
    "UNLOCK",
    "advisory_connection",
]
