"""
Basic Usage Example

This example demonstrates the fundamental locking patterns:
- Guarding a critical section with a named lock
- Contention between two database sessions
- Raising when a lock cannot be taken
- Bounding a critical section with a TTL
- Observing lock steps through a log callback

It runs against the in-memory backend, so no database is needed. Swap the
connections for ``engine.connect()`` to run it against PostgreSQL.

Run with: python examples/basic_usage.py
"""

import time

from pglock import (
    CriticalSectionTimeoutError,
    InMemoryAdvisoryLocks,
    LockEvent,
    PgLock,
    UnableToLockError,
)

# =============================================================================
# Step 1: Open two sessions on one lock table
# =============================================================================
# Each connection behaves like a separate PostgreSQL session.

locks = InMemoryAdvisoryLocks()
worker_a = locks.connect()
worker_b = locks.connect()


def build_report() -> str:
    return "report.csv"


def main() -> None:
    # =========================================================================
    # Step 2: Guard a critical section
    # =========================================================================
    report = PgLock("nightly-report", connection=worker_a).lock(build_report)
    print(f"Built {report}")

    # =========================================================================
    # Step 3: Contention
    # =========================================================================
    # While worker A holds the lock, worker B gives up after its attempts.

    def contend() -> object:
        contender = PgLock("nightly-report", connection=worker_b, attempts=2, attempt_interval=0.1)
        return contender.lock(build_report)

    outcome = PgLock("nightly-report", connection=worker_a).lock(contend)
    print(f"Worker B while A holds the lock: {outcome}")

    # =========================================================================
    # Step 4: Raise instead of returning False
    # =========================================================================
    holder = PgLock("nightly-report", connection=worker_a)
    holder.create()
    try:
        PgLock("nightly-report", connection=worker_b, attempts=1).lock_or_raise()
    except UnableToLockError as e:
        print(f"Worker B: {e}")
    finally:
        holder.delete()

    # =========================================================================
    # Step 5: TTL
    # =========================================================================
    try:
        PgLock("slow-job", connection=worker_a, ttl=0.2).lock(lambda: time.sleep(2))
    except CriticalSectionTimeoutError as e:
        print(f"Timed out: {e}")

    # =========================================================================
    # Step 6: Log callback
    # =========================================================================
    def log(event: LockEvent) -> None:
        print(f"  lock event: {event['at']}")

    PgLock("audited", connection=worker_a, log=log).lock(lambda: None)


if __name__ == "__main__":
    main()
