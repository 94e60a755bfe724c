"""
Lock key derivation for PostgreSQL advisory locks.

PostgreSQL's two-argument advisory lock functions take a pair of signed
32-bit integers. The first half is a fixed namespace that keeps pglock's
locks apart from any other advisory-lock user of the same database; the
second half is derived from the lock name.

Example:
    >>> from pglock.keys import LOCK_NAMESPACE, lock_key
    >>> lock_key("nightly-report")
    -2077502800
    >>> (LOCK_NAMESPACE, lock_key("nightly-report"))
    (-2147483648, -2077502800)
"""

from __future__ import annotations

import zlib
from typing import Any

LOCK_NAMESPACE = -2147483648
"""First component of every advisory key taken by this library."""

INT32_MAX = 2147483647


def lock_key(name: Any) -> int:
    """
    Convert a lock name to a signed 32-bit advisory lock key.

    Takes the CRC-32 of ``str(name)`` and folds values above ``INT32_MAX``
    into the negative range by two's-complement wraparound.

    Args:
        name: Any object with a string form

    Returns:
        Integer in ``[-2**31, 2**31 - 1]``
    """
    value = zlib.crc32(str(name).encode("utf-8"))
    if value > INT32_MAX:
        return -((-value) & 0xFFFFFFFF)
    return value


__all__ = [
    "INT32_MAX",
    "LOCK_NAMESPACE",
    "lock_key",
]
