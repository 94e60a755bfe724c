"""
Unit tests for lock key derivation.

Tests cover:
- Known CRC-32 values and the signed 32-bit fold
- Determinism and range for arbitrary names
- Non-string names
"""

from __future__ import annotations

from uuid import uuid4

import pytest

from pglock.keys import INT32_MAX, LOCK_NAMESPACE, lock_key


class TestLockNamespace:
    """Tests for the fixed namespace constant."""

    def test_namespace_is_int32_min(self) -> None:
        assert LOCK_NAMESPACE == -(2**31)


class TestLockKey:
    """Tests for lock_key()."""

    def test_value_below_int32_max_is_unchanged(self) -> None:
        """crc32('hello') is 0x3610A686, which already fits."""
        assert lock_key("hello") == 907060870

    def test_value_above_int32_max_wraps_negative(self) -> None:
        """crc32('nightly-report') is 2217464496, folded to 2217464496 - 2**32."""
        assert lock_key("nightly-report") == 2217464496 - 2**32
        assert lock_key("nightly-report") == -2077502800

    def test_empty_name(self) -> None:
        assert lock_key("") == 0

    def test_non_string_names_use_str(self) -> None:
        assert lock_key(123) == lock_key("123")
        assert lock_key(123) == -2008521774

    def test_deterministic_conversion(self) -> None:
        name = "billing:invoice-42"
        assert lock_key(name) == lock_key(name)
        assert lock_key(name) == 1577439216

    def test_different_names_produce_different_keys(self) -> None:
        assert lock_key("jobs:a") != lock_key("jobs:b")

    @pytest.mark.parametrize(
        "name",
        [
            "migration:tenant-abc",
            "lock:" + "a" * 1000,
            "",
            "tenant-éàü",
            uuid4(),
            ("tuple", 1),
        ],
    )
    def test_key_fits_signed_32_bit(self, name: object) -> None:
        key = lock_key(name)
        assert -(2**31) <= key <= INT32_MAX
