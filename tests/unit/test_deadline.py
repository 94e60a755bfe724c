"""
Unit tests for deadline enforcement.

Tests cover:
- Running without a deadline
- Interrupting the main thread via SIGALRM
- Interrupting a worker thread via the watchdog
- Timer cleanup on success and on error
- Nested deadlines keeping their identity
"""

from __future__ import annotations

import signal
import threading
import time

import pytest

from pglock.deadline import Deadline, DeadlineExceeded, run_with_deadline

requires_sigalrm = pytest.mark.skipif(
    not hasattr(signal, "SIGALRM"), reason="SIGALRM not available on this platform"
)


class TestWithoutDeadline:
    """Tests for disabled deadlines."""

    @pytest.mark.parametrize("seconds", [0, None])
    def test_runs_function_directly(self, seconds: float | None) -> None:
        assert run_with_deadline(lambda: "done", seconds) == "done"

    def test_passes_arguments(self) -> None:
        assert run_with_deadline(lambda a, b=0: a + b, 0, 2, b=3) == 5


@requires_sigalrm
class TestMainThreadDeadline:
    """Tests for the SIGALRM path."""

    def test_returns_value_within_deadline(self) -> None:
        assert run_with_deadline(lambda: "done", 5) == "done"

    def test_timer_disarmed_and_handler_restored(self) -> None:
        before = signal.getsignal(signal.SIGALRM)

        run_with_deadline(lambda: None, 5)

        assert signal.getitimer(signal.ITIMER_REAL) == (0.0, 0.0)
        assert signal.getsignal(signal.SIGALRM) is before

    def test_interrupts_sleep(self) -> None:
        started = time.monotonic()

        with pytest.raises(DeadlineExceeded) as exc_info:
            run_with_deadline(time.sleep, 0.2, 5)

        assert time.monotonic() - started < 2
        assert exc_info.value.seconds == 0.2
        assert signal.getitimer(signal.ITIMER_REAL) == (0.0, 0.0)

    def test_not_swallowed_by_except_exception(self) -> None:
        def stubborn() -> str:
            try:
                time.sleep(5)
            except Exception:
                return "swallowed"
            return "finished"

        with pytest.raises(DeadlineExceeded):
            run_with_deadline(stubborn, 0.1)

    def test_errors_propagate_and_disarm(self) -> None:
        def boom() -> None:
            raise ValueError("boom")

        with pytest.raises(ValueError):
            run_with_deadline(boom, 5)

        assert signal.getitimer(signal.ITIMER_REAL) == (0.0, 0.0)


class TestWorkerThreadDeadline:
    """Tests for the watchdog path."""

    def run_in_thread(self, fn, seconds: float) -> list[object]:
        outcome: list[object] = []

        def target() -> None:
            try:
                outcome.append(run_with_deadline(fn, seconds))
            except BaseException as e:
                outcome.append(e)

        thread = threading.Thread(target=target)
        thread.start()
        thread.join(timeout=10)
        return outcome

    def test_interrupts_busy_loop(self) -> None:
        def spin() -> None:
            while True:
                time.sleep(0.01)

        outcome = self.run_in_thread(spin, 0.2)

        assert len(outcome) == 1
        assert isinstance(outcome[0], DeadlineExceeded)
        assert outcome[0].seconds == 0.2

    def test_returns_value_within_deadline(self) -> None:
        assert self.run_in_thread(lambda: "done", 5) == ["done"]

    def test_no_late_interrupt_after_return(self) -> None:
        outcome: list[object] = []

        def target() -> None:
            try:
                run_with_deadline(lambda: None, 0.05)
                time.sleep(0.3)
                outcome.append("clean")
            except BaseException as e:
                outcome.append(e)

        thread = threading.Thread(target=target)
        thread.start()
        thread.join(timeout=10)

        assert outcome == ["clean"]


def spin() -> None:
    while True:
        time.sleep(0.01)


@requires_sigalrm
class TestNestedDeadlines:
    """Tests for deadlines running inside other deadlines."""

    def test_outer_expiry_passes_through_inner(self) -> None:
        outer, inner = Deadline(0.2), Deadline(5)
        started = time.monotonic()

        with pytest.raises(DeadlineExceeded) as exc_info:
            outer.run(inner.run, time.sleep, 2)

        assert time.monotonic() - started < 1.5
        assert exc_info.value.deadline is outer
        assert exc_info.value.seconds == 0.2
        assert signal.getitimer(signal.ITIMER_REAL) == (0.0, 0.0)

    def test_inner_expiry_names_inner(self) -> None:
        outer, inner = Deadline(5), Deadline(0.2)

        def section() -> object:
            try:
                inner.run(spin)
            except DeadlineExceeded as e:
                return e.deadline
            return None

        assert outer.run(section) is inner

    def test_nested_watchdogs_in_worker_thread(self) -> None:
        outer, inner = Deadline(0.2), Deadline(5)
        outcome: list[object] = []

        def target() -> None:
            try:
                outer.run(inner.run, spin)
            except DeadlineExceeded as e:
                outcome.append(e.deadline)

        thread = threading.Thread(target=target)
        thread.start()
        thread.join(timeout=10)

        assert outcome == [outer]


class TestDeadline:
    """Tests for the Deadline object."""

    def test_expired_carries_identity(self) -> None:
        deadline = Deadline(1.5)

        error = deadline.expired()

        assert error.deadline is deadline
        assert error.seconds == 1.5

    def test_run_without_seconds_calls_directly(self) -> None:
        assert Deadline(None).run(lambda x: x * 2, 4) == 8
