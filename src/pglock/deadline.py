"""
Deadline enforcement for synchronous critical sections.

``Deadline.run`` (and the ``run_with_deadline`` shortcut) interrupts the
running callable when its time is up instead of waiting for it to finish.
Two mechanisms are used:

- In the main thread, a ``SIGALRM`` interval timer whose handler raises
  ``DeadlineExceeded``. This interrupts blocking calls such as ``time.sleep``.
- In any other thread (or where ``SIGALRM`` is unavailable or already armed),
  a watchdog thread raises ``DeadlineExceeded`` asynchronously in the caller's
  thread. The exception is delivered at the next bytecode boundary, so a
  blocking C call finishes before it is seen.

Deadlines nest. Every ``DeadlineExceeded`` names the ``Deadline`` that
expired, and an expiry belonging to an enclosing deadline passes through an
inner one unchanged.

Example:
    >>> from pglock.deadline import Deadline, DeadlineExceeded
    >>> deadline = Deadline(5.0)
    >>> try:
    ...     deadline.run(slow_job)
    ... except DeadlineExceeded as e:
    ...     if e.deadline is not deadline:
    ...         raise
    ...     print("gave up after 5s")
"""

from __future__ import annotations

import ctypes
import logging
import signal
import threading
from collections.abc import Callable
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

R = TypeVar("R")


class DeadlineExceeded(BaseException):
    """
    Raised inside a callable whose deadline expired.

    Derives from BaseException so ``except Exception`` blocks in the
    interrupted code do not swallow it.

    Attributes:
        seconds: Length of the deadline that expired
        deadline: The ``Deadline`` that expired, if known
    """

    def __init__(self, seconds: float | None = None, deadline: Deadline | None = None) -> None:
        self.seconds = seconds
        self.deadline = deadline
        super().__init__(f"Deadline of {seconds}s exceeded" if seconds else "Deadline exceeded")


class Deadline:
    """
    A time limit for one call.

    Args:
        seconds: Length of the deadline; 0 or None means no deadline
    """

    def __init__(self, seconds: float | None) -> None:
        self.seconds = seconds

    def run(self, fn: Callable[..., R], *args: Any, **kwargs: Any) -> R:
        """
        Call ``fn(*args, **kwargs)``, interrupting it after ``seconds``.

        Raises:
            DeadlineExceeded: With ``deadline`` set to this object if ``fn``
                was still running when the deadline hit. Expiries of other
                deadlines propagate unchanged.
        """
        if not self.seconds:
            return fn(*args, **kwargs)
        if _can_use_alarm():
            return self._run_with_alarm(fn, args, kwargs)
        return self._run_with_watchdog(fn, args, kwargs)

    def expired(self) -> DeadlineExceeded:
        return DeadlineExceeded(self.seconds, self)

    def _run_with_alarm(
        self,
        fn: Callable[..., R],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> R:
        def _on_alarm(signum: int, frame: Any) -> None:
            raise self.expired()

        original_handler = signal.signal(signal.SIGALRM, _on_alarm)
        try:
            signal.setitimer(signal.ITIMER_REAL, self.seconds)
            try:
                return fn(*args, **kwargs)
            finally:
                signal.setitimer(signal.ITIMER_REAL, 0)
        finally:
            signal.signal(signal.SIGALRM, original_handler)

    def _run_with_watchdog(
        self,
        fn: Callable[..., R],
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> R:
        deadline = self

        # Asynchronous exceptions are raised from a bare type, so the type
        # itself has to identify this deadline
        class _Expired(DeadlineExceeded):
            def __init__(self) -> None:
                super().__init__(deadline.seconds, deadline)

        target = threading.get_ident()
        state_lock = threading.Lock()
        state = {"finished": False, "fired": False}

        def _interrupt() -> None:
            with state_lock:
                if state["finished"]:
                    return
                state["fired"] = True
                _set_async_exc(target, _Expired)
            logger.debug("Deadline watchdog fired: thread=%d, seconds=%s", target, self.seconds)

        watchdog = threading.Timer(self.seconds, _interrupt)
        watchdog.daemon = True
        watchdog.start()
        try:
            return fn(*args, **kwargs)
        except _Expired:
            with state_lock:
                state["fired"] = False
            raise self.expired() from None
        finally:
            watchdog.cancel()
            with state_lock:
                state["finished"] = True
                if state["fired"]:
                    # Fired but not yet delivered; drop the pending exception
                    _set_async_exc(target, None)

    def __repr__(self) -> str:
        return f"Deadline(seconds={self.seconds!r})"


def run_with_deadline(
    fn: Callable[..., R],
    seconds: float | None,
    *args: Any,
    **kwargs: Any,
) -> R:
    """
    Call ``fn(*args, **kwargs)``, interrupting it after ``seconds``.

    Args:
        fn: Callable to run in the current thread
        seconds: Deadline in seconds; 0 or None runs ``fn`` without one

    Returns:
        Whatever ``fn`` returns

    Raises:
        DeadlineExceeded: If ``fn`` was still running when the deadline hit
    """
    return Deadline(seconds).run(fn, *args, **kwargs)


def _can_use_alarm() -> bool:
    if not hasattr(signal, "SIGALRM") or not hasattr(signal, "setitimer"):
        return False
    if threading.current_thread() is not threading.main_thread():
        return False
    # Someone else owns the real-time timer
    return signal.getitimer(signal.ITIMER_REAL) == (0.0, 0.0)


def _set_async_exc(thread_id: int, exc_type: type[BaseException] | None) -> None:
    exc = ctypes.py_object(exc_type) if exc_type is not None else ctypes.c_void_p(0)
    ctypes.pythonapi.PyThreadState_SetAsyncExc(ctypes.c_ulong(thread_id), exc)


__all__ = [
    "Deadline",
    "DeadlineExceeded",
    "run_with_deadline",
]
