"""Per-call cancellation and deadlines for store operations."""

import threading
import time
from typing import Callable, Dict, Optional

from metastore.errors import Cancelled


class OperationContext:
    """
    Carries a deadline and a cancel flag through a store operation.

    The store checks the context before every statement. While a statement is
    running, registered interrupt callbacks are fired by cancel() so the
    driver can abandon the statement instead of running it to completion.

    Usage:
        ctx = OperationContext(timeout=2.0)
        store.notes.list("proj", ctx=ctx)
        # from another thread:
        ctx.cancel()
    """

    def __init__(self, timeout: Optional[float] = None):
        self.deadline: Optional[float] = time.monotonic() + timeout if timeout is not None else None
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._interrupts: Dict[int, Callable[[], None]] = {}
        self._next_token = 0
        self._timer: Optional[threading.Timer] = None
        if timeout is not None:
            self._timer = threading.Timer(timeout, self.cancel)
            self._timer.daemon = True
            self._timer.start()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self.deadline is not None and time.monotonic() >= self.deadline

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, or None without one."""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def cancel(self) -> None:
        """
        Mark the context cancelled and interrupt any running statement.

        Callbacks run under the lock, so remove_callback() blocks until they
        finish and a removed callback is never called.
        """
        with self._lock:
            self._cancelled.set()
            for callback in list(self._interrupts.values()):
                callback()

    def check(self) -> None:
        """Raise Cancelled if the caller gave up or the deadline passed."""
        if self.expired:
            raise Cancelled("Operation deadline exceeded")
        if self.cancelled:
            raise Cancelled("Operation cancelled by caller")

    def on_cancel(self, callback: Callable[[], None]) -> int:
        """
        Register an interrupt callback; returns a token for remove_callback().

        Raises:
            Cancelled: If the context was already cancelled
        """
        with self._lock:
            if self._cancelled.is_set():
                raise Cancelled("Operation cancelled by caller")
            token = self._next_token
            self._next_token += 1
            self._interrupts[token] = callback
        return token

    def remove_callback(self, token: int) -> None:
        with self._lock:
            self._interrupts.pop(token, None)

    def close(self) -> None:
        """Stop the deadline timer."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
