from __future__ import annotations

import threading
from time import monotonic
from typing import Optional

from utils.errors import CancelledError


class CancelScope:
    """
    Cancellation signal for one invocation: an explicit cancel() plus an
    optional overall deadline. Every suspension point (network call, backoff
    delay) goes through it.
    """

    def __init__(self, timeout: Optional[float] = None, event: Optional[threading.Event] = None) -> None:
        self._event = event or threading.Event()
        self._deadline = monotonic() + timeout if timeout else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        return self._deadline is not None and monotonic() >= self._deadline

    def remaining(self) -> Optional[float]:
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - monotonic())

    def check(self) -> None:
        if self._event.is_set():
            raise CancelledError("Search cancelled")
        if self.cancelled:
            raise CancelledError("Search timed out")

    def bound_timeout(self, timeout: Optional[float]) -> Optional[float]:
        remaining = self.remaining()
        if remaining is None:
            return timeout
        if timeout is None:
            return remaining
        return min(timeout, remaining)

    def sleep(self, seconds: float) -> None:
        self.check()
        wait = self.bound_timeout(seconds) or 0.0
        if self._event.wait(wait):
            self.check()
        if wait < seconds:
            # deadline hit before the full delay elapsed
            raise CancelledError("Search timed out")
