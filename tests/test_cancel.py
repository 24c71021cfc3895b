import threading

import pytest

from utils.cancel import CancelScope
from utils.errors import CancelledError


def test_scope_without_deadline():
    scope = CancelScope()
    assert not scope.cancelled
    assert scope.remaining() is None
    assert scope.bound_timeout(30) == 30
    scope.check()


def test_cancel_sets_flag():
    scope = CancelScope()
    scope.cancel()
    assert scope.cancelled
    with pytest.raises(CancelledError, match="cancelled"):
        scope.check()


def test_deadline_bounds_timeouts():
    scope = CancelScope(timeout=10)
    assert scope.bound_timeout(30) <= 10
    assert scope.bound_timeout(None) <= 10
    assert scope.bound_timeout(1) == 1


def test_expired_deadline():
    scope = CancelScope(timeout=0.001)
    threading.Event().wait(0.01)
    assert scope.cancelled
    with pytest.raises(CancelledError, match="timed out"):
        scope.check()


def test_sleep_wakes_on_cancel_from_other_thread():
    scope = CancelScope()
    timer = threading.Timer(0.05, scope.cancel)
    timer.start()
    try:
        with pytest.raises(CancelledError):
            scope.sleep(10)
    finally:
        timer.cancel()


def test_short_sleep_completes():
    CancelScope().sleep(0.01)
