import functools
import threading

from protocol.types.common import ReentrancyError


class ReentrancyGuard:
    """
    Process-wide "currently executing" latch.

    A second entry while the latch is held fails immediately instead of
    waiting, so a transfer hook cannot re-enter and see intermediate state.
    """

    def __init__(self):
        self._lock = threading.Lock()

    @property
    def entered(self) -> bool:
        return self._lock.locked()

    def __enter__(self):
        if not self._lock.acquire(blocking=False):
            raise ReentrancyError("Reentrant call rejected")
        return self

    def __exit__(self, exc_type, exc, tb):
        self._lock.release()
        return False


def non_reentrant(method):
    """Runs a method under the instance's `guard`."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self.guard:
            return method(self, *args, **kwargs)
    return wrapper
