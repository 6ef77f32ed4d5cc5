"""Counting semaphore gating concurrent scene work

Permits are taken with a compare-and-swap on the counter while any are
available, and waiters only block on the condition after seeing zero.
"""

import logging
import threading
from contextlib import contextmanager

logger = logging.getLogger(__name__)

class Semaphore:
    """Counting semaphore with a non-blocking fast path"""

    def __init__(self, permits: int):
        if permits < 1:
            raise ValueError("Semaphore needs at least one permit")
        self.capacity = permits
        self._permits = permits
        self._cas_lock = threading.Lock()
        self._signal = threading.Condition(threading.Lock())

    @property
    def available(self) -> int:
        return self._permits

    def _compare_and_swap(self, expected: int, new: int) -> bool:
        with self._cas_lock:
            if self._permits != expected:
                return False
            self._permits = new
            return True

    def acquire(self) -> int:
        """
        Block until a permit is available and take it.

        Returns:
            int: Permits left after this acquisition, usable as a permit id.
        """
        while True:
            current = self._permits
            if current > 0:
                if self._compare_and_swap(current, current - 1):
                    return current - 1
                continue
            with self._signal:
                # Recheck under the condition lock so a release between the
                # read above and the wait below is not missed.
                if self._permits > 0:
                    continue
                self._signal.wait()

    def release(self) -> None:
        """Return a permit and wake one waiter"""
        with self._cas_lock:
            if self._permits >= self.capacity:
                raise RuntimeError("Semaphore released more times than acquired")
            self._permits += 1
        with self._signal:
            self._signal.notify()

    @contextmanager
    def permit(self):
        """Hold a permit for the duration of the block"""
        permit_id = self.acquire()
        try:
            yield permit_id
        finally:
            self.release()
