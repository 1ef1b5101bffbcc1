"""Single-flight guard for refresh runs."""

import logging
import threading

logger = logging.getLogger(__name__)


class SingleFlightGuard:
    """A held/free flag whose check-and-set is atomic.

    The flag is never exposed for writing; callers either win
    ``try_acquire()`` and must later ``release()``, or are told a run is
    already in progress. A ``threading.Lock`` keeps the check-and-set
    exclusive even when request handlers run in worker threads.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._held = False

    def try_acquire(self) -> bool:
        """Take the guard if it is free. Returns False if already held."""
        with self._lock:
            if self._held:
                return False
            self._held = True
            return True

    def release(self) -> None:
        with self._lock:
            if not self._held:
                logger.warning("Single-flight guard released while not held")
            self._held = False

    @property
    def is_held(self) -> bool:
        with self._lock:
            return self._held
