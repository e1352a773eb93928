"""Time-limited holder for the latest fetched snapshot."""

import logging
import threading
import time
from typing import Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SnapshotCache(Generic[T]):
    """
    Keeps the most recent snapshot together with its fetch time.

    get() returns the snapshot even after it has expired; is_fresh() tells
    whether it should be refetched. The last fetch error is kept alongside so a
    provider can serve stale data while reporting the failure.
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.time):
        """
        Args:
            ttl: Seconds a snapshot stays fresh.
            clock: Time source, seconds since the epoch.
        """
        self.ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._snapshot: Optional[T] = None
        self._last_fetched_at: Optional[float] = None
        self._last_error: Optional[str] = None

    @property
    def last_fetched_at(self) -> Optional[float]:
        with self._lock:
            return self._last_fetched_at

    @property
    def last_error(self) -> Optional[str]:
        with self._lock:
            return self._last_error

    def get(self) -> Optional[T]:
        with self._lock:
            return self._snapshot

    def set(self, snapshot: T) -> None:
        with self._lock:
            self._snapshot = snapshot
            self._last_fetched_at = self._clock()
            self._last_error = None

    def is_fresh(self) -> bool:
        with self._lock:
            if self._snapshot is None or self._last_fetched_at is None:
                return False
            return self._clock() - self._last_fetched_at < self.ttl

    def age(self) -> Optional[float]:
        """Seconds since the snapshot was stored, or None if empty."""
        with self._lock:
            if self._last_fetched_at is None:
                return None
            return self._clock() - self._last_fetched_at

    def record_error(self, error: str) -> None:
        with self._lock:
            self._last_error = error

    def clear(self) -> None:
        with self._lock:
            self._snapshot = None
            self._last_fetched_at = None
            self._last_error = None
        logger.debug("Cleared snapshot cache")
