"""Main DepartureBoard class."""

import logging
import threading
import time
from typing import Callable, Dict, List, Optional, Sequence

from apscheduler.schedulers.background import BackgroundScheduler

from .board import recompute
from .config import BoardConfig
from .gtfs_loader import GTFSLoader
from .models import BoardResult, StaticSnapshot
from .realtime_client import RealtimeClient
from .static_index import StaticScheduleIndex

logger = logging.getLogger(__name__)

POLL_JOB_ID = "transitboard-realtime-poll"

BoardListener = Callable[[BoardResult], None]


class DepartureBoard:
    """
    Keeps a departure board for a list of stop codes up to date.

    This class provides methods to:
    - Set the monitored stop codes
    - Refresh the board on demand
    - Poll the real-time feed on a fixed interval and push results to a listener
    """

    def __init__(
        self,
        config: Optional[BoardConfig] = None,
        gtfs_loader: Optional[GTFSLoader] = None,
        realtime_client: Optional[RealtimeClient] = None,
        on_update: Optional[BoardListener] = None,
        stop_names: Optional[Dict[str, str]] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the board. Nothing is fetched until refresh() or start().

        Args:
            config: Board settings; defaults when None.
            gtfs_loader: Static snapshot provider.
            realtime_client: Real-time snapshot provider.
            on_update: Called with every new BoardResult.
            stop_names: Display names overriding GTFS stop names.
            clock: Time source, seconds since the epoch.
        """
        self.config = config or BoardConfig()
        self.config.validate()
        self.gtfs_loader = gtfs_loader or GTFSLoader(
            self.config.static_url, cache_ttl=self.config.static_cache_ttl_s
        )
        self.realtime_client = realtime_client or RealtimeClient(
            self.config.realtime_url, cache_ttl=self.config.realtime_cache_ttl_s
        )
        self.on_update = on_update
        self.stop_names = dict(stop_names or {})
        self._clock = clock

        self._stop_codes: List[str] = []
        self._last_result: Optional[BoardResult] = None
        self._refresh_lock = threading.Lock()
        self._scheduler: Optional[BackgroundScheduler] = None
        self._poll_requested = False
        self._closed = False

        self._indexed_snapshot: Optional[StaticSnapshot] = None
        self._static_index: Optional[StaticScheduleIndex] = None

    @property
    def stop_codes(self) -> List[str]:
        return list(self._stop_codes)

    @property
    def last_result(self) -> Optional[BoardResult]:
        return self._last_result

    @property
    def is_polling(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def set_stop_codes(self, stop_codes: Sequence[str]) -> Optional[BoardResult]:
        """
        Replace the monitored stop codes and recompute.

        An empty list pauses polling and clears the board. Polling resumes
        once stops are monitored again if start() was called before.

        Raises:
            ValueError: If more than config.max_stops codes are given.
        """
        stop_codes = [code.strip() for code in stop_codes if code and code.strip()]
        if len(stop_codes) > self.config.max_stops:
            raise ValueError(f"At most {self.config.max_stops} stops can be monitored")

        self._stop_codes = stop_codes
        if not stop_codes:
            logger.info("No stops monitored, stopping real-time polling")
            self._stop_scheduler()
            self._last_result = None
            return None

        if self._poll_requested and not self.is_polling:
            logger.info("Stops monitored again, resuming real-time polling")
            self.start()
            return self._last_result

        return self.refresh()

    def refresh(self) -> Optional[BoardResult]:
        """
        Recompute the board from the freshest snapshots.

        Returns None without doing anything if a recomputation is already
        running, the board is closed, or no stops are monitored.
        """
        if self._closed or not self._stop_codes:
            return None

        if not self._refresh_lock.acquire(blocking=False):
            logger.debug("Refresh already in progress, skipping")
            return None

        try:
            static_index = self._current_static_index()
            feed, realtime_error = self.realtime_client.get_feed()
            result = recompute(
                self._stop_codes,
                static_index,
                feed,
                config=self.config,
                now_ms=int(self._clock() * 1000),
                stop_names=self.stop_names,
                realtime_error=realtime_error,
            )
            self._last_result = result
        finally:
            self._refresh_lock.release()

        if self._closed:
            return None

        if result.no_data:
            logger.warning("No static or real-time data available")

        if self.on_update is not None:
            try:
                self.on_update(result)
            except Exception as e:
                logger.error(f"Board listener failed: {e}", exc_info=True)

        return result

    def start(self) -> None:
        """Start polling at config.refresh_interval_ms and refresh immediately."""
        if self._closed:
            raise RuntimeError("DepartureBoard is closed")
        self._poll_requested = True
        if self.is_polling:
            return

        self._scheduler = BackgroundScheduler()
        self._scheduler.add_job(
            self.refresh,
            "interval",
            seconds=self.config.refresh_interval_ms / 1000,
            id=POLL_JOB_ID,
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()
        logger.info(f"Polling real-time data every {self.config.refresh_interval_ms} ms")
        self.refresh()

    def stop(self) -> None:
        """Cancel the periodic poll."""
        self._poll_requested = False
        self._stop_scheduler()

    def _stop_scheduler(self) -> None:
        if self._scheduler is None:
            return
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Stopped real-time polling")

    def close(self) -> None:
        """Stop polling, release caches, and ignore any further refreshes."""
        self._closed = True
        self.stop()
        self.realtime_client.clear_cache()
        logger.info("Cleaned up board resources")

    def __enter__(self) -> "DepartureBoard":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _current_static_index(self) -> Optional[StaticScheduleIndex]:
        """Index of the freshest static snapshot, rebuilt only when the snapshot changes."""
        snapshot = self.gtfs_loader.get_snapshot()
        if snapshot is None:
            return None
        if snapshot is not self._indexed_snapshot:
            self._static_index = StaticScheduleIndex(snapshot)
            self._indexed_snapshot = snapshot
        return self._static_index
