"""Per-stop lookup over a decoded GTFS-Realtime trip updates feed."""

import logging
from typing import Dict, List, Optional

from .errors import MalformedTimestamp
from .feed import FeedMessage, StopTimeEvent, StopTimeUpdate
from .models import RealtimeStopTimeUpdate
from .timestamps import extract_timestamp

logger = logging.getLogger(__name__)


class RealtimeFeedIndex:
    """Groups the stop-level predictions of a feed by stop_id."""

    def __init__(self, feed: FeedMessage):
        self.updates_by_stop: Dict[str, List[RealtimeStopTimeUpdate]] = {}
        self.dropped_updates = 0
        self.header_timestamp = feed.header.timestamp

        for entity in feed.entities:
            for stop_time_update in entity.stop_time_updates:
                try:
                    predicted = self._predicted_time(stop_time_update)
                except MalformedTimestamp as e:
                    logger.warning(
                        f"Dropping update for trip {entity.trip_id} at stop "
                        f"{stop_time_update.stop_id}: {e}"
                    )
                    self.dropped_updates += 1
                    continue

                if predicted is None:
                    continue

                update = RealtimeStopTimeUpdate(
                    trip_id=entity.trip_id,
                    route_id=entity.route_id,
                    stop_id=stop_time_update.stop_id,
                    predicted_epoch_seconds=predicted,
                    delay_seconds=self._delay(stop_time_update),
                    platform=stop_time_update.platform,
                )
                self.updates_by_stop.setdefault(update.stop_id, []).append(update)

        logger.debug(
            f"Indexed real-time updates for {len(self.updates_by_stop)} stops "
            f"({self.dropped_updates} dropped)"
        )

    def updates_for_stop(self, stop_id: str) -> List[RealtimeStopTimeUpdate]:
        return list(self.updates_by_stop.get(stop_id, ()))

    @staticmethod
    def _predicted_time(stop_time_update: StopTimeUpdate) -> Optional[int]:
        """Arrival time if present, else departure time, else None."""
        for event in (stop_time_update.arrival, stop_time_update.departure):
            if event is not None and event.time is not None:
                seconds = extract_timestamp(event.time)
                # A zero time means the field was left unset upstream
                if seconds:
                    return seconds
        return None

    @staticmethod
    def _delay(stop_time_update: StopTimeUpdate) -> int:
        for event in (stop_time_update.arrival, stop_time_update.departure):
            if _has_delay(event):
                return event.delay
        return 0


def _has_delay(event: Optional[StopTimeEvent]) -> bool:
    return event is not None and bool(event.delay)
