"""Lookup tables over a loaded GTFS static snapshot."""

import logging
from typing import Dict, List, Optional

from .errors import StopNotFound
from .models import (
    RouteRecord,
    ScheduledStopTime,
    StaticSnapshot,
    StopRecord,
    TripRecord,
)

logger = logging.getLogger(__name__)


class StaticScheduleIndex:
    """Indexes stops, routes, trips and stop times for O(1) joins."""

    def __init__(self, snapshot: StaticSnapshot):
        """
        Build the index. The snapshot itself is not modified.

        When a stop code appears more than once, the first stop wins.
        """
        self.stops_by_code: Dict[str, StopRecord] = {}
        self.stops_by_id: Dict[str, StopRecord] = {}
        self.routes: Dict[str, RouteRecord] = {}
        self.trips: Dict[str, TripRecord] = {}
        self.stop_times_by_stop: Dict[str, List[ScheduledStopTime]] = {}

        for stop in snapshot.stops:
            self.stops_by_id.setdefault(stop.stop_id, stop)
            if stop.stop_code:
                self.stops_by_code.setdefault(stop.stop_code, stop)

        for route in snapshot.routes:
            self.routes[route.route_id] = route

        for trip in snapshot.trips:
            self.trips[trip.trip_id] = trip

        for stop_time in snapshot.stop_times:
            self.stop_times_by_stop.setdefault(stop_time.stop_id, []).append(stop_time)

        logger.debug(f"Indexed static schedule: {self.stats()}")

    def find_stop_by_code(self, stop_code: str) -> Optional[StopRecord]:
        return self.stops_by_code.get(stop_code)

    def get_stop(self, stop_code: str) -> StopRecord:
        """Get stop by user-facing stop code, raising StopNotFound if missing."""
        stop = self.find_stop_by_code(stop_code)
        if stop is None:
            raise StopNotFound(stop_code)
        return stop

    def stop_times_for_stop(self, stop_id: str) -> List[ScheduledStopTime]:
        return list(self.stop_times_by_stop.get(stop_id, ()))

    def get_trip(self, trip_id: str) -> Optional[TripRecord]:
        return self.trips.get(trip_id)

    def get_route(self, route_id: str) -> Optional[RouteRecord]:
        return self.routes.get(route_id)

    def route_short_name(self, route_id: str) -> str:
        """Human-facing route label, falling back to the raw route id."""
        route = self.routes.get(route_id)
        if route and route.route_short_name:
            return route.route_short_name
        return route_id

    def stats(self) -> Dict[str, int]:
        return {
            "stops": len(self.stops_by_id),
            "routes": len(self.routes),
            "trips": len(self.trips),
            "stop_times": sum(len(rows) for rows in self.stop_times_by_stop.values()),
        }
