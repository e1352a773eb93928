"""Data models for the transit departure board."""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple, Union


class Direction(str, Enum):
    """Travel direction attached to an arrival."""
    NORTHBOUND = "northbound"
    SOUTHBOUND = "southbound"
    INBOUND = "inbound"
    OUTBOUND = "outbound"

    def opposite(self) -> "Direction":
        return _OPPOSITES[self]


_OPPOSITES = {
    Direction.NORTHBOUND: Direction.SOUTHBOUND,
    Direction.SOUTHBOUND: Direction.NORTHBOUND,
    Direction.INBOUND: Direction.OUTBOUND,
    Direction.OUTBOUND: Direction.INBOUND,
}


@dataclass(frozen=True)
class StopRecord:
    """A stop from stops.txt."""
    stop_id: str
    stop_code: str  # User-facing code, e.g. "330"
    stop_name: str


@dataclass(frozen=True)
class RouteRecord:
    """A route from routes.txt."""
    route_id: str
    route_short_name: str  # e.g. "8A", "400"
    route_long_name: str = ""


@dataclass(frozen=True)
class TripRecord:
    """A trip from trips.txt."""
    trip_id: str
    route_id: str
    trip_headsign: str = ""


@dataclass(frozen=True)
class ScheduledStopTime:
    """A row from stop_times.txt. Hours may exceed 23 for post-midnight service."""
    trip_id: str
    stop_id: str
    arrival_time: str  # HH:MM:SS
    departure_time: str  # HH:MM:SS
    platform_code: Optional[str] = None


@dataclass(frozen=True)
class RealtimeStopTimeUpdate:
    """A single stop prediction taken from a trip update."""
    trip_id: str
    route_id: str
    stop_id: str
    predicted_epoch_seconds: int
    delay_seconds: int = 0
    platform: Optional[Union[str, int]] = None


@dataclass
class Arrival:
    """
    A reconciled departure for one stop.

    route_id carries the route short name and trip_id carries the trip headsign;
    together with stop_code they form the grouping key. The raw GTFS trip
    identifier is kept in gtfs_trip_id for diagnostics only.
    """
    route_id: str
    trip_id: str
    arrival_time_ms: int
    delay_seconds: int
    stop_code: str
    stop_name: str
    is_realtime: bool
    platform: Optional[Union[str, int]] = None
    direction: Optional[Direction] = None
    paired_estimate: bool = False
    gtfs_trip_id: Optional[str] = None

    @property
    def grouping_key(self) -> Tuple[str, str, str]:
        return (self.route_id, self.trip_id, self.stop_code)

    def minutes_until(self, now_ms: int) -> int:
        return minutes_until(self.arrival_time_ms, now_ms)


def minutes_until(arrival_time_ms: int, now_ms: int) -> int:
    """Whole minutes until arrival, floored (negative once the minute has passed)."""
    return math.floor((arrival_time_ms - now_ms) / 60000)


@dataclass
class StaticSnapshot:
    """The four GTFS static tables used by the board."""
    stops: List[StopRecord] = field(default_factory=list)
    routes: List[RouteRecord] = field(default_factory=list)
    trips: List[TripRecord] = field(default_factory=list)
    stop_times: List[ScheduledStopTime] = field(default_factory=list)


@dataclass
class StopResult:
    """Reconciled arrivals for one monitored stop, plus an optional diagnostic."""
    stop_code: str
    arrivals: List[Arrival]
    error: Optional[str] = None


@dataclass
class BoardResult:
    """Output of one recomputation across all monitored stops."""
    arrivals: List[Arrival]
    stop_results: Dict[str, StopResult]
    realtime_available: bool
    realtime_error: Optional[str]
    is_stale: bool
    feed_age_minutes: Optional[int]
    no_data: bool
    generated_at_ms: int

    @property
    def stop_errors(self) -> Dict[str, str]:
        return {
            code: result.error
            for code, result in self.stop_results.items()
            if result.error
        }
