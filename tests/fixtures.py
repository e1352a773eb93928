"""Shared test data: a small Barrie-style schedule and feed builders."""

import sys
from datetime import datetime
from pathlib import Path

# Add src to path so we can import transitboard
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from transitboard.feed import FeedHeader, FeedMessage, StopTimeEvent, StopTimeUpdate, TripUpdateEntity
from transitboard.models import (
    RouteRecord,
    ScheduledStopTime,
    StaticSnapshot,
    StopRecord,
    TripRecord,
)

# 08:00:00 local time
NOW = datetime(2026, 10, 18, 8, 0, 0)
NOW_MS = int(NOW.timestamp() * 1000)
NOW_S = NOW_MS // 1000

MINUTE_MS = 60 * 1000


def make_snapshot(stop_times=None):
    """Stops 330 and 100; routes 8A, 8B and 400."""
    return StaticSnapshot(
        stops=[
            StopRecord(stop_id="S330", stop_code="330", stop_name="Downtown Terminal"),
            StopRecord(stop_id="S100", stop_code="100", stop_name="Georgian College"),
        ],
        routes=[
            RouteRecord(route_id="BT8A", route_short_name="8A", route_long_name="Crosstown"),
            RouteRecord(route_id="BT8B", route_short_name="8B", route_long_name="Crosstown"),
            RouteRecord(route_id="BT400", route_short_name="400", route_long_name="Express"),
        ],
        trips=[
            TripRecord(trip_id="T8A-1", route_id="BT8A", trip_headsign="Trip to Georgian College"),
            TripRecord(trip_id="T8A-2", route_id="BT8A", trip_headsign="Trip to Georgian College"),
            TripRecord(trip_id="T8B-1", route_id="BT8B", trip_headsign="Trip to Park Place"),
            TripRecord(trip_id="T8B-2", route_id="BT8B", trip_headsign="Trip to Georgian College"),
            TripRecord(trip_id="T400-1", route_id="BT400", trip_headsign="400 North to Georgian Mall"),
        ],
        stop_times=list(stop_times or []),
    )


def stop_time(trip_id, stop_id, time_of_day, platform_code=None):
    return ScheduledStopTime(
        trip_id=trip_id,
        stop_id=stop_id,
        arrival_time=time_of_day,
        departure_time=time_of_day,
        platform_code=platform_code,
    )


def make_feed(*entities, header_timestamp=None):
    """Build a FeedMessage; header defaults to NOW."""
    return FeedMessage(
        header=FeedHeader(timestamp=NOW_S if header_timestamp is None else header_timestamp),
        entities=list(entities),
    )


def trip_update(trip_id, route_id, *updates):
    return TripUpdateEntity(
        entity_id=f"e-{trip_id}",
        trip_id=trip_id,
        route_id=route_id,
        stop_time_updates=list(updates),
    )


def prediction(stop_id, epoch_seconds, delay=None, use_departure=False):
    event = StopTimeEvent(time=epoch_seconds, delay=delay)
    if use_departure:
        return StopTimeUpdate(stop_id=stop_id, departure=event)
    return StopTimeUpdate(stop_id=stop_id, arrival=event)
