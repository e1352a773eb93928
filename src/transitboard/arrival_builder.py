"""Builds scheduled and real-time arrival candidates for a single stop."""

import logging
from datetime import datetime, time, timedelta
from typing import List, Mapping, Optional, Tuple

from .config import BoardConfig
from .direction import infer_direction
from .models import Arrival, StopRecord, minutes_until
from .realtime_index import RealtimeFeedIndex
from .static_index import StaticScheduleIndex

logger = logging.getLogger(__name__)

UNKNOWN_DESTINATION = "Unknown Destination"
UNKNOWN_STOP = "Unknown Stop"

# Arrivals up to one minute past are still shown
WINDOW_GRACE_MINUTES = -1


def within_window(minutes: int, window_minutes: int) -> bool:
    """True if minutes-until-arrival lies in [-1, window_minutes]."""
    return WINDOW_GRACE_MINUTES <= minutes <= window_minutes


def parse_time_of_day(value: str) -> Tuple[int, int, int]:
    """
    Parse a GTFS HH:MM:SS time. Hours may be 24 or more.

    Raises:
        ValueError: If the value is not a valid time of day.
    """
    parts = value.strip().split(":")
    if len(parts) != 3:
        raise ValueError(f"Invalid GTFS time: {value!r}")
    hours, minutes, seconds = (int(part) for part in parts)
    if hours < 0 or not 0 <= minutes < 60 or not 0 <= seconds < 60:
        raise ValueError(f"Invalid GTFS time: {value!r}")
    return hours, minutes, seconds


def resolve_scheduled_time(time_of_day: str, now_ms: int, tz: Optional[str] = None) -> int:
    """
    Turn a GTFS time of day into an epoch timestamp in milliseconds.

    The time is placed on today's date. Hours of 24 or more roll onto the next
    day, and a time that has already passed is assumed to be tomorrow's trip.

    Args:
        time_of_day: "HH:MM:SS", hour may exceed 23.
        now_ms: Current time in epoch milliseconds.
        tz: IANA zone name for the service day; host local time if None.
    """
    hours, minutes, seconds = parse_time_of_day(time_of_day)
    tzinfo = _zone(tz)
    now = datetime.fromtimestamp(now_ms / 1000, tz=tzinfo)

    service_day = now.date()
    if hours >= 24:
        hours -= 24
        service_day += timedelta(days=1)

    scheduled = datetime.combine(service_day, time(hours, minutes, seconds), tzinfo=tzinfo)
    scheduled_ms = round(scheduled.timestamp() * 1000)
    if scheduled_ms < now_ms:
        scheduled = datetime.combine(
            service_day + timedelta(days=1), time(hours, minutes, seconds), tzinfo=tzinfo
        )
        scheduled_ms = round(scheduled.timestamp() * 1000)
    return scheduled_ms


def _zone(tz: Optional[str]):
    if not tz:
        return None
    from zoneinfo import ZoneInfo

    return ZoneInfo(tz)


def resolve_stop_name(stop: StopRecord, stop_names: Optional[Mapping[str, str]] = None) -> str:
    """Caller override first, then the GTFS stop name."""
    if stop_names and stop_names.get(stop.stop_code):
        return stop_names[stop.stop_code]
    return stop.stop_name or UNKNOWN_STOP


def build_scheduled_arrivals(
    stop: StopRecord,
    static_index: StaticScheduleIndex,
    config: BoardConfig,
    now_ms: int,
    stop_name: Optional[str] = None,
) -> List[Arrival]:
    """
    Scheduled arrivals at a stop within the arrivals window.

    Rows whose trip is unknown or that carry no usable time are skipped.
    """
    stop_name = stop_name or resolve_stop_name(stop)
    arrivals: List[Arrival] = []

    for stop_time in static_index.stop_times_for_stop(stop.stop_id):
        trip = static_index.get_trip(stop_time.trip_id)
        if trip is None:
            logger.debug(f"Skipping stop time for unknown trip {stop_time.trip_id}")
            continue

        time_of_day = stop_time.arrival_time or stop_time.departure_time
        if not time_of_day:
            continue

        try:
            scheduled_ms = resolve_scheduled_time(time_of_day, now_ms, config.timezone)
        except ValueError as e:
            logger.debug(f"Skipping stop time for trip {trip.trip_id}: {e}")
            continue

        if not within_window(minutes_until(scheduled_ms, now_ms), config.max_arrivals_window_min):
            continue

        route_label = static_index.route_short_name(trip.route_id)
        headsign = trip.trip_headsign or UNKNOWN_DESTINATION

        arrivals.append(
            Arrival(
                route_id=route_label,
                trip_id=headsign,
                arrival_time_ms=scheduled_ms,
                delay_seconds=0,
                stop_code=stop.stop_code,
                stop_name=stop_name,
                is_realtime=False,
                platform=stop_time.platform_code or None,
                direction=infer_direction(route_label, headsign, config.direction_rules),
                paired_estimate=False,
                gtfs_trip_id=trip.trip_id,
            )
        )

    return arrivals


def build_realtime_arrivals(
    stop: StopRecord,
    static_index: StaticScheduleIndex,
    feed_index: Optional[RealtimeFeedIndex],
    config: BoardConfig,
    now_ms: int,
    stop_name: Optional[str] = None,
) -> List[Arrival]:
    """
    Real-time arrivals at a stop within the arrivals window.

    Feed route ids are mapped to route short names and trip ids to headsigns
    through the static schedule. A missing feed yields no arrivals.
    """
    if feed_index is None:
        return []

    stop_name = stop_name or resolve_stop_name(stop)
    arrivals: List[Arrival] = []

    for update in feed_index.updates_for_stop(stop.stop_id):
        arrival_ms = update.predicted_epoch_seconds * 1000
        if not within_window(minutes_until(arrival_ms, now_ms), config.max_arrivals_window_min):
            continue

        route_label = static_index.route_short_name(update.route_id) or "Unknown"
        trip = static_index.get_trip(update.trip_id)
        headsign = (trip.trip_headsign if trip else "") or UNKNOWN_DESTINATION

        arrivals.append(
            Arrival(
                route_id=route_label,
                trip_id=headsign,
                arrival_time_ms=arrival_ms,
                delay_seconds=update.delay_seconds,
                stop_code=stop.stop_code,
                stop_name=stop_name,
                is_realtime=True,
                platform=update.platform or None,
                direction=infer_direction(route_label, headsign, config.direction_rules),
                paired_estimate=False,
                gtfs_trip_id=update.trip_id or None,
            )
        )

    return arrivals


def build_stop_arrivals(
    stop_code: str,
    static_index: StaticScheduleIndex,
    feed_index: Optional[RealtimeFeedIndex],
    config: BoardConfig,
    now_ms: int,
    stop_names: Optional[Mapping[str, str]] = None,
) -> Tuple[List[Arrival], List[Arrival]]:
    """
    Both candidate lists for one stop code.

    Returns:
        (scheduled_arrivals, realtime_arrivals)

    Raises:
        StopNotFound: If the stop code is not in the static schedule.
    """
    stop = static_index.get_stop(stop_code)
    stop_name = resolve_stop_name(stop, stop_names)
    scheduled = build_scheduled_arrivals(stop, static_index, config, now_ms, stop_name)
    realtime = build_realtime_arrivals(stop, static_index, feed_index, config, now_ms, stop_name)
    logger.debug(
        f"Stop {stop_code} ({stop.stop_id}): {len(scheduled)} scheduled, {len(realtime)} real-time"
    )
    return scheduled, realtime
