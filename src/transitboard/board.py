"""Aggregates reconciled arrivals across monitored stops and ranks them."""

import logging
import time
from typing import Iterable, List, Mapping, Optional, Sequence, Union

from .arrival_builder import build_stop_arrivals, within_window
from .config import BoardConfig
from .errors import StopNotFound
from .feed import FeedMessage
from .models import Arrival, BoardResult, StaticSnapshot, StopResult
from .realtime_index import RealtimeFeedIndex
from .reconciler import RoutePairing, reconcile_stop
from .static_index import StaticScheduleIndex
from .timestamps import calculate_data_age, format_data_age

logger = logging.getLogger(__name__)

# "At platform" covers live arrivals from two minutes ago up to now
AT_PLATFORM_MIN_MINUTES = -2
AT_PLATFORM_MAX_MINUTES = 0


def is_at_platform(arrival: Arrival, now_ms: int) -> bool:
    minutes = arrival.minutes_until(now_ms)
    return arrival.is_realtime and AT_PLATFORM_MIN_MINUTES <= minutes <= AT_PLATFORM_MAX_MINUTES


def rank_arrivals(arrivals: Iterable[Arrival], now_ms: int) -> List[Arrival]:
    """At-platform arrivals first, then everything by arrival time. Ties keep input order."""
    return sorted(
        arrivals,
        key=lambda a: (not is_at_platform(a, now_ms), a.arrival_time_ms),
    )


def aggregate(
    stop_results: Iterable[StopResult],
    now_ms: int,
    window_minutes: int,
) -> List[Arrival]:
    """Concatenate per-stop arrivals, re-apply the window, and rank."""
    combined = [
        arrival
        for result in stop_results
        for arrival in result.arrivals
        if within_window(arrival.minutes_until(now_ms), window_minutes)
    ]
    return rank_arrivals(combined, now_ms)


def process_stop(
    stop_code: str,
    static_index: StaticScheduleIndex,
    feed_index: Optional[RealtimeFeedIndex],
    config: BoardConfig,
    now_ms: int,
    pairing: Optional[RoutePairing] = None,
    stop_names: Optional[Mapping[str, str]] = None,
) -> StopResult:
    """
    Build and reconcile arrivals for one stop.

    Failures are reported in StopResult.error and never raised.
    """
    try:
        scheduled, realtime = build_stop_arrivals(
            stop_code, static_index, feed_index, config, now_ms, stop_names
        )
        arrivals = reconcile_stop(scheduled, realtime, pairing)
    except StopNotFound as e:
        logger.warning(str(e))
        return StopResult(stop_code=stop_code, arrivals=[], error=str(e))
    except Exception as e:
        logger.error(f"Failed to process stop {stop_code}: {e}", exc_info=True)
        return StopResult(
            stop_code=stop_code,
            arrivals=[],
            error=f"Failed to process stop {stop_code}: {e}",
        )
    return StopResult(stop_code=stop_code, arrivals=arrivals)


def recompute(
    stop_codes: Sequence[str],
    static_data: Union[StaticSnapshot, StaticScheduleIndex, None],
    realtime_data: Union[FeedMessage, RealtimeFeedIndex, None],
    config: Optional[BoardConfig] = None,
    now_ms: Optional[int] = None,
    stop_names: Optional[Mapping[str, str]] = None,
    realtime_error: Optional[str] = None,
) -> BoardResult:
    """
    Rebuild the departure board from scratch.

    Either snapshot may be missing: without real-time data the board falls back
    to the schedule, without static data no stop can be resolved. The inputs
    are never modified and nothing is raised.

    Args:
        stop_codes: Monitored stop codes, in display order. Duplicates are
            ignored and codes beyond config.max_stops get an error instead of
            arrivals.
        static_data: Static snapshot (or an index already built from one).
        realtime_data: Decoded trip updates feed (or its index).
        config: Board settings; defaults when None.
        now_ms: Current time in epoch milliseconds; wall clock when None.
        stop_names: Display names overriding the GTFS stop names.
        realtime_error: Why the real-time feed is unavailable, if known.

    Returns:
        BoardResult with ranked arrivals and per-stop diagnostics.
    """
    config = config or BoardConfig()
    if now_ms is None:
        now_ms = int(time.time() * 1000)

    static_index = _static_index(static_data)
    feed_index = _feed_index(realtime_data)
    is_stale = False
    feed_age_minutes: Optional[int] = None
    if feed_index is not None and feed_index.header_timestamp is not None:
        feed_age_minutes = calculate_data_age(feed_index.header_timestamp, now=now_ms / 1000)
        if feed_age_minutes > config.stale_after_min:
            is_stale = True
            stale_message = (
                f"Real-time data is {format_data_age(feed_age_minutes)} old. "
                "Service information may not be current."
            )
            logger.warning(stale_message)
            # Keep the fetch failure that caused cached data to be served
            realtime_error = f"{realtime_error} {stale_message}" if realtime_error else stale_message

    if feed_index is None and realtime_error is None:
        realtime_error = "Real-time data not available"

    pairing = RoutePairing(config.route_pairs, config.directional_routes)

    stop_results = {}
    for position, stop_code in enumerate(_unique(stop_codes)):
        if position >= config.max_stops:
            stop_results[stop_code] = StopResult(
                stop_code=stop_code,
                arrivals=[],
                error=f"Only {config.max_stops} stops can be monitored at once",
            )
            continue
        if static_index is None:
            stop_results[stop_code] = StopResult(
                stop_code=stop_code,
                arrivals=[],
                error="Static schedule data not available",
            )
            continue
        stop_results[stop_code] = process_stop(
            stop_code, static_index, feed_index, config, now_ms, pairing, stop_names
        )

    arrivals = aggregate(stop_results.values(), now_ms, config.max_arrivals_window_min)
    logger.debug(f"Recomputed board: {len(arrivals)} arrivals for {len(stop_results)} stops")

    return BoardResult(
        arrivals=arrivals,
        stop_results=stop_results,
        realtime_available=feed_index is not None,
        realtime_error=realtime_error,
        is_stale=is_stale,
        feed_age_minutes=feed_age_minutes,
        no_data=static_index is None and feed_index is None,
        generated_at_ms=now_ms,
    )


def _static_index(
    static_data: Union[StaticSnapshot, StaticScheduleIndex, None]
) -> Optional[StaticScheduleIndex]:
    if static_data is None or isinstance(static_data, StaticScheduleIndex):
        return static_data
    return StaticScheduleIndex(static_data)


def _feed_index(
    realtime_data: Union[FeedMessage, RealtimeFeedIndex, None]
) -> Optional[RealtimeFeedIndex]:
    if realtime_data is None or isinstance(realtime_data, RealtimeFeedIndex):
        return realtime_data
    return RealtimeFeedIndex(realtime_data)


def _unique(stop_codes: Iterable[str]) -> List[str]:
    seen = set()
    result = []
    for code in stop_codes:
        if code not in seen:
            seen.add(code)
            result.append(code)
    return result
