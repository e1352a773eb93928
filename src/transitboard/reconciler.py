"""Merges scheduled and real-time arrivals for a stop into one list."""

import logging
from dataclasses import replace
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .models import Arrival

logger = logging.getLogger(__name__)

GroupingKey = Tuple[str, str, str]


class RoutePairing:
    """
    Substitutes a paired route's live estimate for a scheduled arrival.

    Paired routes are directional counterparts such as 8A and 8B. When a
    scheduled trip has no live prediction, the paired route's prediction at the
    same stop stands in for it. An empty pair table disables the feature.
    """

    def __init__(
        self,
        route_pairs: Optional[Mapping[str, str]] = None,
        directional_routes: Iterable[str] = (),
    ):
        self.route_pairs: Dict[str, str] = dict(route_pairs or {})
        self.directional_routes = frozenset(directional_routes)

    @property
    def enabled(self) -> bool:
        return bool(self.route_pairs)

    def find_paired_route(self, route_id: str) -> Optional[str]:
        return self.route_pairs.get(route_id)

    def generate_paired_estimate(
        self,
        static_arrival: Arrival,
        realtime_arrivals: List[Arrival],
    ) -> Optional[Arrival]:
        """
        Build a paired estimate for a scheduled arrival, or None.

        For routes with headsign direction rules, a live arrival of the paired
        route heading the opposite way is preferred. Otherwise any live arrival
        of the paired route at the same stop is used, restricted to the same
        direction when the scheduled arrival has one.
        """
        paired_route = self.find_paired_route(static_arrival.route_id)
        if not paired_route:
            return None

        candidates = [
            rt for rt in realtime_arrivals
            if rt.route_id == paired_route and rt.stop_code == static_arrival.stop_code
        ]

        match: Optional[Arrival] = None
        if static_arrival.direction and static_arrival.route_id in self.directional_routes:
            opposite = static_arrival.direction.opposite()
            match = next((rt for rt in candidates if rt.direction == opposite), None)

        if match is None:
            if static_arrival.direction:
                match = next(
                    (rt for rt in candidates if rt.direction == static_arrival.direction), None
                )
            else:
                match = next(iter(candidates), None)

        if match is None:
            return None

        return replace(
            static_arrival,
            arrival_time_ms=match.arrival_time_ms,
            delay_seconds=match.delay_seconds,
            is_realtime=True,
            paired_estimate=True,
        )


def reconcile_stop(
    scheduled_arrivals: List[Arrival],
    realtime_arrivals: List[Arrival],
    pairing: Optional[RoutePairing] = None,
) -> List[Arrival]:
    """
    Merge one stop's candidate lists, one arrival per grouping key.

    Real-time arrivals always win over scheduled ones for the same
    (route, headsign, stop) key; within a source the earlier time wins.
    Scheduled arrivals left without a live match may then take a paired
    estimate. The result is sorted by arrival time.
    """
    grouped: Dict[GroupingKey, Arrival] = {}

    for rt in realtime_arrivals:
        key = rt.grouping_key
        current = grouped.get(key)
        if current is None or rt.arrival_time_ms < current.arrival_time_ms:
            grouped[key] = rt

    for st in scheduled_arrivals:
        key = st.grouping_key
        current = grouped.get(key)
        if current is None:
            grouped[key] = st
        elif not current.is_realtime and st.arrival_time_ms < current.arrival_time_ms:
            grouped[key] = st

    if pairing is not None and pairing.enabled:
        paired_count = 0
        for st in scheduled_arrivals:
            key = st.grouping_key
            current = grouped.get(key)
            if current is not None and current.is_realtime:
                continue
            estimate = pairing.generate_paired_estimate(st, realtime_arrivals)
            if estimate is not None:
                grouped[key] = estimate
                paired_count += 1
        if paired_count:
            logger.debug(f"Applied {paired_count} paired estimates")

    return sorted(grouped.values(), key=lambda a: a.arrival_time_ms)
