"""Direction inference from route labels and trip headsigns."""

import re
from typing import Dict, Mapping, Optional, Sequence, Tuple

from .config import DEFAULT_DIRECTION_RULES
from .models import Direction

DirectionRules = Mapping[str, Sequence[Tuple[str, Direction]]]

_compiled: Dict[str, re.Pattern] = {}


def infer_direction(
    route_short_name: str,
    trip_headsign: str,
    rules: Optional[DirectionRules] = None,
) -> Optional[Direction]:
    """
    Infer a travel direction.

    Routes listed in the rules table are matched by headsign pattern (first
    match wins, None when nothing matches). Other routes use their label: a
    trailing "A" means northbound and a trailing "B" southbound.

    This is a curated heuristic, not ground truth. Routes and headsigns it does
    not know about get no direction.
    """
    if rules is None:
        rules = DEFAULT_DIRECTION_RULES

    if route_short_name in rules:
        for pattern, direction in rules[route_short_name]:
            if _pattern(pattern).search(trip_headsign or ""):
                return direction
        return None

    label = (route_short_name or "").upper()
    if label.endswith("A"):
        return Direction.NORTHBOUND
    if label.endswith("B"):
        return Direction.SOUTHBOUND
    return None


def _pattern(pattern: str) -> re.Pattern:
    compiled = _compiled.get(pattern)
    if compiled is None:
        compiled = re.compile(pattern, re.IGNORECASE)
        _compiled[pattern] = compiled
    return compiled
