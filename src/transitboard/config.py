"""Configuration for the departure board."""

from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .models import Direction

# Barrie Transit feeds
DEFAULT_STATIC_URL = "https://www.myridebarrie.ca/gtfs/google_transit.zip"
DEFAULT_REALTIME_URL = "http://www.myridebarrie.ca/gtfs/GTFS_TripUpdates.pb"

# Headsign patterns for routes that take part in directional pairing.
# Evaluated case-insensitively, first match wins.
DEFAULT_DIRECTION_RULES: Dict[str, List[Tuple[str, Direction]]] = {
    "8A": [
        (r"to Georgian College", Direction.NORTHBOUND),
        (r"to Park Place|to Downtown Barrie Terminal", Direction.SOUTHBOUND),
    ],
    "8B": [
        (r"to Georgian College", Direction.NORTHBOUND),
        (r"to Park Place|to Downtown Barrie Terminal", Direction.SOUTHBOUND),
    ],
    "400": [
        (r"north|georgian mall", Direction.NORTHBOUND),
        (r"south|park place|downtown barrie terminal", Direction.SOUTHBOUND),
    ],
}

# Option names as used by the web front end
_OPTION_ALIASES = {
    "REFRESH_INTERVAL_MS": "refresh_interval_ms",
    "MAX_STOPS": "max_stops",
    "MAX_ARRIVALS_WINDOW_MIN": "max_arrivals_window_min",
    "DEBOUNCE_DELAY_MS": "debounce_delay_ms",
    "ROUTE_PAIRS": "route_pairs",
    "STALE_AFTER_MIN": "stale_after_min",
    "CACHE_DURATION_MS": "static_cache_ttl_s",
}


@dataclass
class BoardConfig:
    """
    Settings for building and refreshing a departure board.

    route_pairs maps a route short name to its paired route; leaving it empty
    disables paired estimates. debounce_delay_ms is not used by the core and is
    carried for input handling in front ends.
    """
    refresh_interval_ms: int = 15_000
    max_stops: int = 15
    max_arrivals_window_min: int = 60
    debounce_delay_ms: int = 1_000
    route_pairs: Dict[str, str] = field(default_factory=dict)
    stale_after_min: int = 30
    static_cache_ttl_s: float = 60 * 60
    realtime_cache_ttl_s: float = 30
    direction_rules: Dict[str, List[Tuple[str, Direction]]] = field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_DIRECTION_RULES.items()}
    )
    timezone: Optional[str] = None  # IANA name; host local time when None
    static_url: str = DEFAULT_STATIC_URL
    realtime_url: str = DEFAULT_REALTIME_URL

    @property
    def directional_routes(self) -> frozenset:
        """Route short names that have headsign direction rules."""
        return frozenset(self.direction_rules)

    def validate(self) -> None:
        """Raise ValueError for settings the board cannot run with."""
        if self.refresh_interval_ms <= 0:
            raise ValueError("refresh_interval_ms must be positive")
        if self.max_stops <= 0:
            raise ValueError("max_stops must be positive")
        if self.max_arrivals_window_min < 0:
            raise ValueError("max_arrivals_window_min must not be negative")
        if self.stale_after_min <= 0:
            raise ValueError("stale_after_min must be positive")
        for route_id, paired in self.route_pairs.items():
            if not route_id or not paired:
                raise ValueError(f"Invalid route pair {route_id!r} -> {paired!r}")

    @classmethod
    def from_dict(cls, options: Mapping[str, Any]) -> "BoardConfig":
        """
        Build a config from a mapping of options.

        Keys may be attribute names or the upper-case option names
        (REFRESH_INTERVAL_MS, MAX_STOPS, MAX_ARRIVALS_WINDOW_MIN,
        DEBOUNCE_DELAY_MS, ROUTE_PAIRS, ...). CACHE_DURATION_MS is converted to
        seconds.

        Raises:
            ValueError: On unknown keys or invalid values.
        """
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in options.items():
            name = _OPTION_ALIASES.get(key, key)
            if name not in known:
                raise ValueError(f"Unknown config option: {key}")
            if key == "CACHE_DURATION_MS":
                value = value / 1000
            if name == "route_pairs":
                value = dict(value)
            if name == "direction_rules":
                value = {
                    route: [(pattern, Direction(direction)) for pattern, direction in rules]
                    for route, rules in value.items()
                }
            kwargs[name] = value
        config = cls(**kwargs)
        config.validate()
        return config
