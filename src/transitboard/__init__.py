"""TransitBoard - Real-time GTFS departure board."""

__version__ = "0.1.0"

from .models import (
    Arrival,
    BoardResult,
    Direction,
    RealtimeStopTimeUpdate,
    RouteRecord,
    ScheduledStopTime,
    StaticSnapshot,
    StopRecord,
    StopResult,
    TripRecord,
)
from .config import BoardConfig
from .errors import FeedDecodeError, MalformedTimestamp, StopNotFound, TransitBoardError
from .feed import FeedMessage, decode_feed
from .static_index import StaticScheduleIndex
from .realtime_index import RealtimeFeedIndex
from .direction import infer_direction
from .reconciler import RoutePairing, reconcile_stop
from .board import rank_arrivals, recompute
from .cache import SnapshotCache
from .gtfs_loader import GTFSLoader
from .realtime_client import RealtimeClient
from .departure_board import DepartureBoard

__all__ = [
    "DepartureBoard",
    "GTFSLoader",
    "RealtimeClient",
    "SnapshotCache",
    "BoardConfig",
    "StaticScheduleIndex",
    "RealtimeFeedIndex",
    "RoutePairing",
    "recompute",
    "reconcile_stop",
    "rank_arrivals",
    "infer_direction",
    "decode_feed",
    "FeedMessage",
    "Arrival",
    "BoardResult",
    "Direction",
    "RealtimeStopTimeUpdate",
    "RouteRecord",
    "ScheduledStopTime",
    "StaticSnapshot",
    "StopRecord",
    "StopResult",
    "TripRecord",
    "TransitBoardError",
    "StopNotFound",
    "MalformedTimestamp",
    "FeedDecodeError",
]
