"""Typed GTFS-Realtime trip update schema and decoders."""

import logging
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Union

from .errors import FeedDecodeError

logger = logging.getLogger(__name__)

# Raw timestamp as delivered: int seconds or a {"low", "high"} pair
RawTimestamp = Union[int, Mapping[str, int]]


@dataclass(frozen=True)
class StopTimeEvent:
    """Arrival or departure prediction for one stop."""
    time: Optional[RawTimestamp] = None
    delay: Optional[int] = None


@dataclass(frozen=True)
class StopTimeUpdate:
    stop_id: str
    arrival: Optional[StopTimeEvent] = None
    departure: Optional[StopTimeEvent] = None
    stop_sequence: Optional[int] = None
    platform: Optional[Union[str, int]] = None


@dataclass(frozen=True)
class TripUpdateEntity:
    entity_id: str
    trip_id: str
    route_id: str
    stop_time_updates: List[StopTimeUpdate] = field(default_factory=list)
    direction_id: Optional[int] = None


@dataclass(frozen=True)
class FeedHeader:
    timestamp: Optional[RawTimestamp] = None
    gtfs_realtime_version: Optional[str] = None


@dataclass(frozen=True)
class FeedMessage:
    """Decoded trip updates feed. Only entities carrying a trip update are kept."""
    header: FeedHeader
    entities: List[TripUpdateEntity] = field(default_factory=list)


def decode_feed(data: bytes) -> FeedMessage:
    """
    Decode GTFS-Realtime protobuf bytes.

    Raises:
        FeedDecodeError: If the payload is not a valid FeedMessage.
    """
    from google.protobuf.message import DecodeError
    from google.transit import gtfs_realtime_pb2

    if not data:
        raise FeedDecodeError("Empty real-time feed payload")

    feed = gtfs_realtime_pb2.FeedMessage()
    try:
        feed.ParseFromString(data)
    except DecodeError as e:
        raise FeedDecodeError(f"Error parsing real-time feed: {e}") from e

    return from_protobuf(feed)


def from_protobuf(feed: Any) -> FeedMessage:
    """Convert a gtfs_realtime_pb2.FeedMessage into the typed schema."""
    header = FeedHeader(
        timestamp=feed.header.timestamp if feed.header.HasField("timestamp") else None,
        gtfs_realtime_version=feed.header.gtfs_realtime_version or None,
    )

    entities: List[TripUpdateEntity] = []
    for entity in feed.entity:
        if not entity.HasField("trip_update"):
            continue

        trip_update = entity.trip_update
        trip = trip_update.trip
        updates = [
            StopTimeUpdate(
                stop_id=stu.stop_id,
                arrival=_event_from_protobuf(stu, "arrival"),
                departure=_event_from_protobuf(stu, "departure"),
                stop_sequence=stu.stop_sequence if stu.HasField("stop_sequence") else None,
            )
            for stu in trip_update.stop_time_update
        ]
        entities.append(
            TripUpdateEntity(
                entity_id=entity.id,
                trip_id=trip.trip_id,
                route_id=trip.route_id,
                stop_time_updates=updates,
                direction_id=trip.direction_id if trip.HasField("direction_id") else None,
            )
        )

    logger.debug(f"Decoded {len(entities)} trip updates from {len(feed.entity)} entities")
    return FeedMessage(header=header, entities=entities)


def _event_from_protobuf(stop_time_update: Any, name: str) -> Optional[StopTimeEvent]:
    if not stop_time_update.HasField(name):
        return None
    event = getattr(stop_time_update, name)
    return StopTimeEvent(
        time=event.time if event.HasField("time") else None,
        delay=event.delay if event.HasField("delay") else None,
    )


def from_dict(data: Mapping[str, Any]) -> FeedMessage:
    """
    Build a FeedMessage from a decoded JSON-style feed.

    Accepts camelCase keys (tripUpdate, stopTimeUpdate) as produced by
    JavaScript decoders as well as snake_case protobuf field names. Timestamps
    are kept as delivered and normalised later by the feed index. Nested
    elements of the wrong shape are skipped.

    Raises:
        FeedDecodeError: If the top-level structure is not a feed message.
    """
    if not isinstance(data, Mapping):
        raise FeedDecodeError(f"Feed message must be a mapping, got {type(data).__name__}")

    raw_header = _mapping_or_empty(_pick(data, "header"), "feed header")
    header = FeedHeader(
        timestamp=_pick(raw_header, "timestamp"),
        gtfs_realtime_version=_pick(raw_header, "gtfs_realtime_version", "gtfsRealtimeVersion"),
    )

    raw_entities = _pick(data, "entity", "entities") or []
    if not isinstance(raw_entities, list):
        raise FeedDecodeError("Feed entity list must be a list")

    entities: List[TripUpdateEntity] = []
    for raw in raw_entities:
        if not isinstance(raw, Mapping):
            logger.debug(f"Skipping non-mapping feed entity: {raw!r}")
            continue
        trip_update = _pick(raw, "trip_update", "tripUpdate")
        if not trip_update:
            continue
        if not isinstance(trip_update, Mapping):
            logger.debug(f"Skipping non-mapping trip update: {trip_update!r}")
            continue
        trip = _mapping_or_empty(_pick(trip_update, "trip"), "trip descriptor")

        raw_updates = _pick(trip_update, "stop_time_update", "stopTimeUpdate") or []
        if not isinstance(raw_updates, list):
            logger.debug(f"Skipping non-list stop time updates: {raw_updates!r}")
            raw_updates = []

        updates = []
        for stu in raw_updates:
            if not isinstance(stu, Mapping):
                logger.debug(f"Skipping non-mapping stop time update: {stu!r}")
                continue
            raw_arrival = _mapping_or_empty(_pick(stu, "arrival"), "arrival event")
            updates.append(
                StopTimeUpdate(
                    stop_id=str(_pick(stu, "stop_id", "stopId") or ""),
                    arrival=_event_from_dict(raw_arrival),
                    departure=_event_from_dict(
                        _mapping_or_empty(_pick(stu, "departure"), "departure event")
                    ),
                    stop_sequence=_pick(stu, "stop_sequence", "stopSequence"),
                    platform=_pick(raw_arrival, "platform") or _pick(stu, "platform"),
                )
            )
        entities.append(
            TripUpdateEntity(
                entity_id=str(_pick(raw, "id") or ""),
                trip_id=str(_pick(trip, "trip_id", "tripId") or ""),
                route_id=str(_pick(trip, "route_id", "routeId") or ""),
                stop_time_updates=updates,
                direction_id=_pick(trip, "direction_id", "directionId"),
            )
        )

    return FeedMessage(header=header, entities=entities)


def _event_from_dict(raw: Optional[Mapping[str, Any]]) -> Optional[StopTimeEvent]:
    if not raw:
        return None
    return StopTimeEvent(time=_pick(raw, "time"), delay=_pick(raw, "delay"))


def _mapping_or_empty(value: Any, what: str) -> Mapping[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        logger.debug(f"Ignoring non-mapping {what}: {value!r}")
        return {}
    return value


def _pick(mapping: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in mapping:
            return mapping[key]
    return None
