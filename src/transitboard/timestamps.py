"""Helpers for GTFS-Realtime timestamps and feed age."""

import logging
import time
from typing import Any, Mapping, Optional

from .errors import MalformedTimestamp

logger = logging.getLogger(__name__)

_UINT32 = 0x100000000


def extract_timestamp(value: Any) -> int:
    """
    Normalise a feed timestamp to integer seconds.

    Accepts a plain integer or a 64-bit value split into a {"low", "high"} pair
    (as produced by JavaScript protobuf decoders and their JSON dumps).

    Raises:
        MalformedTimestamp: If the value has neither form.
    """
    # bool is an int subclass but never a valid timestamp
    if isinstance(value, bool):
        raise MalformedTimestamp(f"Invalid timestamp format: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, Mapping) and value.get("low") is not None:
        high = value.get("high") or 0
        try:
            return int(value["low"]) + int(high) * _UINT32
        except (TypeError, ValueError) as e:
            raise MalformedTimestamp(f"Invalid timestamp format: {value!r}") from e
    raise MalformedTimestamp(f"Invalid timestamp format: {value!r}")


def calculate_data_age(timestamp: Any, now: Optional[float] = None) -> int:
    """Age of a feed timestamp in whole minutes. Returns 0 if the timestamp is unusable."""
    if now is None:
        now = time.time()
    try:
        seconds = extract_timestamp(timestamp)
    except MalformedTimestamp as e:
        logger.warning(f"Failed to calculate data age: {e}")
        return 0
    return int((now - seconds) // 60)


def format_data_age(minutes: int) -> str:
    """Format an age in minutes as "45m", "2h 5m" or "1d 3h"."""
    if minutes < 60:
        return f"{minutes}m"

    if minutes < 1440:
        hours, remaining = divmod(minutes, 60)
        return f"{hours}h {remaining}m" if remaining else f"{hours}h"

    days = minutes // 1440
    hours = (minutes % 1440) // 60
    return f"{days}d {hours}h" if hours else f"{days}d"
