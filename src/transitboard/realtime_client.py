"""GTFS-Realtime trip updates fetcher."""

import logging
from typing import Optional, Tuple

import requests

from .cache import SnapshotCache
from .config import DEFAULT_REALTIME_URL
from .errors import FeedDecodeError
from .feed import FeedMessage, decode_feed

logger = logging.getLogger(__name__)

FETCH_TIMEOUT = 10
REQUEST_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    "Accept": "*/*",
}


class RealtimeClient:
    """Fetches, decodes and caches the trip updates feed."""

    def __init__(
        self,
        url: str = DEFAULT_REALTIME_URL,
        cache_ttl: float = 30,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the client.

        Args:
            url: URL of the GTFS-Realtime TripUpdates protobuf.
            cache_ttl: Seconds a decoded feed is reused before refetching.
            session: Optional requests session.
        """
        self.url = url
        self.cache: SnapshotCache[FeedMessage] = SnapshotCache(cache_ttl)
        self.session = session or requests.Session()

    def get_feed(self) -> Tuple[Optional[FeedMessage], Optional[str]]:
        """
        Freshest decoded feed and an error message, if any.

        A failed download keeps serving the last decoded feed. A feed that
        cannot be decoded is reported as unavailable.

        Returns:
            (feed or None, error message or None)
        """
        if self.cache.is_fresh():
            logger.debug(f"Using cached data for {self.url}")
            return self.cache.get(), None

        try:
            return self.fetch_feed(), None
        except FeedDecodeError as e:
            logger.error(f"Failed to decode real-time feed: {e}")
            self.cache.record_error(str(e))
            return None, "Error parsing real-time data"
        except requests.RequestException as e:
            self.cache.record_error(str(e))
            return self.cache.get(), f"Failed to fetch real-time data: {e}"

    def fetch_feed(self) -> FeedMessage:
        """
        Download and decode the feed, bypassing the cache freshness check.

        Raises:
            requests.RequestException: On network or HTTP errors.
            FeedDecodeError: If the payload is not a valid feed.
        """
        logger.debug(f"Fetching {self.url}")
        try:
            response = self.session.get(self.url, timeout=FETCH_TIMEOUT, headers=REQUEST_HEADERS)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to fetch {self.url}: {e}")
            raise

        feed = decode_feed(response.content)
        self.cache.set(feed)
        logger.info(f"GTFS real-time data parsed: {len(feed.entities)} trip updates")
        return feed

    def clear_cache(self) -> None:
        """Manually clear the cache."""
        self.cache.clear()
