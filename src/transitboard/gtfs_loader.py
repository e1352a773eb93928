"""GTFS static data loader."""

import io
import logging
import zipfile
from typing import IO, List, Optional, Union

import pandas as pd
import requests

from .cache import SnapshotCache
from .config import DEFAULT_STATIC_URL
from .models import (
    RouteRecord,
    ScheduledStopTime,
    StaticSnapshot,
    StopRecord,
    TripRecord,
)

logger = logging.getLogger(__name__)

# Refuse static archives larger than this
MAX_ARCHIVE_BYTES = 50 * 1024 * 1024
DOWNLOAD_TIMEOUT = 60

CsvSource = Union[str, IO]


class GTFSLoader:
    """Downloads, parses and caches the GTFS static tables used by the board."""

    def __init__(
        self,
        url: str = DEFAULT_STATIC_URL,
        cache_ttl: float = 60 * 60,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the loader.

        Args:
            url: URL of the GTFS static zip.
            cache_ttl: Seconds a loaded snapshot is reused before refetching.
            session: Optional requests session (a new one is created if None).
        """
        self.url = url
        self.cache: SnapshotCache[StaticSnapshot] = SnapshotCache(cache_ttl)
        self.session = session or requests.Session()

    def get_snapshot(self) -> Optional[StaticSnapshot]:
        """
        Freshest available snapshot.

        Refetches once the cached snapshot has expired. If the refetch fails the
        previous snapshot (possibly None) is returned and the error recorded.
        """
        if self.cache.is_fresh():
            logger.debug("Using cached GTFS static data")
            return self.cache.get()

        try:
            return self.load_from_url()
        except Exception as e:
            self.cache.record_error(str(e))
            return self.cache.get()

    def load_from_url(self) -> StaticSnapshot:
        """Download and load the GTFS static zip."""
        logger.info(f"Downloading GTFS data from {self.url}")
        try:
            response = self.session.get(self.url, timeout=DOWNLOAD_TIMEOUT)
            response.raise_for_status()

            content_length = response.headers.get("content-length")
            if content_length and int(content_length) > MAX_ARCHIVE_BYTES:
                raise ValueError("GTFS file too large")
            if len(response.content) > MAX_ARCHIVE_BYTES:
                raise ValueError("GTFS file too large")

            snapshot = self.parse_zip(response.content)
        except Exception as e:
            logger.error(f"Failed to load GTFS data: {e}")
            raise

        self.cache.set(snapshot)
        return snapshot

    def parse_zip(self, content: bytes) -> StaticSnapshot:
        """Parse the tables of a GTFS zip archive. Missing optional tables are empty."""
        with zipfile.ZipFile(io.BytesIO(content)) as zip_file:
            names = set(zip_file.namelist())

            def read(name: str) -> Optional[str]:
                if name not in names:
                    logger.warning(f"{name} missing from GTFS archive")
                    return None
                return zip_file.read(name).decode("utf-8-sig")

            snapshot = StaticSnapshot(
                stops=self._load_stops(read("stops.txt")),
                routes=self._load_routes(read("routes.txt")),
                trips=self._load_trips(read("trips.txt")),
                stop_times=self._load_stop_times(read("stop_times.txt")),
            )

        if not snapshot.stops:
            raise ValueError("No stops found in GTFS static data")

        self._log_loaded(snapshot)
        return snapshot

    def load_from_files(
        self,
        stops_path: str,
        routes_path: str,
        trips_path: str,
        stop_times_path: str,
    ) -> StaticSnapshot:
        """Load GTFS data from local CSV files."""
        logger.info("Loading GTFS data from local files")
        snapshot = StaticSnapshot(
            stops=self._load_stops(_read_file(stops_path)),
            routes=self._load_routes(_read_file(routes_path)),
            trips=self._load_trips(_read_file(trips_path)),
            stop_times=self._load_stop_times(_read_file(stop_times_path)),
        )
        self.cache.set(snapshot)
        self._log_loaded(snapshot)
        return snapshot

    def _load_stops(self, csv_content: Optional[CsvSource]) -> List[StopRecord]:
        """Parse stops.txt."""
        return [
            StopRecord(
                stop_id=row["stop_id"],
                stop_code=row.get("stop_code", ""),
                stop_name=row.get("stop_name", ""),
            )
            for row in _read_table(csv_content)
            if row.get("stop_id")
        ]

    def _load_routes(self, csv_content: Optional[CsvSource]) -> List[RouteRecord]:
        """Parse routes.txt."""
        return [
            RouteRecord(
                route_id=row["route_id"],
                route_short_name=row.get("route_short_name") or row.get("route_long_name") or row["route_id"],
                route_long_name=row.get("route_long_name", ""),
            )
            for row in _read_table(csv_content)
            if row.get("route_id")
        ]

    def _load_trips(self, csv_content: Optional[CsvSource]) -> List[TripRecord]:
        """Parse trips.txt."""
        return [
            TripRecord(
                trip_id=row["trip_id"],
                route_id=row.get("route_id", ""),
                trip_headsign=row.get("trip_headsign", ""),
            )
            for row in _read_table(csv_content)
            if row.get("trip_id")
        ]

    def _load_stop_times(self, csv_content: Optional[CsvSource]) -> List[ScheduledStopTime]:
        """Parse stop_times.txt. platform_code is an optional extension column."""
        return [
            ScheduledStopTime(
                trip_id=row["trip_id"],
                stop_id=row["stop_id"],
                arrival_time=row.get("arrival_time", ""),
                departure_time=row.get("departure_time", ""),
                platform_code=row.get("platform_code") or None,
            )
            for row in _read_table(csv_content)
            if row.get("trip_id") and row.get("stop_id")
        ]

    def clear(self) -> None:
        """Drop the cached snapshot to free memory."""
        self.cache.clear()
        logger.info("Cleared GTFS data from memory")

    @staticmethod
    def _log_loaded(snapshot: StaticSnapshot) -> None:
        logger.info(
            f"GTFS static data loaded: {len(snapshot.stops)} stops, "
            f"{len(snapshot.routes)} routes, {len(snapshot.trips)} trips, "
            f"{len(snapshot.stop_times)} stop times"
        )


def _read_file(path: str) -> str:
    with open(path, "r", encoding="utf-8-sig") as f:
        return f.read()


def _read_table(csv_content: Optional[CsvSource]) -> List[dict]:
    """Read a GTFS table into a list of row dicts, every value a stripped string."""
    if csv_content is None:
        return []
    source = io.StringIO(csv_content) if isinstance(csv_content, str) else csv_content
    try:
        df = pd.read_csv(source, dtype=str, keep_default_na=False, skipinitialspace=True)
    except pd.errors.EmptyDataError:
        return []
    df.columns = [column.strip() for column in df.columns]
    for column in df.columns:
        df[column] = df[column].str.strip()
    return df.to_dict("records")
