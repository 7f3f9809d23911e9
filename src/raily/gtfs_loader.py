"""GTFS static feed loader for Amtrak schedule data."""

import io
import logging
import time
import zipfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd
import requests

from .models import Feed, Route, ShapePoint, Stop, StopTime, Trip

logger = logging.getLogger(__name__)

# Amtrak GTFS static data URL
AMTRAK_GTFS_URL = "https://content.amtrak.com/content/gtfs/GTFS.zip"

REQUIRED_FILES = ("routes.txt", "stops.txt", "stop_times.txt")
OPTIONAL_FILES = ("trips.txt", "shapes.txt")

# Weekly refresh cadence for the static schedule
DEFAULT_MAX_AGE_DAYS = 7


class GTFSLoadError(Exception):
    """Raised when a GTFS feed cannot be downloaded or is missing required files."""


def is_stale(loaded_at: Optional[float], max_age_days: float = DEFAULT_MAX_AGE_DAYS, now: Optional[float] = None) -> bool:
    """True when a feed loaded at ``loaded_at`` (Unix seconds) should be refreshed."""
    if not loaded_at:
        return True
    current = time.time() if now is None else now
    return current - loaded_at > max_age_days * 86400


def _text(row: Dict[str, Any], key: str) -> Optional[str]:
    value = row.get(key)
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _to_int(value: Optional[str], default: Optional[int] = None) -> Optional[int]:
    if value is None:
        return default
    try:
        return int(float(value))
    except ValueError:
        return default


def _to_float(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class GTFSLoader:
    """Downloads and parses GTFS static data into a Feed."""

    def __init__(self, url: str = AMTRAK_GTFS_URL, timeout: float = 120):
        """
        Initialize the GTFS loader.

        Args:
            url: GTFS zip URL used by load_from_url().
            timeout: HTTP timeout in seconds.
        """
        self.url = url
        self.timeout = timeout

    def load_from_url(self) -> Feed:
        """Download the GTFS zip and parse it."""
        logger.info(f"Downloading GTFS data from {self.url}")
        try:
            response = requests.get(self.url, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to download GTFS data: {e}")
            raise GTFSLoadError(f"Failed to download {self.url}: {e}") from e

        return self._open_zip(io.BytesIO(response.content), self.url)

    def load_from_zip(self, path: Union[str, Path]) -> Feed:
        """Parse a GTFS zip file on disk."""
        logger.info(f"Loading GTFS data from {path}")
        return self._open_zip(path, path)

    def load_from_directory(self, path: Union[str, Path]) -> Feed:
        """Parse a directory of extracted GTFS .txt files."""
        logger.info(f"Loading GTFS data from directory {path}")
        directory = Path(path)
        tables = {}
        for name in REQUIRED_FILES + OPTIONAL_FILES:
            file_path = directory / name
            if file_path.exists():
                with open(file_path, "rb") as f:
                    tables[name] = self._read_csv(f)
        return self.parse_tables(tables)

    def _open_zip(self, source, label) -> Feed:
        try:
            zip_file = zipfile.ZipFile(source)
        except zipfile.BadZipFile as e:
            logger.error(f"{label} is not a valid GTFS zip: {e}")
            raise GTFSLoadError(f"{label} is not a valid zip archive") from e
        with zip_file:
            return self._load_zip(zip_file)

    def _load_zip(self, zip_file: zipfile.ZipFile) -> Feed:
        names = set(zip_file.namelist())
        tables = {}
        for name in REQUIRED_FILES + OPTIONAL_FILES:
            if name in names:
                with zip_file.open(name) as f:
                    tables[name] = self._read_csv(f)
        return self.parse_tables(tables)

    @staticmethod
    def _read_csv(source) -> pd.DataFrame:
        frame = pd.read_csv(source, dtype=str, keep_default_na=False, encoding="utf-8-sig")
        frame.columns = [column.strip() for column in frame.columns]
        return frame

    def parse_tables(self, tables: Dict[str, pd.DataFrame]) -> Feed:
        """
        Build a Feed from GTFS tables.

        Args:
            tables: File name (e.g. "stops.txt") -> DataFrame of string columns.

        Returns:
            Feed ready for ScheduleStore.load_feed().

        Raises:
            GTFSLoadError: If routes, stops or stop_times are missing.
        """
        missing = [name for name in REQUIRED_FILES if name not in tables]
        if missing:
            raise GTFSLoadError(f"Missing expected GTFS files: {', '.join(missing)}")

        empty = pd.DataFrame()
        feed = Feed(
            routes=self._build_routes(tables["routes.txt"]),
            stops=self._build_stops(tables["stops.txt"]),
            stop_times_by_trip=self._build_stop_times(tables["stop_times.txt"]),
            shapes_by_shape_id=self._build_shapes(tables.get("shapes.txt", empty)),
            trips=self._build_trips(tables.get("trips.txt", empty)),
        )
        logger.info(
            f"Parsed {len(feed.stops)} stops, {len(feed.routes)} routes, {len(feed.trips)} trips, "
            f"{len(feed.stop_times_by_trip)} itineraries and {len(feed.shapes_by_shape_id)} shapes"
        )
        return feed

    @staticmethod
    def _build_routes(frame: pd.DataFrame) -> List[Route]:
        routes = []
        for row in frame.to_dict("records"):
            route_id = _text(row, "route_id")
            if not route_id:
                continue
            short_name = _text(row, "route_short_name")
            routes.append(
                Route(
                    route_id=route_id,
                    long_name=_text(row, "route_long_name") or short_name or route_id,
                    short_name=short_name,
                    route_type=_to_int(_text(row, "route_type"), 2),
                    color=_text(row, "route_color"),
                    text_color=_text(row, "route_text_color"),
                    agency_id=_text(row, "agency_id"),
                    url=_text(row, "route_url"),
                )
            )
        return routes

    @staticmethod
    def _build_stops(frame: pd.DataFrame) -> List[Stop]:
        stops = []
        skipped = 0
        for row in frame.to_dict("records"):
            stop_id = _text(row, "stop_id")
            name = _text(row, "stop_name")
            latitude = _to_float(_text(row, "stop_lat"))
            longitude = _to_float(_text(row, "stop_lon"))
            if (
                not stop_id
                or not name
                or latitude is None
                or longitude is None
                or not -90 <= latitude <= 90
                or not -180 <= longitude <= 180
            ):
                skipped += 1
                continue
            stops.append(
                Stop(
                    stop_id=stop_id,
                    name=name,
                    latitude=latitude,
                    longitude=longitude,
                    code=_text(row, "stop_code"),
                    platform_code=_text(row, "platform_code"),
                    parent_station=_text(row, "parent_station"),
                    wheelchair_boarding=_to_int(_text(row, "wheelchair_boarding")),
                    timezone=_text(row, "stop_timezone"),
                    url=_text(row, "stop_url"),
                )
            )
        if skipped:
            logger.debug(f"Skipped {skipped} malformed stops")
        return stops

    @staticmethod
    def _build_trips(frame: pd.DataFrame) -> List[Trip]:
        trips = []
        for row in frame.to_dict("records"):
            trip_id = _text(row, "trip_id")
            if not trip_id:
                continue
            trips.append(
                Trip(
                    trip_id=trip_id,
                    route_id=_text(row, "route_id") or "",
                    service_id=_text(row, "service_id") or "",
                    headsign=_text(row, "trip_headsign"),
                    short_name=_text(row, "trip_short_name"),
                    direction_id=_to_int(_text(row, "direction_id")),
                    shape_id=_text(row, "shape_id"),
                )
            )
        return trips

    @staticmethod
    def _build_stop_times(frame: pd.DataFrame) -> Dict[str, List[StopTime]]:
        grouped: Dict[str, List[StopTime]] = {}
        for row in frame.to_dict("records"):
            trip_id = _text(row, "trip_id")
            stop_id = _text(row, "stop_id")
            if not trip_id or not stop_id:
                continue
            arrival = _text(row, "arrival_time") or _text(row, "departure_time") or ""
            departure = _text(row, "departure_time") or arrival
            grouped.setdefault(trip_id, []).append(
                StopTime(
                    trip_id=trip_id,
                    stop_id=stop_id,
                    stop_sequence=_to_int(_text(row, "stop_sequence"), 0),
                    arrival_time=arrival,
                    departure_time=departure,
                    stop_headsign=_text(row, "stop_headsign"),
                    pickup_type=_to_int(_text(row, "pickup_type")),
                    drop_off_type=_to_int(_text(row, "drop_off_type")),
                    timepoint=_to_int(_text(row, "timepoint")),
                )
            )
        for stop_times in grouped.values():
            stop_times.sort(key=lambda st: st.stop_sequence)
        return grouped

    @staticmethod
    def _build_shapes(frame: pd.DataFrame) -> Dict[str, List[ShapePoint]]:
        grouped: Dict[str, List[ShapePoint]] = {}
        for row in frame.to_dict("records"):
            shape_id = _text(row, "shape_id")
            latitude = _to_float(_text(row, "shape_pt_lat"))
            longitude = _to_float(_text(row, "shape_pt_lon"))
            if not shape_id or latitude is None or longitude is None:
                continue
            grouped.setdefault(shape_id, []).append(
                ShapePoint(
                    shape_id=shape_id,
                    latitude=latitude,
                    longitude=longitude,
                    sequence=_to_int(_text(row, "shape_pt_sequence"), 0),
                    dist_traveled=_to_float(_text(row, "shape_dist_traveled")),
                )
            )
        for points in grouped.values():
            points.sort(key=lambda p: p.sequence)
        return grouped
