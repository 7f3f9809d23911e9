"""GTFS-Realtime fetcher and parser for live train positions and delays."""

import logging
import re
import time
from typing import Dict, List, Optional, Tuple

import requests
from google.transit import gtfs_realtime_pb2

from .formatting import format_delay
from .models import ActiveTrain, RealtimePosition, RealtimeUpdate

logger = logging.getLogger(__name__)

# Transitdocs GTFS-RT endpoint (vehicle positions and trip updates in one feed)
TRANSITDOCS_GTFS_RT_URL = "https://asm-backend.transitdocs.com/gtfs/amtrak"

_AMTRAK_TRIP_ID = re.compile(r"_AMTK_([0-9]+)\Z")


def extract_realtime_train_number(trip_id: str) -> str:
    """
    Extract the train number from a realtime trip id.

    "2026-01-16_AMTK_543" -> "543"; any other id is assumed to already be
    a train number.
    """
    match = _AMTRAK_TRIP_ID.search(trip_id)
    return match.group(1) if match else trip_id


class RealtimeClient:
    """Fetches and caches live positions and trip updates."""

    format_delay = staticmethod(format_delay)

    def __init__(self, feed_url: str = TRANSITDOCS_GTFS_RT_URL, cache_ttl: float = 15, timeout: float = 10):
        """
        Initialize the realtime client.

        Args:
            feed_url: GTFS-RT protobuf endpoint.
            cache_ttl: Seconds before cached positions/updates are refetched.
            timeout: HTTP timeout in seconds.
        """
        self.feed_url = feed_url
        self._cache_ttl = cache_ttl
        self._timeout = timeout
        self._positions_cache: Optional[Tuple[Dict[str, RealtimePosition], float]] = None
        self._updates_cache: Optional[Tuple[Dict[str, List[RealtimeUpdate]], float]] = None

    def get_position_for_trip(self, trip_id_or_number: str) -> Optional[RealtimePosition]:
        """
        Get the live position of a trip.

        Args:
            trip_id_or_number: Realtime trip id or plain train number.

        Returns:
            RealtimePosition, or None when the train is not reporting.
        """
        positions = self.get_all_positions()
        position = positions.get(trip_id_or_number)
        if position is None:
            position = positions.get(extract_realtime_train_number(trip_id_or_number))
        return position

    def get_all_positions(self) -> Dict[str, RealtimePosition]:
        """All live positions, keyed by trip id and by train number."""
        now = time.time()
        if self._positions_cache and now - self._positions_cache[1] < self._cache_ttl:
            logger.debug("Using cached vehicle positions")
            return self._positions_cache[0]

        try:
            positions = self._parse_vehicle_positions(self._fetch_feed())
        except Exception as e:
            logger.warning(f"Failed to fetch vehicle positions: {e}")
            # Stale data beats no data
            return self._positions_cache[0] if self._positions_cache else {}

        self._positions_cache = (positions, now)
        return positions

    def get_updates_for_trip(self, trip_id_or_number: str) -> List[RealtimeUpdate]:
        """Stop-level delay updates for a trip, or an empty list."""
        updates = self.get_all_updates()
        trip_updates = updates.get(trip_id_or_number)
        if trip_updates is None:
            trip_updates = updates.get(extract_realtime_train_number(trip_id_or_number))
        return trip_updates or []

    def get_all_updates(self) -> Dict[str, List[RealtimeUpdate]]:
        """All trip updates, keyed by trip id and by train number."""
        now = time.time()
        if self._updates_cache and now - self._updates_cache[1] < self._cache_ttl:
            logger.debug("Using cached trip updates")
            return self._updates_cache[0]

        try:
            updates = self._parse_trip_updates(self._fetch_feed())
        except Exception as e:
            logger.warning(f"Failed to fetch trip updates: {e}")
            return self._updates_cache[0] if self._updates_cache else {}

        self._updates_cache = (updates, now)
        return updates

    def get_delay_for_stop(self, trip_id_or_number: str, stop_id: str) -> Optional[int]:
        """Departure delay at a stop in whole minutes, or None when unknown."""
        for update in self.get_updates_for_trip(trip_id_or_number):
            if update.stop_id == stop_id and update.departure_delay is not None:
                return round(update.departure_delay / 60)
        return None

    def get_all_active_trains(self) -> List[ActiveTrain]:
        """One entry per train currently reporting a position."""
        trains: List[ActiveTrain] = []
        seen = set()
        for key, position in self.get_all_positions().items():
            train_number = position.train_number or extract_realtime_train_number(key)
            if train_number not in seen:
                seen.add(train_number)
                trains.append(ActiveTrain(train_number=train_number, position=position))
        return trains

    def clear_cache(self) -> None:
        """Manually clear the cache."""
        self._positions_cache = None
        self._updates_cache = None

    def _fetch_feed(self) -> bytes:
        """
        Fetch the raw GTFS-RT feed.

        Returns:
            Raw protobuf bytes.
        """
        logger.debug(f"Fetching {self.feed_url}")
        response = requests.get(self.feed_url, timeout=self._timeout)
        response.raise_for_status()
        return response.content

    @staticmethod
    def _parse_vehicle_positions(feed_data: bytes) -> Dict[str, RealtimePosition]:
        """
        Parse vehicle positions from a GTFS-RT feed.

        Args:
            feed_data: Raw protobuf bytes.

        Returns:
            Positions keyed by trip id, and also by train number when it differs.
        """
        feed = gtfs_realtime_pb2.FeedMessage()
        feed.ParseFromString(feed_data)

        positions: Dict[str, RealtimePosition] = {}
        for entity in feed.entity:
            if not entity.HasField("vehicle"):
                continue
            vehicle = entity.vehicle
            if not vehicle.HasField("position") or not vehicle.HasField("trip"):
                continue

            trip_id = vehicle.trip.trip_id
            train_number = extract_realtime_train_number(trip_id)
            position = RealtimePosition(
                trip_id=trip_id,
                latitude=vehicle.position.latitude,
                longitude=vehicle.position.longitude,
                timestamp=float(vehicle.timestamp) if vehicle.HasField("timestamp") else time.time(),
                bearing=vehicle.position.bearing if vehicle.position.HasField("bearing") else None,
                speed=vehicle.position.speed if vehicle.position.HasField("speed") else None,
                vehicle_id=vehicle.vehicle.id if vehicle.HasField("vehicle") and vehicle.vehicle.id else None,
                train_number=train_number,
            )
            positions[trip_id] = position
            if train_number != trip_id:
                positions[train_number] = position

        logger.debug(f"Parsed {len(positions)} vehicle position keys")
        return positions

    @staticmethod
    def _parse_trip_updates(feed_data: bytes) -> Dict[str, List[RealtimeUpdate]]:
        """
        Parse trip updates from a GTFS-RT feed.

        Args:
            feed_data: Raw protobuf bytes.

        Returns:
            Stop updates keyed by trip id, and also by train number when it differs.
        """
        feed = gtfs_realtime_pb2.FeedMessage()
        feed.ParseFromString(feed_data)
        relationship = gtfs_realtime_pb2.TripUpdate.StopTimeUpdate.ScheduleRelationship

        updates: Dict[str, List[RealtimeUpdate]] = {}
        for entity in feed.entity:
            if not entity.HasField("trip_update"):
                continue

            trip_id = entity.trip_update.trip.trip_id
            stop_updates = []
            for stop_time_update in entity.trip_update.stop_time_update:
                arrival = stop_time_update.arrival
                departure = stop_time_update.departure
                stop_updates.append(
                    RealtimeUpdate(
                        trip_id=trip_id,
                        stop_id=stop_time_update.stop_id or None,
                        arrival_delay=(
                            arrival.delay
                            if stop_time_update.HasField("arrival") and arrival.HasField("delay")
                            else None
                        ),
                        departure_delay=(
                            departure.delay
                            if stop_time_update.HasField("departure") and departure.HasField("delay")
                            else None
                        ),
                        schedule_relationship=relationship.Name(stop_time_update.schedule_relationship),
                    )
                )

            if stop_updates:
                updates[trip_id] = stop_updates
                train_number = extract_realtime_train_number(trip_id)
                if train_number != trip_id:
                    updates[train_number] = stop_updates

        logger.debug(f"Parsed trip updates for {len(updates)} keys")
        return updates
