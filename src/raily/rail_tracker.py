"""Main Raily tracker class."""

import logging
import time
from datetime import date
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .gtfs_loader import GTFSLoader, is_stale
from .itinerary import ItineraryEngine
from .models import (
    Feed,
    Itinerary,
    RealtimeStatus,
    SavedTrainRef,
    SearchResult,
    TripSegment,
    Viewport,
    VisibleShape,
    VisibleStation,
)
from .resolver import SavedTrainResolver
from .saved_trains import SavedTrainStore
from .schedule_store import ScheduleStore
from .search import SearchEngine
from .shape_index import DEFAULT_SHAPE_PADDING, ShapeIndex
from .station_index import DEFAULT_STATION_PADDING, StationIndex

logger = logging.getLogger(__name__)


class RailTracker:
    """
    Answers schedule, map and saved-trip queries for a passenger rail network.

    This class provides methods to:
    - Load a GTFS schedule and rebuild the map indices
    - Search stations, routes and trains
    - Get the stations and route shapes inside a map viewport
    - Find trains between two stations and build their itineraries
    - Resolve saved trips against the current schedule, with live delays
    """

    def __init__(
        self,
        realtime=None,
        loader: Optional[GTFSLoader] = None,
        saved_trains: Optional[SavedTrainStore] = None,
        load_gtfs: bool = False,
    ):
        """
        Initialize the tracker.

        Args:
            realtime: Optional live data collaborator, usually a RealtimeClient.
            loader: GTFS loader; a default Amtrak loader is created if omitted.
            saved_trains: Optional store used by the saved-trip helpers.
            load_gtfs: If True, download and load GTFS data on init. If False, call
                      load() or one of the load_gtfs_from_*() methods manually.
        """
        self.store = ScheduleStore()
        self.shape_index = ShapeIndex()
        self.station_index = StationIndex()
        self.search_engine = SearchEngine(self.store)
        self.itineraries = ItineraryEngine(self.store)
        self.realtime = realtime
        self.resolver = SavedTrainResolver(self.itineraries, realtime)
        self.loader = loader or GTFSLoader()
        self.saved_trains = saved_trains
        self.loaded_at: Optional[float] = None

        if load_gtfs:
            try:
                self.load_gtfs_from_url()
            except Exception as e:
                logger.error(f"Failed to load GTFS from URL: {e}")
                raise

    def load(self, routes, stops, stop_times_by_trip, shapes_by_shape_id, trips=()) -> None:
        """Replace the schedule and rebuild both map indices."""
        self.store.load(routes, stops, stop_times_by_trip, shapes_by_shape_id, trips)
        self._rebuild_indices()

    def load_feed(self, feed: Feed) -> None:
        """Replace the schedule from a parsed Feed and rebuild both map indices."""
        self.store.load_feed(feed)
        self._rebuild_indices()

    def load_gtfs_from_url(self) -> None:
        """Download and load the loader's GTFS zip."""
        self.load_feed(self.loader.load_from_url())

    def load_gtfs_from_zip(self, path: Union[str, Path]) -> None:
        """Load a GTFS zip from disk."""
        self.load_feed(self.loader.load_from_zip(path))

    def load_gtfs_from_directory(self, path: Union[str, Path]) -> None:
        """Load a directory of extracted GTFS files."""
        self.load_feed(self.loader.load_from_directory(path))

    def _rebuild_indices(self) -> None:
        self.shape_index.build(self.store.get_raw_shapes())
        self.station_index.build(self.store.get_all_stops())
        self.loaded_at = time.time()

    def is_ready(self) -> bool:
        return self.store.is_ready()

    def needs_refresh(self, max_age_days: float = 7) -> bool:
        """True when no schedule is loaded or the loaded one is older than ``max_age_days``."""
        return not self.is_ready() or is_stale(self.loaded_at, max_age_days)

    def search(self, query: str) -> List[SearchResult]:
        """
        Search stations, routes and trains.

        Args:
            query: Station name or code, route name, or train number (e.g. "Boston", "NYP", "AMT99").

        Returns:
            List of at most 20 SearchResult objects.
        """
        return self.search_engine.search(query)

    def get_visible_shapes(
        self, viewport: Viewport, padding_degrees: float = DEFAULT_SHAPE_PADDING
    ) -> List[VisibleShape]:
        return self.shape_index.get_visible_shapes(viewport, padding_degrees)

    def get_visible_stations(
        self, viewport: Viewport, padding_degrees: float = DEFAULT_STATION_PADDING
    ) -> List[VisibleStation]:
        return self.station_index.get_visible_stations(viewport, padding_degrees)

    def get_all_shapes(self) -> List[VisibleShape]:
        return self.shape_index.get_all_shapes()

    def get_all_stations(self) -> List[VisibleStation]:
        return self.station_index.get_all_stations()

    def get_train_details(self, trip_id: str, include_realtime: bool = True) -> Optional[Itinerary]:
        """
        Get the full itinerary of a trip.

        Args:
            trip_id: Trip id (from a search result or segment).
            include_realtime: Overlay live delay/position when a realtime client is set.

        Returns:
            Itinerary object, or None if the trip is unknown.
        """
        itinerary = self.itineraries.get_train_details(trip_id)
        if itinerary is not None and include_realtime:
            self.resolver.apply_realtime(itinerary)
        return itinerary

    def get_trains_for_station(self, stop_id: str) -> List[Itinerary]:
        return self.itineraries.get_trains_for_station(stop_id)

    def find_trips_with_stops(self, from_stop_id: str, to_stop_id: str) -> List[TripSegment]:
        return self.itineraries.find_trips_with_stops(from_stop_id, to_stop_id)

    def resolve_saved(self, ref: SavedTrainRef, today: Optional[date] = None) -> Optional[Itinerary]:
        return self.resolver.resolve(ref, today=today)

    def resolve_all_saved(
        self, refs: Optional[Iterable[SavedTrainRef]] = None, today: Optional[date] = None
    ) -> List[Itinerary]:
        """
        Resolve saved references into itineraries.

        Args:
            refs: References to resolve; defaults to everything in the saved-trains store.
            today: Reference day for the days-away count.

        Returns:
            Itineraries for the references whose trips are still scheduled.
        """
        if refs is None:
            refs = self.saved_trains.get_all() if self.saved_trains else []
        return self.resolver.resolve_all(refs, today=today)

    def get_active_trains(self) -> List[Itinerary]:
        """
        Get an itinerary for every train currently reporting a live position.

        Trains that cannot be matched to the schedule are returned as a
        minimal itinerary with status "Live".
        """
        if self.realtime is None:
            return []
        try:
            active = self.realtime.get_all_active_trains()
        except Exception as e:
            logger.warning(f"Could not fetch active trains: {e}")
            return []

        trains = []
        for train in active:
            position = train.position
            trip_id = position.trip_id
            if not self.itineraries.get_stop_times_for_trip(trip_id):
                trip_id = self.itineraries.find_trip_by_train_number(train.train_number)

            itinerary = self.itineraries.get_train_details(trip_id) if trip_id else None
            if itinerary is not None:
                trains.append(self.resolver.apply_realtime(itinerary))
                continue

            trains.append(
                Itinerary(
                    trip_id=position.trip_id,
                    train_number=train.train_number,
                    route_name=f"Train {train.train_number}",
                    origin_name="",
                    origin_code="",
                    destination_name="",
                    destination_code="",
                    depart_time="",
                    arrive_time="",
                    realtime=RealtimeStatus(
                        position=(position.latitude, position.longitude),
                        status="Live",
                        last_updated=position.timestamp,
                    ),
                )
            )
        logger.debug(f"Mapped {len(trains)} active trains")
        return trains

    def cleanup(self) -> None:
        """Release resources and clear caches."""
        if self.realtime is not None:
            self.realtime.clear_cache()
        # Schedule data is expensive to reload, so it is kept
        logger.info("Cleaned up tracker resources")
