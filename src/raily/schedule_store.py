"""In-memory store for one snapshot of the static schedule feed."""

import logging
import threading
from dataclasses import fields
from typing import Dict, Iterable, List, Mapping, Optional

from .formatting import trailing_digits
from .models import EnrichedStopTime, Feed, Route, ShapePoint, Stop, StopTime, Trip

logger = logging.getLogger(__name__)


class _Snapshot:
    """Immutable set of collections published by a single load."""

    def __init__(
        self,
        routes: Dict[str, Route],
        stops: Dict[str, Stop],
        trips: Dict[str, Trip],
        stop_times: Dict[str, List[StopTime]],
        shapes: Dict[str, List[ShapePoint]],
    ):
        self.routes = routes
        self.stops = stops
        self.trips = trips
        self.stop_times = stop_times
        self.shapes = shapes
        self.trips_by_stop: Dict[str, List[str]] = {}

        for trip_id, times in stop_times.items():
            for stop_id in {st.stop_id for st in times}:
                self.trips_by_stop.setdefault(stop_id, []).append(trip_id)


_EMPTY = _Snapshot({}, {}, {}, {}, {})


class ScheduleView:
    """
    Read-only lookups over one schedule snapshot.

    A view never changes after it is created, so a query that needs several
    lookups can take one view and get consistent answers even while a new
    schedule is being loaded.
    """

    def __init__(self, snapshot: _Snapshot):
        self._snapshot = snapshot

    def is_ready(self) -> bool:
        """True once both routes and stops have been loaded."""
        snapshot = self._snapshot
        return bool(snapshot.routes) and bool(snapshot.stops)

    def get_route(self, route_id: str) -> Optional[Route]:
        return self._snapshot.routes.get(route_id)

    def get_stop(self, stop_id: str) -> Optional[Stop]:
        return self._snapshot.stops.get(stop_id)

    def get_trip(self, trip_id: str) -> Optional[Trip]:
        return self._snapshot.trips.get(trip_id)

    def get_stop_name(self, stop_id: str) -> str:
        """Stop name, or the raw id when the stop is unknown."""
        stop = self._snapshot.stops.get(stop_id)
        return stop.name if stop and stop.name else stop_id

    def get_route_name(self, route_id: str) -> Optional[str]:
        """Long name of a route, or None when unknown or unnamed."""
        route = self._snapshot.routes.get(route_id)
        return route.long_name if route and route.long_name else None

    def get_route_for_trip(self, trip_id: str) -> Optional[Route]:
        trip = self._snapshot.trips.get(trip_id)
        if trip is None:
            return None
        return self._snapshot.routes.get(trip.route_id)

    def get_train_number(self, trip_id: str) -> str:
        """
        Rider-facing train number for a trip.

        Uses the trip's short name when present, otherwise the trailing digits
        of the trip id (some feeds only encode the number there), otherwise
        the trip id itself.
        """
        trip = self._snapshot.trips.get(trip_id)
        if trip and trip.short_name:
            return trip.short_name
        return trailing_digits(trip_id) or trip_id

    def get_stop_times_for_trip(self, trip_id: str) -> List[EnrichedStopTime]:
        """All stop times of a trip, ascending by stop sequence, with stop names."""
        if not trip_id:
            return []
        snapshot = self._snapshot
        return [self._enrich(snapshot, st) for st in snapshot.stop_times.get(trip_id, [])]

    def get_intermediate_stops(self, trip_id: str) -> List[EnrichedStopTime]:
        """Stop times of a trip without its first and last stop."""
        return self.get_stop_times_for_trip(trip_id)[1:-1]

    def get_stop_ids_for_trip(self, trip_id: str) -> List[str]:
        """Distinct stop ids a trip visits, in stop sequence order."""
        stop_ids = (st.stop_id for st in self._snapshot.stop_times.get(trip_id, []))
        return list(dict.fromkeys(stop_ids))

    def get_trips_for_stop(self, stop_id: str) -> List[str]:
        """Ids of every trip that calls at a stop."""
        return list(self._snapshot.trips_by_stop.get(stop_id, []))

    def get_all_routes(self) -> List[Route]:
        return list(self._snapshot.routes.values())

    def get_all_stops(self) -> List[Stop]:
        return list(self._snapshot.stops.values())

    def get_all_trip_ids(self) -> List[str]:
        """Ids of every trip that has an itinerary (stop times)."""
        return list(self._snapshot.stop_times.keys())

    def get_all_trips(self) -> List[Trip]:
        return list(self._snapshot.trips.values())

    def get_shape(self, shape_id: str) -> List[ShapePoint]:
        return list(self._snapshot.shapes.get(shape_id, []))

    def get_raw_shapes(self) -> Dict[str, List[ShapePoint]]:
        """shape_id -> points ordered by sequence, for the shape index."""
        return {shape_id: list(points) for shape_id, points in self._snapshot.shapes.items()}

    @staticmethod
    def _enrich(snapshot: _Snapshot, stop_time: StopTime) -> EnrichedStopTime:
        stop = snapshot.stops.get(stop_time.stop_id)
        return EnrichedStopTime(
            **{f.name: getattr(stop_time, f.name) for f in fields(StopTime)},
            stop_name=stop.name if stop and stop.name else stop_time.stop_id,
            stop_code=stop_time.stop_id,
        )


class ScheduleStore(ScheduleView):
    """
    Owns the normalized schedule entities and exposes lookup primitives.

    A load replaces every collection at once: the new collections are built
    off to the side and published with a single assignment, so readers see
    either the old snapshot or the new one, never a mix.
    """

    def __init__(self):
        """Initialize an empty, not-ready store."""
        super().__init__(_EMPTY)
        self._write_lock = threading.Lock()

    def snapshot(self) -> ScheduleView:
        """A view pinned to the schedule loaded right now."""
        return ScheduleView(self._snapshot)

    def load(
        self,
        routes: Iterable[Route],
        stops: Iterable[Stop],
        stop_times_by_trip: Mapping[str, Iterable[StopTime]],
        shapes_by_shape_id: Mapping[str, Iterable[ShapePoint]],
        trips: Iterable[Trip] = (),
    ) -> None:
        """
        Replace the whole schedule snapshot.

        Records with a missing or empty primary key are skipped.

        Args:
            routes: Route records.
            stops: Stop records.
            stop_times_by_trip: trip_id -> stop times of that trip (any order).
            shapes_by_shape_id: shape_id -> shape points (any order).
            trips: Trip records.
        """
        skipped = 0

        route_map: Dict[str, Route] = {}
        for route in routes or ():
            if route is None or not route.route_id:
                skipped += 1
                continue
            route_map[route.route_id] = route

        stop_map: Dict[str, Stop] = {}
        for stop in stops or ():
            if stop is None or not stop.stop_id:
                skipped += 1
                continue
            stop_map[stop.stop_id] = stop

        trip_map: Dict[str, Trip] = {}
        for trip in trips or ():
            if trip is None or not trip.trip_id:
                skipped += 1
                continue
            trip_map[trip.trip_id] = trip

        stop_time_map: Dict[str, List[StopTime]] = {}
        for trip_id, times in (stop_times_by_trip or {}).items():
            if not trip_id or times is None:
                skipped += 1
                continue
            valid = [st for st in times if st is not None and st.stop_id]
            stop_time_map[trip_id] = sorted(valid, key=lambda st: st.stop_sequence)

        shape_map: Dict[str, List[ShapePoint]] = {}
        for shape_id, points in (shapes_by_shape_id or {}).items():
            if not shape_id or points is None:
                skipped += 1
                continue
            valid = [p for p in points if p is not None]
            shape_map[shape_id] = sorted(valid, key=lambda p: p.sequence)

        snapshot = _Snapshot(route_map, stop_map, trip_map, stop_time_map, shape_map)
        with self._write_lock:
            self._snapshot = snapshot

        if skipped:
            logger.debug(f"Skipped {skipped} schedule records without a primary key")
        logger.info(
            f"Loaded {len(stop_map)} stops, {len(route_map)} routes, "
            f"{len(trip_map)} trips, {len(stop_time_map)} itineraries and {len(shape_map)} shapes"
        )

    def load_feed(self, feed: Feed) -> None:
        """Replace the snapshot from a parsed Feed bundle."""
        self.load(
            feed.routes,
            feed.stops,
            feed.stop_times_by_trip,
            feed.shapes_by_shape_id,
            feed.trips,
        )

    def clear(self) -> None:
        """Drop all loaded data to free memory."""
        with self._write_lock:
            self._snapshot = _EMPTY
        logger.info("Cleared schedule data from memory")
