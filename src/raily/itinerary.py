"""Per-trip itineraries and from/to segment discovery."""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from .formatting import format_time, train_numbers_match
from .models import EnrichedStopTime, IntermediateStop, Itinerary, TripSegment
from .schedule_store import ScheduleStore, ScheduleView

logger = logging.getLogger(__name__)


def first_stop_index(stop_times: Sequence[EnrichedStopTime], stop_id: str) -> int:
    """Index of the first call at ``stop_id``, or -1."""
    for i, stop_time in enumerate(stop_times):
        if stop_time.stop_id == stop_id:
            return i
    return -1


def to_intermediate_stops(stop_times: Sequence[EnrichedStopTime]) -> List[IntermediateStop]:
    """Convert stop times to display rows."""
    return [
        IntermediateStop(
            time=format_time(st.departure_time),
            name=st.stop_name,
            code=st.stop_id,
            scheduled_time=st.departure_time,
        )
        for st in stop_times
    ]


class ItineraryEngine:
    """
    Answers itinerary questions against the schedule store.

    This class provides methods to:
    - List the stops of a trip in order
    - List the trips calling at a stop
    - Find every trip that travels from one stop to another
    - Build a display itinerary for a trip
    """

    def __init__(self, store: ScheduleStore):
        self.store = store

    def get_stop_times_for_trip(self, trip_id: str) -> List[EnrichedStopTime]:
        return self.store.get_stop_times_for_trip(trip_id)

    def get_intermediate_stops(self, trip_id: str) -> List[EnrichedStopTime]:
        return self.store.get_intermediate_stops(trip_id)

    def get_trips_for_stop(self, stop_id: str) -> List[str]:
        return self.store.get_trips_for_stop(stop_id)

    def find_trips_with_stops(self, from_stop_id: str, to_stop_id: str) -> List[TripSegment]:
        """
        Find trips that call at ``from_stop_id`` and later at ``to_stop_id``.

        A trip only qualifies when the first call at the origin comes before
        the first call at the destination. Results are sorted by departure
        time from the origin, and only the first trip is kept per
        (train number, departure time) so the same train running on several
        service days is listed once.

        Args:
            from_stop_id: Boarding stop id.
            to_stop_id: Alighting stop id.

        Returns:
            List of TripSegment objects.
        """
        if not from_stop_id or not to_stop_id:
            return []

        # Only trips that call at both stops can qualify
        schedule = self.store.snapshot()
        candidates = set(schedule.get_trips_for_stop(from_stop_id))
        candidates.intersection_update(schedule.get_trips_for_stop(to_stop_id))

        segments: List[TripSegment] = []
        for trip_id in sorted(candidates):
            stop_times = schedule.get_stop_times_for_trip(trip_id)
            from_idx = first_stop_index(stop_times, from_stop_id)
            to_idx = first_stop_index(stop_times, to_stop_id)
            if from_idx == -1 or to_idx == -1 or from_idx >= to_idx:
                continue

            segments.append(
                TripSegment(
                    trip_id=trip_id,
                    train_number=schedule.get_train_number(trip_id),
                    from_stop_time=stop_times[from_idx],
                    to_stop_time=stop_times[to_idx],
                    intermediate_stop_times=stop_times[from_idx + 1:to_idx],
                )
            )

        segments.sort(key=lambda seg: seg.from_stop_time.departure_time)

        unique: Dict[Tuple[str, str], TripSegment] = {}
        for segment in segments:
            key = (segment.train_number, segment.from_stop_time.departure_time)
            unique.setdefault(key, segment)

        logger.debug(
            f"Found {len(unique)} trips from {from_stop_id} to {to_stop_id} "
            f"({len(segments) - len(unique)} duplicates dropped)"
        )
        return list(unique.values())

    def get_train_details(self, trip_id: str) -> Optional[Itinerary]:
        """
        Build the full itinerary of a trip.

        Args:
            trip_id: Trip id.

        Returns:
            Itinerary object, or None when the trip has no stop times.
        """
        return self._build_itinerary(self.store.snapshot(), trip_id)

    def get_trains_for_station(self, stop_id: str) -> List[Itinerary]:
        """Itineraries of every trip calling at a stop."""
        schedule = self.store.snapshot()
        trains = []
        for trip_id in schedule.get_trips_for_stop(stop_id):
            train = self._build_itinerary(schedule, trip_id)
            if train is not None:
                trains.append(train)
        return trains

    def find_trip_by_train_number(self, train_number: str) -> Optional[str]:
        """Id of the first trip (by id) whose train number matches."""
        if not train_number:
            return None
        schedule = self.store.snapshot()
        for trip_id in sorted(schedule.get_all_trip_ids()):
            if train_numbers_match(schedule.get_train_number(trip_id), train_number):
                return trip_id
        return None

    @staticmethod
    def _build_itinerary(schedule: ScheduleView, trip_id: str) -> Optional[Itinerary]:
        stop_times = schedule.get_stop_times_for_trip(trip_id)
        if not stop_times:
            return None

        first, last = stop_times[0], stop_times[-1]
        train_number = schedule.get_train_number(trip_id)
        route = schedule.get_route_for_trip(trip_id)

        return Itinerary(
            trip_id=trip_id,
            train_number=train_number,
            route_name=route.long_name if route and route.long_name else f"Train {train_number}",
            origin_name=first.stop_name,
            origin_code=first.stop_id,
            destination_name=last.stop_name,
            destination_code=last.stop_id,
            depart_time=format_time(first.departure_time),
            arrive_time=format_time(last.arrival_time),
            scheduled_departure=first.departure_time,
            scheduled_arrival=last.arrival_time,
            intermediate_stops=to_intermediate_stops(stop_times[1:-1]),
        )
