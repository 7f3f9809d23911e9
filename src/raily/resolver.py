"""Rebuilds full itineraries from saved train references."""

import logging
from datetime import date
from typing import Iterable, List, Optional, Sequence

from .formatting import (
    calculate_days_away,
    format_date_for_display,
    format_delay,
    format_time,
    shift_time,
)
from .itinerary import ItineraryEngine, first_stop_index, to_intermediate_stops
from .models import Itinerary, RealtimeStatus, RealtimeUpdate, SavedTrainRef

logger = logging.getLogger(__name__)


def _delay_minutes(updates: Sequence[RealtimeUpdate], stop_id: str, departure: bool) -> Optional[int]:
    """Delay at a stop in whole minutes, preferring departure or arrival delay."""
    for update in updates:
        if update.stop_id != stop_id:
            continue
        first, second = (
            (update.departure_delay, update.arrival_delay)
            if departure
            else (update.arrival_delay, update.departure_delay)
        )
        seconds = first if first is not None else second
        if seconds is not None:
            return round(seconds / 60)
    return None


class SavedTrainResolver:
    """
    Reconstructs the current itinerary behind a SavedTrainRef.

    Saved references only carry a trip id, optional segment endpoints and an
    optional travel date. Everything else comes from the schedule snapshot
    that is loaded right now, optionally overlaid with live data.
    """

    def __init__(self, itineraries: ItineraryEngine, realtime=None):
        """
        Args:
            itineraries: Itinerary engine over the current schedule.
            realtime: Optional realtime collaborator exposing
                ``get_position_for_trip(trip_id)`` and ``get_all_updates()``.
        """
        self.itineraries = itineraries
        self.realtime = realtime

    def resolve(
        self,
        ref: SavedTrainRef,
        today: Optional[date] = None,
        include_realtime: bool = True,
    ) -> Optional[Itinerary]:
        """
        Resolve one saved reference.

        Args:
            ref: The saved reference.
            today: Reference day for the days-away count (defaults to today).
            include_realtime: Overlay live delay/position when available.

        Returns:
            Itinerary object, or None when the trip is no longer in the schedule.
        """
        itinerary = self.itineraries.get_train_details(ref.trip_id)
        if itinerary is None:
            logger.info(f"Saved trip {ref.trip_id} is not in the current schedule")
            return None

        stop_times = self.itineraries.get_stop_times_for_trip(ref.trip_id)
        from_idx = first_stop_index(stop_times, ref.from_stop_id) if ref.from_stop_id else -1
        to_idx = first_stop_index(stop_times, ref.to_stop_id) if ref.to_stop_id else -1

        if from_idx != -1 and to_idx != -1 and from_idx >= to_idx:
            logger.warning(
                f"Saved segment {ref.from_stop_id}->{ref.to_stop_id} is out of order "
                f"on trip {ref.trip_id}; using the full trip"
            )
            from_idx = to_idx = -1

        if from_idx != -1:
            origin = stop_times[from_idx]
            itinerary.origin_name = origin.stop_name
            itinerary.origin_code = origin.stop_id
            itinerary.depart_time = format_time(origin.departure_time)
            itinerary.scheduled_departure = origin.departure_time

        if to_idx != -1:
            destination = stop_times[to_idx]
            itinerary.destination_name = destination.stop_name
            itinerary.destination_code = destination.stop_id
            itinerary.arrive_time = format_time(destination.arrival_time)
            itinerary.scheduled_arrival = destination.arrival_time

        if from_idx != -1 or to_idx != -1:
            start = from_idx if from_idx != -1 else 0
            end = to_idx if to_idx != -1 else len(stop_times) - 1
            itinerary.intermediate_stops = to_intermediate_stops(stop_times[start + 1:end])

        if ref.travel_date is not None:
            itinerary.date_label = format_date_for_display(ref.travel_date)
            itinerary.days_away = calculate_days_away(ref.travel_date, today)

        itinerary.ref = ref

        if include_realtime and self.realtime is not None:
            self.apply_realtime(itinerary)

        return itinerary

    def resolve_all(
        self,
        refs: Iterable[SavedTrainRef],
        today: Optional[date] = None,
        include_realtime: bool = True,
    ) -> List[Itinerary]:
        """
        Resolve every reference, keeping only those that still resolve.

        Stale references are dropped from the result but are not deleted
        from storage.
        """
        resolved = []
        for ref in refs:
            try:
                itinerary = self.resolve(ref, today=today, include_realtime=include_realtime)
            except Exception as e:
                logger.error(f"Failed to resolve saved trip {ref!r}: {e}", exc_info=True)
                continue
            if itinerary is not None:
                resolved.append(itinerary)
        return resolved

    def apply_realtime(self, itinerary: Itinerary) -> Itinerary:
        """
        Overlay live position and delay on an itinerary.

        Scheduled times are left untouched; delayed times are added to the
        itinerary's RealtimeStatus.
        """
        if self.realtime is None:
            return itinerary

        try:
            position = self.realtime.get_position_for_trip(itinerary.trip_id)
            if position is None and itinerary.train_number != itinerary.trip_id:
                # Live feeds key vehicles by train number, not by schedule trip id
                position = self.realtime.get_position_for_trip(itinerary.train_number)
            all_updates = self.realtime.get_all_updates() or {}
        except Exception as e:
            logger.warning(f"Could not fetch real-time data for {itinerary.trip_id}: {e}")
            return itinerary

        updates = all_updates.get(itinerary.trip_id) or all_updates.get(itinerary.train_number) or []
        if position is None and not updates:
            return itinerary

        depart_delay = _delay_minutes(updates, itinerary.origin_code, departure=True)
        arrive_delay = _delay_minutes(updates, itinerary.destination_code, departure=False)
        delay = depart_delay if depart_delay is not None else arrive_delay

        itinerary.realtime = RealtimeStatus(
            position=(position.latitude, position.longitude) if position else None,
            delay_minutes=delay,
            status=format_delay(delay),
            last_updated=position.timestamp if position else None,
            delayed_depart_time=(
                format_time(shift_time(itinerary.scheduled_departure, depart_delay))
                if depart_delay
                else None
            ),
            delayed_arrive_time=(
                format_time(shift_time(itinerary.scheduled_arrival, arrive_delay))
                if arrive_delay
                else None
            ),
        )
        return itinerary
