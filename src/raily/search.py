"""Free-text and train-number search over stations, routes and trains."""

import logging
import re
from typing import List, Optional, Set

from .formatting import train_numbers_match
from .models import Route, SearchResult, Stop, Trip, TrainMatch
from .schedule_store import ScheduleStore, ScheduleView

logger = logging.getLogger(__name__)

_NICKNAME_WITH_NUMBER = re.compile(r"[a-z]+([0-9]{1,4})")


def classify_train_number(query: str) -> Optional[str]:
    """
    Extract a candidate train number from a search query.

    - "amt99" (any case) -> "99"
    - "2150" -> "2150"
    - "acela2150" (letters followed by 1-4 digits) -> "2150"

    Returns:
        The candidate number, or None when the query does not look like one.
    """
    text = query.strip().lower()
    if text.startswith("amt"):
        return text[3:].strip() or None
    if text.isascii() and text.isdigit():
        return text
    match = _NICKNAME_WITH_NUMBER.fullmatch(text)
    return match.group(1) if match else None


class _ResultCollector:
    """Accumulates unique results up to a limit."""

    def __init__(self, limit: int):
        self.limit = limit
        self.results: List[SearchResult] = []
        self.seen: Set[str] = set()

    @property
    def full(self) -> bool:
        return len(self.results) >= self.limit

    def add(self, result: SearchResult) -> None:
        if self.full or result.id in self.seen:
            return
        self.seen.add(result.id)
        self.results.append(result)


class SearchEngine:
    """
    Multi-strategy search over the loaded schedule.

    Strategies run in precedence order and their results are concatenated,
    deduplicated by result id and capped at MAX_RESULTS:

    1. station name contains the query
    2. station code contains the query (stations not already matched by name)
    3. route long name, short name or id contains the query
    4. trips whose train number equals the number found in the query
    5. trips calling at a stop whose name contains the query, then trips whose
       id ends with the number found in the query
    """

    MAX_RESULTS = 20
    MAX_TRAIN_NUMBER_MATCHES = 5

    def __init__(self, store: ScheduleStore):
        self.store = store

    def search(self, query: str) -> List[SearchResult]:
        """
        Search stations, routes and trains. Case-insensitive.

        Args:
            query: Free text, a station code, or a train number such as "AMT99".

        Returns:
            Ordered list of at most MAX_RESULTS results. Empty when nothing
            matches, the query is blank, or no schedule is loaded.
        """
        try:
            return self._search(query)
        except Exception as e:
            logger.error(f"Search for '{query}' failed: {e}", exc_info=True)
            return []

    def _search(self, query: str) -> List[SearchResult]:
        text = (query or "").strip().lower()
        if not text:
            return []
        schedule = self.store.snapshot()
        if not schedule.is_ready():
            logger.debug("Search issued before schedule was loaded")
            return []

        collector = _ResultCollector(self.MAX_RESULTS)
        candidate = classify_train_number(text)

        stations = sorted(schedule.get_all_stops(), key=lambda s: (s.name.lower(), s.stop_id))
        name_matched = set()
        for stop in stations:
            if text in stop.name.lower():
                name_matched.add(stop.stop_id)
                collector.add(self._station_result(stop, f'Name contains "{text}"'))

        for stop in stations:
            if stop.stop_id not in name_matched and text in stop.stop_id.lower():
                collector.add(self._station_result(stop, f'Station code matches "{stop.stop_id}"'))

        for route in sorted(schedule.get_all_routes(), key=lambda r: (r.long_name.lower(), r.route_id)):
            if self._route_matches(route, text):
                collector.add(
                    SearchResult(
                        id=f"route-{route.route_id}",
                        kind="route",
                        name=route.long_name or route.short_name or route.route_id,
                        subtitle=f"Route {route.short_name or route.route_id}",
                        payload=route,
                    )
                )

        if candidate and not collector.full:
            for trip in self._trips_with_number(schedule, candidate):
                collector.add(self._train_result(schedule, trip.trip_id, "Train number match"))

        if not collector.full:
            self._match_trips_by_stop(schedule, text, collector)

        if candidate and candidate.isdigit() and not collector.full:
            for trip_id in sorted(schedule.get_all_trip_ids()):
                if collector.full:
                    break
                if trip_id.endswith(candidate):
                    collector.add(self._train_result(schedule, trip_id, "Trip id match"))

        logger.debug(f"Search '{query}' returned {len(collector.results)} results")
        return collector.results

    def _match_trips_by_stop(self, schedule: ScheduleView, text: str, collector: _ResultCollector) -> None:
        for trip_id in sorted(schedule.get_all_trip_ids()):
            if collector.full:
                return
            for stop_id in schedule.get_stop_ids_for_trip(trip_id):
                stop = schedule.get_stop(stop_id)
                if stop is None or text not in stop.name.lower():
                    continue
                train_number = schedule.get_train_number(trip_id)
                collector.add(
                    SearchResult(
                        id=f"train-{trip_id}@{stop_id}",
                        kind="train",
                        name=f"Train {train_number}",
                        subtitle=f'Stops at "{stop.name}"',
                        payload=TrainMatch(
                            trip_id=trip_id,
                            train_number=train_number,
                            stop_id=stop_id,
                            stop_name=stop.name,
                        ),
                    )
                )

    def _trips_with_number(self, schedule: ScheduleView, candidate: str) -> List[Trip]:
        matches = [
            trip
            for trip in sorted(schedule.get_all_trips(), key=lambda t: t.trip_id)
            if trip.short_name and train_numbers_match(trip.short_name, candidate)
        ]
        return matches[: self.MAX_TRAIN_NUMBER_MATCHES]

    def _train_result(self, schedule: ScheduleView, trip_id: str, reason: str) -> SearchResult:
        train_number = schedule.get_train_number(trip_id)
        trip = schedule.get_trip(trip_id)
        route_name = schedule.get_route_name(trip.route_id) if trip else None
        name = f"{route_name} {train_number}" if route_name else f"Train {train_number}"

        stop_times = schedule.get_stop_times_for_trip(trip_id)
        if stop_times:
            subtitle = f"{stop_times[0].stop_name} to {stop_times[-1].stop_name}"
        else:
            subtitle = reason

        return SearchResult(
            id=f"train-{trip_id}",
            kind="train",
            name=name,
            subtitle=subtitle,
            payload=TrainMatch(trip_id=trip_id, train_number=train_number),
        )

    @staticmethod
    def _station_result(stop: Stop, subtitle: str) -> SearchResult:
        return SearchResult(
            id=f"station-{stop.stop_id}",
            kind="station",
            name=stop.name,
            subtitle=subtitle,
            payload=stop,
        )

    @staticmethod
    def _route_matches(route: Route, text: str) -> bool:
        return (
            text in (route.long_name or "").lower()
            or text in (route.short_name or "").lower()
            or text in route.route_id.lower()
        )
