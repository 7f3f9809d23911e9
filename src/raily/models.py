"""Data models for the Raily schedule query engine."""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple, Union


@dataclass(frozen=True)
class Route:
    """Represents a GTFS route."""
    route_id: str
    long_name: str
    short_name: Optional[str] = None
    route_type: int = 2  # GTFS rail
    color: Optional[str] = None
    text_color: Optional[str] = None
    agency_id: Optional[str] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class Stop:
    """Represents a station or platform."""
    stop_id: str
    name: str
    latitude: float
    longitude: float
    code: Optional[str] = None
    platform_code: Optional[str] = None
    parent_station: Optional[str] = None
    wheelchair_boarding: Optional[int] = None
    timezone: Optional[str] = None
    url: Optional[str] = None


@dataclass(frozen=True)
class Trip:
    """One scheduled run of a train along a route."""
    trip_id: str
    route_id: str
    service_id: str = ""
    headsign: Optional[str] = None
    short_name: Optional[str] = None  # Rider-facing train number
    direction_id: Optional[int] = None
    shape_id: Optional[str] = None


@dataclass(frozen=True)
class StopTime:
    """A trip's scheduled arrival/departure at one stop."""
    trip_id: str
    stop_id: str
    stop_sequence: int
    arrival_time: str  # GTFS HH:MM:SS, hours may exceed 23
    departure_time: str
    stop_headsign: Optional[str] = None
    pickup_type: Optional[int] = None
    drop_off_type: Optional[int] = None
    timepoint: Optional[int] = None


@dataclass(frozen=True)
class EnrichedStopTime(StopTime):
    """Stop time with the stop's display name attached."""
    stop_name: str = ""
    stop_code: str = ""


@dataclass(frozen=True)
class ShapePoint:
    """A single point of a route shape."""
    shape_id: str
    latitude: float
    longitude: float
    sequence: int
    dist_traveled: Optional[float] = None


@dataclass(frozen=True)
class Viewport:
    """Axis-aligned map viewport in degrees."""
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def padded(self, degrees: float) -> "Viewport":
        """Return the viewport expanded by ``degrees`` on every side."""
        return Viewport(
            min_lat=self.min_lat - degrees,
            max_lat=self.max_lat + degrees,
            min_lon=self.min_lon - degrees,
            max_lon=self.max_lon + degrees,
        )


@dataclass(frozen=True)
class ShapeBounds:
    """Precomputed bounding box of a shape."""
    shape_id: str
    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float
    point_count: int


@dataclass
class VisibleShape:
    """A full shape returned by a viewport query."""
    shape_id: str
    coordinates: List[Tuple[float, float]]  # (latitude, longitude)


@dataclass(frozen=True)
class VisibleStation:
    """A station returned by a viewport query."""
    stop_id: str
    name: str
    latitude: float
    longitude: float


@dataclass(frozen=True)
class TrainMatch:
    """Search payload identifying a trip, optionally at a matched stop."""
    trip_id: str
    train_number: str
    stop_id: Optional[str] = None
    stop_name: Optional[str] = None


@dataclass
class SearchResult:
    """A single search hit for a station, route, or train."""
    id: str  # "<kind>-<disambiguator>", unique within one result list
    kind: str  # "station", "route" or "train"
    name: str
    subtitle: str
    payload: Union[Stop, Route, TrainMatch]


@dataclass
class TripSegment:
    """A trip that serves two stops in order."""
    trip_id: str
    train_number: str
    from_stop_time: EnrichedStopTime
    to_stop_time: EnrichedStopTime
    intermediate_stop_times: List[EnrichedStopTime]


@dataclass(frozen=True)
class RealtimePosition:
    """Live vehicle position reported for a trip."""
    trip_id: str
    latitude: float
    longitude: float
    timestamp: float  # Unix seconds
    bearing: Optional[float] = None
    speed: Optional[float] = None
    vehicle_id: Optional[str] = None
    train_number: Optional[str] = None


@dataclass(frozen=True)
class RealtimeUpdate:
    """Live delay for one stop of a trip. Delays are in seconds."""
    trip_id: str
    stop_id: Optional[str] = None
    arrival_delay: Optional[int] = None
    departure_delay: Optional[int] = None
    schedule_relationship: str = "SCHEDULED"


@dataclass(frozen=True)
class ActiveTrain:
    """A train currently reporting a live position."""
    train_number: str
    position: RealtimePosition


@dataclass
class RealtimeStatus:
    """Live data overlaid on a schedule-derived itinerary."""
    position: Optional[Tuple[float, float]] = None
    delay_minutes: Optional[int] = None
    status: str = "On Time"
    last_updated: Optional[float] = None
    delayed_depart_time: Optional[str] = None
    delayed_arrive_time: Optional[str] = None


@dataclass
class IntermediateStop:
    """A stop between an itinerary's origin and destination."""
    time: str  # 12-hour display time
    name: str
    code: str
    scheduled_time: str = ""  # Raw GTFS departure time


@dataclass(frozen=True)
class SavedTrainRef:
    """Minimal persisted pointer to a trip, an optional segment and a travel date."""
    trip_id: str
    from_stop_id: Optional[str] = None
    to_stop_id: Optional[str] = None
    travel_date: Optional[datetime] = None
    saved_at: float = field(default_factory=time.time)

    def duplicate_key(self) -> tuple:
        """Key under which two refs are considered the same saved trip."""
        return (self.trip_id, self.from_stop_id, self.to_stop_id, self.travel_date)


@dataclass
class Itinerary:
    """A trip (or one segment of it) ready for display."""
    trip_id: str
    train_number: str
    route_name: str
    origin_name: str
    origin_code: str
    destination_name: str
    destination_code: str
    depart_time: str
    arrive_time: str
    scheduled_departure: str = ""
    scheduled_arrival: str = ""
    intermediate_stops: List[IntermediateStop] = field(default_factory=list)
    date_label: str = "Today"
    days_away: int = 0
    realtime: Optional[RealtimeStatus] = None
    ref: Optional[SavedTrainRef] = None


@dataclass
class Feed:
    """Already-parsed schedule collections handed to the store in one load."""
    routes: List[Route] = field(default_factory=list)
    stops: List[Stop] = field(default_factory=list)
    stop_times_by_trip: Dict[str, List[StopTime]] = field(default_factory=dict)
    shapes_by_shape_id: Dict[str, List[ShapePoint]] = field(default_factory=dict)
    trips: List[Trip] = field(default_factory=list)
