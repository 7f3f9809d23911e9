"""Raily - Passenger rail schedule search, map and itinerary engine."""

__version__ = "0.1.0"

from .models import (
    Feed,
    Itinerary,
    Route,
    SavedTrainRef,
    SearchResult,
    Stop,
    StopTime,
    Trip,
    TripSegment,
    Viewport,
)
from .rail_tracker import RailTracker
from .schedule_store import ScheduleStore, ScheduleView
from .search import SearchEngine
from .itinerary import ItineraryEngine
from .resolver import SavedTrainResolver
from .gtfs_loader import GTFSLoader, GTFSLoadError
from .realtime_client import RealtimeClient
from .saved_trains import SavedTrainStore

__all__ = [
    "RailTracker",
    "ScheduleStore",
    "ScheduleView",
    "SearchEngine",
    "ItineraryEngine",
    "SavedTrainResolver",
    "GTFSLoader",
    "GTFSLoadError",
    "RealtimeClient",
    "SavedTrainStore",
    "Feed",
    "Itinerary",
    "Route",
    "SavedTrainRef",
    "SearchResult",
    "Stop",
    "StopTime",
    "Trip",
    "TripSegment",
    "Viewport",
]
