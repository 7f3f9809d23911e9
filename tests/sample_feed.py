"""Small Northeast Corridor schedule shared by the tests."""

import sys
from pathlib import Path

# Add src to path so we can import raily
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from raily.models import Feed, Route, ShapePoint, Stop, StopTime, Trip
from raily.schedule_store import ScheduleStore

STOPS = [
    Stop("BOS", "Boston South Station", 42.3523, -71.0552),
    Stop("BBY", "Boston Back Bay", 42.3473, -71.0753),
    Stop("NYP", "New York Penn Station", 40.7506, -73.9935),
    Stop("PHL", "Philadelphia 30th Street", 39.9557, -75.1820),
    Stop("WAS", "Washington Union Station", 38.8973, -77.0063),
]

ROUTES = [
    Route("40751", "Acela"),
    Route("88", "Northeast Regional"),
]

TRIPS = [
    Trip("t1", "40751", "daily", short_name="99", shape_id="s_acela"),
    Trip("mon_171", "88", "mon", shape_id="s_regional"),
    Trip("tue_171", "88", "tue", shape_id="s_regional"),
    Trip("late_67", "88", "daily", short_name="67", shape_id="s_regional"),
]


def _st(trip_id, stop_id, sequence, arrival, departure=None):
    return StopTime(trip_id, stop_id, sequence, arrival, departure or arrival)


STOP_TIMES = {
    # Deliberately out of order; the store sorts by stop_sequence
    "t1": [
        _st("t1", "WAS", 5, "12:45:00"),
        _st("t1", "BOS", 1, "06:00:00"),
        _st("t1", "NYP", 3, "09:30:00", "09:40:00"),
        _st("t1", "BBY", 2, "06:05:00"),
        _st("t1", "PHL", 4, "10:50:00", "10:52:00"),
    ],
    # Same train on two service days
    "mon_171": [
        _st("mon_171", "NYP", 10, "08:00:00"),
        _st("mon_171", "PHL", 20, "09:20:00"),
        _st("mon_171", "WAS", 30, "11:10:00"),
    ],
    "tue_171": [
        _st("tue_171", "NYP", 10, "08:00:00"),
        _st("tue_171", "PHL", 20, "09:20:00"),
        _st("tue_171", "WAS", 30, "11:10:00"),
    ],
    # Overnight northbound
    "late_67": [
        _st("late_67", "WAS", 1, "22:00:00"),
        _st("late_67", "PHL", 2, "23:50:00"),
        _st("late_67", "NYP", 3, "25:30:00"),
    ],
}

SHAPES = {
    "s_acela": [
        ShapePoint("s_acela", 40.7506, -73.9935, 3),
        ShapePoint("s_acela", 42.3523, -71.0552, 1),
        ShapePoint("s_acela", 42.3473, -71.0753, 2),
        ShapePoint("s_acela", 38.8973, -77.0063, 5),
        ShapePoint("s_acela", 39.9557, -75.1820, 4),
    ],
    "s_regional": [
        ShapePoint("s_regional", 40.7506, -73.9935, 1),
        ShapePoint("s_regional", 39.9557, -75.1820, 2),
        ShapePoint("s_regional", 38.8973, -77.0063, 3),
    ],
    "s_empty": [],
}


def build_feed() -> Feed:
    return Feed(
        routes=list(ROUTES),
        stops=list(STOPS),
        stop_times_by_trip={trip_id: list(times) for trip_id, times in STOP_TIMES.items()},
        shapes_by_shape_id={shape_id: list(points) for shape_id, points in SHAPES.items()},
        trips=list(TRIPS),
    )


def make_store() -> ScheduleStore:
    store = ScheduleStore()
    store.load_feed(build_feed())
    return store
