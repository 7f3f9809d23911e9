"""Tests for GTFSLoader."""

import io
import tempfile
import unittest
import zipfile
from unittest.mock import patch, MagicMock
import sys
from pathlib import Path

import requests

# Add src to path so we can import raily
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from raily.gtfs_loader import GTFSLoader, GTFSLoadError, is_stale

ROUTES_TXT = """route_id,agency_id,route_short_name,route_long_name,route_type,route_color
40751,51,,Acela,2,
88,51,NER,,2,005EB8
77,51,,,2,
"""

STOPS_TXT = """stop_id,stop_name,stop_lat,stop_lon,stop_timezone
NYP,New York Penn Station,40.7506,-73.9935,America/New_York
PHL,Philadelphia 30th Street,39.9557,-75.1820,America/New_York
WAS,Washington Union Station,38.8973,-77.0063,America/New_York
BAD,Bad Latitude,abc,-75.0,
FAR,Off The Map,95.0,-75.0,
,No Id,40.0,-75.0,
NON,,40.0,-75.0,
"""

TRIPS_TXT = """route_id,service_id,trip_id,trip_short_name,trip_headsign,direction_id,shape_id
40751,daily,t1,99,Washington,0,s1
"""

STOP_TIMES_TXT = """trip_id,arrival_time,departure_time,stop_id,stop_sequence
t1,12:45:00,12:45:00,WAS,3
t1,09:30:00,09:40:00,NYP,1
t1,10:50:00,,PHL,2
t2,08:00:00,08:00:00,,1
"""

SHAPES_TXT = """shape_id,shape_pt_lat,shape_pt_lon,shape_pt_sequence
s1,39.9557,-75.1820,2
s1,40.7506,-73.9935,1
s1,38.8973,-77.0063,3
s1,bad,-77.0,4
"""


def make_files(include_optional=True, skip=()):
    files = {
        "routes.txt": ROUTES_TXT,
        "stops.txt": STOPS_TXT,
        "stop_times.txt": STOP_TIMES_TXT,
    }
    if include_optional:
        files["trips.txt"] = TRIPS_TXT
        files["shapes.txt"] = SHAPES_TXT
    return {name: text for name, text in files.items() if name not in skip}


def make_zip(files) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zip_file:
        for name, text in files.items():
            zip_file.writestr(name, text)
    return buffer.getvalue()


class TestGTFSLoaderParsing(unittest.TestCase):
    """Test GTFS file parsing."""

    def setUp(self):
        self.loader = GTFSLoader()
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)

    def load_zip(self, files):
        path = Path(self.tmp.name) / "gtfs.zip"
        path.write_bytes(make_zip(files))
        return self.loader.load_from_zip(path)

    def test_routes(self):
        feed = self.load_zip(make_files())
        routes = {r.route_id: r for r in feed.routes}

        self.assertEqual(routes["40751"].long_name, "Acela")
        self.assertIsNone(routes["40751"].short_name)
        self.assertEqual(routes["88"].long_name, "NER")
        self.assertEqual(routes["88"].color, "005EB8")
        self.assertEqual(routes["77"].long_name, "77")
        self.assertEqual(routes["77"].route_type, 2)

    def test_malformed_stops_are_skipped(self):
        feed = self.load_zip(make_files())

        self.assertEqual([s.stop_id for s in feed.stops], ["NYP", "PHL", "WAS"])
        nyp = feed.stops[0]
        self.assertAlmostEqual(nyp.latitude, 40.7506)
        self.assertEqual(nyp.timezone, "America/New_York")

    def test_stop_times_grouped_and_sorted(self):
        feed = self.load_zip(make_files())

        self.assertEqual(list(feed.stop_times_by_trip), ["t1"])
        stop_times = feed.stop_times_by_trip["t1"]
        self.assertEqual([st.stop_id for st in stop_times], ["NYP", "PHL", "WAS"])
        self.assertEqual(stop_times[0].departure_time, "09:40:00")
        # Missing departure falls back to arrival
        self.assertEqual(stop_times[1].departure_time, "10:50:00")

    def test_trips(self):
        feed = self.load_zip(make_files())

        trip = feed.trips[0]
        self.assertEqual(trip.trip_id, "t1")
        self.assertEqual(trip.short_name, "99")
        self.assertEqual(trip.direction_id, 0)
        self.assertEqual(trip.shape_id, "s1")

    def test_shapes_sorted_and_bad_points_skipped(self):
        feed = self.load_zip(make_files())

        points = feed.shapes_by_shape_id["s1"]
        self.assertEqual([p.sequence for p in points], [1, 2, 3])
        self.assertAlmostEqual(points[0].latitude, 40.7506)

    def test_optional_files(self):
        feed = self.load_zip(make_files(include_optional=False))

        self.assertEqual(feed.trips, [])
        self.assertEqual(feed.shapes_by_shape_id, {})
        self.assertEqual(len(feed.stops), 3)

    def test_missing_required_file(self):
        with self.assertRaises(GTFSLoadError):
            self.load_zip(make_files(skip=("stop_times.txt",)))

    def test_load_from_directory(self):
        directory = Path(self.tmp.name) / "gtfs"
        directory.mkdir()
        for name, text in make_files().items():
            (directory / name).write_text(text, encoding="utf-8")

        feed = self.loader.load_from_directory(directory)

        self.assertEqual(len(feed.stops), 3)
        self.assertEqual(len(feed.trips), 1)

    def test_byte_order_mark(self):
        files = make_files()
        files["stops.txt"] = "\ufeff" + STOPS_TXT
        feed = self.load_zip(files)
        self.assertEqual(len(feed.stops), 3)

    def test_corrupt_zip(self):
        path = Path(self.tmp.name) / "gtfs.zip"
        path.write_bytes(b"<html>maintenance</html>")

        with self.assertRaises(GTFSLoadError):
            self.loader.load_from_zip(path)


class TestGTFSLoaderDownload(unittest.TestCase):
    """Test downloading the GTFS zip."""

    @patch("raily.gtfs_loader.requests.get")
    def test_load_from_url(self, mock_get):
        mock_get.return_value = MagicMock(content=make_zip(make_files()))

        loader = GTFSLoader(url="https://example.com/gtfs.zip", timeout=5)
        feed = loader.load_from_url()

        mock_get.assert_called_once_with("https://example.com/gtfs.zip", timeout=5)
        self.assertEqual(len(feed.routes), 3)

    @patch("raily.gtfs_loader.requests.get")
    def test_download_failure(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("offline")

        with self.assertRaises(GTFSLoadError):
            GTFSLoader().load_from_url()

    @patch("raily.gtfs_loader.requests.get")
    def test_download_is_not_a_zip(self, mock_get):
        mock_get.return_value = MagicMock(content=b"not a zip")

        with self.assertRaises(GTFSLoadError):
            GTFSLoader().load_from_url()


class TestIsStale(unittest.TestCase):
    """Test feed freshness."""

    def test_never_loaded(self):
        self.assertTrue(is_stale(None))

    def test_fresh_and_stale(self):
        now = 1_700_000_000
        self.assertFalse(is_stale(now - 86400, now=now))
        self.assertTrue(is_stale(now - 8 * 86400, now=now))
        self.assertFalse(is_stale(now - 8 * 86400, max_age_days=10, now=now))


if __name__ == "__main__":
    unittest.main()
