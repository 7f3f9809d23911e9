"""Tests for RealtimeClient."""

import unittest
from unittest.mock import patch, MagicMock
import sys
from pathlib import Path

import requests
from google.transit import gtfs_realtime_pb2

# Add src to path so we can import raily
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from raily.realtime_client import RealtimeClient, extract_realtime_train_number

TRIP_ID = "2026-01-16_AMTK_99"


def build_feed() -> bytes:
    """Build a GTFS-RT feed with one vehicle and one trip update."""
    feed = gtfs_realtime_pb2.FeedMessage()
    feed.header.gtfs_realtime_version = "2.0"
    feed.header.timestamp = 1700000000

    vehicle_entity = feed.entity.add()
    vehicle_entity.id = "v1"
    vehicle_entity.vehicle.trip.trip_id = TRIP_ID
    vehicle_entity.vehicle.position.latitude = 40.5
    vehicle_entity.vehicle.position.longitude = -74.4
    vehicle_entity.vehicle.position.bearing = 210.0
    vehicle_entity.vehicle.timestamp = 1700000000
    vehicle_entity.vehicle.vehicle.id = "2045"

    update_entity = feed.entity.add()
    update_entity.id = "u1"
    update_entity.trip_update.trip.trip_id = TRIP_ID
    nyp = update_entity.trip_update.stop_time_update.add()
    nyp.stop_id = "NYP"
    nyp.departure.delay = 600
    was = update_entity.trip_update.stop_time_update.add()
    was.stop_id = "WAS"
    was.arrival.delay = 300

    return feed.SerializeToString()


def mock_response(content: bytes) -> MagicMock:
    response = MagicMock()
    response.content = content
    return response


class TestExtractTrainNumber(unittest.TestCase):
    """Test realtime trip id parsing."""

    def test_extract(self):
        self.assertEqual(extract_realtime_train_number(TRIP_ID), "99")
        self.assertEqual(extract_realtime_train_number("543"), "543")
        self.assertEqual(extract_realtime_train_number("t1"), "t1")


class TestRealtimeClient(unittest.TestCase):
    """Test feed fetching, parsing and caching."""

    def setUp(self):
        self.client = RealtimeClient(feed_url="https://example.com/rt", cache_ttl=60, timeout=3)

    @patch("raily.realtime_client.requests.get")
    def test_positions_keyed_by_trip_and_number(self, mock_get):
        mock_get.return_value = mock_response(build_feed())

        positions = self.client.get_all_positions()

        self.assertEqual(set(positions), {TRIP_ID, "99"})
        position = positions["99"]
        self.assertAlmostEqual(position.latitude, 40.5, places=4)
        self.assertAlmostEqual(position.bearing, 210.0)
        self.assertIsNone(position.speed)
        self.assertEqual(position.vehicle_id, "2045")
        self.assertEqual(position.timestamp, 1700000000.0)
        mock_get.assert_called_once_with("https://example.com/rt", timeout=3)

    @patch("raily.realtime_client.requests.get")
    def test_get_position_for_trip(self, mock_get):
        mock_get.return_value = mock_response(build_feed())

        self.assertIsNotNone(self.client.get_position_for_trip("99"))
        self.assertIsNotNone(self.client.get_position_for_trip("2026-01-17_AMTK_99"))
        self.assertIsNone(self.client.get_position_for_trip("171"))

    @patch("raily.realtime_client.requests.get")
    def test_updates(self, mock_get):
        mock_get.return_value = mock_response(build_feed())

        updates = self.client.get_updates_for_trip("99")

        self.assertEqual([u.stop_id for u in updates], ["NYP", "WAS"])
        self.assertEqual(updates[0].departure_delay, 600)
        self.assertIsNone(updates[0].arrival_delay)
        self.assertEqual(updates[1].arrival_delay, 300)
        self.assertEqual(updates[0].schedule_relationship, "SCHEDULED")
        self.assertEqual(self.client.get_updates_for_trip("171"), [])

    @patch("raily.realtime_client.requests.get")
    def test_delay_for_stop(self, mock_get):
        mock_get.return_value = mock_response(build_feed())

        self.assertEqual(self.client.get_delay_for_stop("99", "NYP"), 10)
        self.assertIsNone(self.client.get_delay_for_stop("99", "WAS"))

    @patch("raily.realtime_client.requests.get")
    def test_active_trains_are_deduplicated(self, mock_get):
        mock_get.return_value = mock_response(build_feed())

        trains = self.client.get_all_active_trains()

        self.assertEqual(len(trains), 1)
        self.assertEqual(trains[0].train_number, "99")

    @patch("raily.realtime_client.requests.get")
    def test_positions_are_cached(self, mock_get):
        mock_get.return_value = mock_response(build_feed())

        self.client.get_all_positions()
        self.client.get_all_positions()
        self.assertEqual(mock_get.call_count, 1)

        self.client.clear_cache()
        self.client.get_all_positions()
        self.assertEqual(mock_get.call_count, 2)

    @patch("raily.realtime_client.requests.get")
    def test_fetch_failure_without_cache(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("offline")

        self.assertEqual(self.client.get_all_positions(), {})
        self.assertEqual(self.client.get_all_updates(), {})
        self.assertEqual(self.client.get_all_active_trains(), [])

    @patch("raily.realtime_client.requests.get")
    def test_fetch_failure_returns_stale_cache(self, mock_get):
        client = RealtimeClient(cache_ttl=0)
        mock_get.return_value = mock_response(build_feed())
        first = client.get_all_positions()

        mock_get.side_effect = requests.Timeout("slow")
        self.assertEqual(client.get_all_positions(), first)

    @patch("raily.realtime_client.requests.get")
    def test_http_error(self, mock_get):
        response = mock_response(b"")
        response.raise_for_status.side_effect = requests.HTTPError("503")
        mock_get.return_value = response

        self.assertEqual(self.client.get_all_updates(), {})

    def test_format_delay(self):
        self.assertEqual(RealtimeClient.format_delay(0), "On Time")
        self.assertEqual(RealtimeClient.format_delay(7), "Delayed 7m")


if __name__ == "__main__":
    unittest.main()
