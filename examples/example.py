"""Example usage of RailTracker."""

import logging
import sys
from pathlib import Path

# Add src to path so we can import raily
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from raily.formatting import days_away_label
from raily.models import SavedTrainRef
from raily.rail_tracker import RailTracker
from raily.realtime_client import RealtimeClient
from raily.saved_trains import SavedTrainStore

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

SAVED_TRAINS_PATH = Path.home() / ".raily" / "saved_trains.json"


def print_itinerary(train):
    """Print one itinerary with its stops and live status."""
    print(f"\n{train.route_name} (Train {train.train_number}) - {train.date_label} ({days_away_label(train.days_away)})")
    print(f"  {train.origin_name} ({train.origin_code}) {train.depart_time}")
    for stop in train.intermediate_stops:
        print(f"    {stop.time:>11}  {stop.name}")
    print(f"  {train.destination_name} ({train.destination_code}) {train.arrive_time}")
    if train.realtime:
        print(f"  Live: {train.realtime.status}")


def interactive_mode(tracker: RailTracker):
    """
    Run in interactive mode.

    Commands:
        <text>            search stations, routes and trains
        trip <id>         show a trip's itinerary
        between <a> <b>   trains from station a to station b
        save <id> [a b]   save a trip or segment
        saved             show saved trips
    """
    print("Raily - Interactive Mode")
    print("Type a search, 'trip <id>', 'between <from> <to>', 'save <id> [from to]', 'saved' or 'quit'\n")

    saved = tracker.saved_trains

    while True:
        try:
            user_input = input("> ").strip()

            if user_input.lower() in ["quit", "q", "exit"]:
                print("Goodbye!")
                break
            if not user_input:
                continue

            command, _, rest = user_input.partition(" ")
            args = rest.split()

            if command == "trip" and len(args) == 1:
                train = tracker.get_train_details(args[0])
                if train:
                    print_itinerary(train)
                else:
                    print(f"Trip {args[0]} not found")
            elif command == "between" and len(args) == 2:
                segments = tracker.find_trips_with_stops(args[0], args[1])
                if not segments:
                    print("No direct trains found")
                for segment in segments:
                    print(
                        f"  Train {segment.train_number}: "
                        f"{segment.from_stop_time.departure_time} -> {segment.to_stop_time.arrival_time} "
                        f"({len(segment.intermediate_stop_times)} stops between) [{segment.trip_id}]"
                    )
            elif command == "save" and len(args) in (1, 3):
                ref = SavedTrainRef(*args)
                print("Saved" if saved.save(ref) else "Already saved")
            elif command == "saved":
                trains = tracker.resolve_all_saved()
                if not trains:
                    print("No saved trains")
                for train in trains:
                    print_itinerary(train)
            else:
                for result in tracker.search(user_input):
                    print(f"  [{result.kind}] {result.name} - {result.subtitle}")

        except KeyboardInterrupt:
            print("\n\nGoodbye!")
            break
        except Exception as e:
            logger.error(f"Error: {e}", exc_info=True)
            print(f"Error: {e}")


if __name__ == "__main__":
    tracker = RailTracker(realtime=RealtimeClient(), saved_trains=SavedTrainStore(SAVED_TRAINS_PATH))
    try:
        print("Loading GTFS data... (this may take a minute)")
        if len(sys.argv) > 1:
            path = Path(sys.argv[1])
            if path.is_dir():
                tracker.load_gtfs_from_directory(path)
            else:
                tracker.load_gtfs_from_zip(path)
        else:
            tracker.load_gtfs_from_url()
        print("GTFS data loaded successfully!\n")
    except Exception as e:
        logger.error(f"Failed to load GTFS data: {e}")
        print(f"Error loading GTFS data: {e}")
        sys.exit(1)

    try:
        interactive_mode(tracker)
    finally:
        tracker.cleanup()
