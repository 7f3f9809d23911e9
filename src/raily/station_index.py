"""Point index over stations for viewport queries."""

import logging
from typing import Dict, Iterable, List

from .models import Stop, Viewport, VisibleStation

logger = logging.getLogger(__name__)

# Stations are points and need a little more slack than shapes to avoid
# markers popping in at the viewport edge.
DEFAULT_STATION_PADDING = 0.15  # degrees


class StationIndex:
    """Answers "which stations are inside this map viewport"."""

    def __init__(self):
        """Initialize an empty index."""
        self._stations: Dict[str, VisibleStation] = {}

    def build(self, stops: Iterable[Stop]) -> None:
        """Rebuild the index from stop records."""
        self._stations = {
            stop.stop_id: VisibleStation(
                stop_id=stop.stop_id,
                name=stop.name,
                latitude=stop.latitude,
                longitude=stop.longitude,
            )
            for stop in stops
        }
        logger.debug(f"Indexed {len(self._stations)} stations")

    def get_visible_stations(
        self, viewport: Viewport, padding_degrees: float = DEFAULT_STATION_PADDING
    ) -> List[VisibleStation]:
        """
        Get stations inside the padded viewport (edges inclusive).

        Args:
            viewport: Visible map area.
            padding_degrees: Extra margin on every side.

        Returns:
            List of VisibleStation objects.
        """
        padded = viewport.padded(padding_degrees)
        return [
            station
            for station in self._stations.values()
            if padded.min_lat <= station.latitude <= padded.max_lat
            and padded.min_lon <= station.longitude <= padded.max_lon
        ]

    def get_all_stations(self) -> List[VisibleStation]:
        return list(self._stations.values())

    def get_stats(self) -> Dict[str, int]:
        return {"total_stations": len(self._stations)}

    def clear(self) -> None:
        self._stations = {}
