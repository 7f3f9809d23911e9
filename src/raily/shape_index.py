"""Bounding-box index over route shapes for viewport queries."""

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from .models import ShapeBounds, ShapePoint, Viewport, VisibleShape

logger = logging.getLogger(__name__)

DEFAULT_SHAPE_PADDING = 0.1  # degrees


class ShapeIndex:
    """
    Answers "which route shapes cross this map viewport".

    Each shape's bounding box is computed once at build time. Queries are a
    linear scan over the boxes: a national rail network has a few hundred
    shapes, so a tree index would not pay for itself.
    """

    def __init__(self):
        """Initialize an empty index."""
        self._bounds: Dict[str, ShapeBounds] = {}
        self._coordinates: Dict[str, List[Tuple[float, float]]] = {}

    def build(self, shapes: Mapping[str, Sequence[ShapePoint]]) -> None:
        """
        Rebuild the index from shape_id -> points.

        Args:
            shapes: Shape points per shape id. Empty shapes are skipped.
        """
        bounds: Dict[str, ShapeBounds] = {}
        coordinates: Dict[str, List[Tuple[float, float]]] = {}

        for shape_id, points in shapes.items():
            if not points:
                continue

            ordered = sorted(points, key=lambda p: p.sequence)
            lats = [p.latitude for p in ordered]
            lons = [p.longitude for p in ordered]

            bounds[shape_id] = ShapeBounds(
                shape_id=shape_id,
                min_lat=min(lats),
                max_lat=max(lats),
                min_lon=min(lons),
                max_lon=max(lons),
                point_count=len(ordered),
            )
            coordinates[shape_id] = list(zip(lats, lons))

        self._bounds = bounds
        self._coordinates = coordinates
        logger.debug(f"Indexed {len(bounds)} shapes")

    def get_visible_shapes(
        self, viewport: Viewport, padding_degrees: float = DEFAULT_SHAPE_PADDING
    ) -> List[VisibleShape]:
        """
        Get every shape whose bounding box intersects the padded viewport.

        Shapes are returned whole; clipping is left to the renderer.

        Args:
            viewport: Visible map area.
            padding_degrees: Extra margin on every side so shapes load before
                they scroll into view.

        Returns:
            List of VisibleShape objects.
        """
        padded = viewport.padded(padding_degrees)
        bounds, coordinates = self._bounds, self._coordinates

        return [
            VisibleShape(shape_id=shape_id, coordinates=coordinates[shape_id])
            for shape_id, box in bounds.items()
            if self._intersects(box, padded)
        ]

    def get_all_shapes(self) -> List[VisibleShape]:
        """Every indexed shape, ignoring the viewport."""
        return [
            VisibleShape(shape_id=shape_id, coordinates=coords)
            for shape_id, coords in self._coordinates.items()
        ]

    def get_stats(self) -> Dict[str, Optional[int]]:
        """Shape and point counts, for diagnostics."""
        counts = [box.point_count for box in self._bounds.values()]
        total_points = sum(counts)
        return {
            "total_shapes": len(counts),
            "total_points": total_points,
            "average_points_per_shape": round(total_points / (len(counts) or 1)),
            "max_points_in_shape": max(counts, default=0),
            "min_points_in_shape": min(counts, default=None),
        }

    def clear(self) -> None:
        self._bounds = {}
        self._coordinates = {}

    @staticmethod
    def _intersects(box: ShapeBounds, viewport: Viewport) -> bool:
        # Touching edges count as intersecting
        return not (
            box.max_lat < viewport.min_lat
            or box.min_lat > viewport.max_lat
            or box.max_lon < viewport.min_lon
            or box.min_lon > viewport.max_lon
        )
