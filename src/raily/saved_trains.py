"""JSON-file persistence for saved train references."""

import json
import logging
import os
from datetime import date, datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .models import Itinerary, SavedTrainRef

logger = logging.getLogger(__name__)


def _encode_date(value):
    # Unix timestamps are stored as numbers, dates as ISO strings
    return value.isoformat() if hasattr(value, "isoformat") else value


def _decode_date(value):
    if not isinstance(value, str):
        return value
    # Plain dates are written as YYYY-MM-DD
    if len(value) == 10:
        return date.fromisoformat(value)
    return datetime.fromisoformat(value)


def _ref_to_dict(ref: SavedTrainRef) -> Dict[str, Any]:
    return {
        "trip_id": ref.trip_id,
        "from_stop_id": ref.from_stop_id,
        "to_stop_id": ref.to_stop_id,
        "travel_date": _encode_date(ref.travel_date),
        "saved_at": ref.saved_at,
    }


def _ref_from_dict(data: Dict[str, Any]) -> Optional[SavedTrainRef]:
    trip_id = data.get("trip_id")
    if not trip_id:
        return None
    return SavedTrainRef(
        trip_id=trip_id,
        from_stop_id=data.get("from_stop_id"),
        to_stop_id=data.get("to_stop_id"),
        travel_date=_decode_date(data.get("travel_date")),
        saved_at=float(data.get("saved_at") or 0),
    )


class SavedTrainStore:
    """
    Persists the user's saved trips as a JSON list of references.

    Only the reference is stored; use SavedTrainResolver to turn it back
    into an Itinerary against the current schedule. Storage failures are
    logged and never raised.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def get_all(self) -> List[SavedTrainRef]:
        """All saved references, oldest first. Unreadable entries are skipped."""
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read saved trains from {self.path}: {e}")
            return []

        if not isinstance(raw, list):
            logger.warning(f"Ignoring saved trains file {self.path}: expected a list")
            return []

        refs = []
        for entry in raw:
            try:
                ref = _ref_from_dict(entry)
            except (AttributeError, TypeError, ValueError) as e:
                logger.debug(f"Skipping malformed saved train {entry!r}: {e}")
                continue
            if ref is not None:
                refs.append(ref)
        return refs

    def save(self, ref: SavedTrainRef) -> bool:
        """
        Save a reference.

        Returns:
            True if saved, False if an identical reference already exists or
            the file could not be written.
        """
        refs = self.get_all()
        if any(existing.duplicate_key() == ref.duplicate_key() for existing in refs):
            logger.debug(f"Trip {ref.trip_id} is already saved")
            return False
        refs.append(ref)
        return self._write(refs)

    def save_itinerary(self, itinerary: Itinerary, travel_date: Optional[datetime] = None) -> bool:
        """Save the segment currently shown by an itinerary."""
        if itinerary.ref is not None and travel_date is None:
            travel_date = itinerary.ref.travel_date
        return self.save(
            SavedTrainRef(
                trip_id=itinerary.trip_id,
                from_stop_id=itinerary.origin_code or None,
                to_stop_id=itinerary.destination_code or None,
                travel_date=travel_date,
            )
        )

    def delete(self, trip_id: str, from_stop_id: Optional[str] = None, to_stop_id: Optional[str] = None) -> bool:
        """
        Delete saved references for a trip.

        With no endpoints every reference to the trip is removed; otherwise
        only the references for that exact segment.

        Returns:
            True if anything was removed and written back.
        """
        refs = self.get_all()
        if from_stop_id is None and to_stop_id is None:
            kept = [ref for ref in refs if ref.trip_id != trip_id]
        else:
            kept = [
                ref
                for ref in refs
                if not (
                    ref.trip_id == trip_id
                    and ref.from_stop_id == from_stop_id
                    and ref.to_stop_id == to_stop_id
                )
            ]
        if len(kept) == len(refs):
            return False
        return self._write(kept)

    def clear(self) -> bool:
        """Remove every saved reference."""
        return self._write([])

    def _write(self, refs: List[SavedTrainRef]) -> bool:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump([_ref_to_dict(ref) for ref in refs], f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Failed to write saved trains to {self.path}: {e}")
            return False
        return True
