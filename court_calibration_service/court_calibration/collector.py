"""Point collection for a single calibration mode."""
import logging
from typing import Dict, List, Optional

from court_calibration.exceptions import InvalidConfidence, OutOfModeScope
from court_calibration.homography import as_xy
from court_calibration.modes import CalibrationModeCatalog
from court_calibration.schemas import CalibrationMode, CalibrationPoint, Point2D

logger = logging.getLogger(__name__)


class PointCollector:
    """
    Holds the user's clicked correspondences for one mode.

    Re-clicking an id overwrites its point in place. ``remove_last_point``
    undoes the most recent add, restoring the overwritten point if there
    was one.
    """

    def __init__(self, mode: CalibrationMode, catalog: CalibrationModeCatalog):
        self.mode = mode
        self.catalog = catalog
        self._points: Dict[str, CalibrationPoint] = {}
        # (point id, point it replaced or None)
        self._history: List[tuple] = []

    def add_point(self, point_id: str, image_point, confidence: float = 1.0) -> CalibrationPoint:
        """
        Insert or overwrite the correspondence for ``point_id``.

        Raises:
            OutOfModeScope: If the id is not in the mode's required/optional sets.
            InvalidConfidence: If confidence is outside [0, 1].
        """
        if not self.mode.allows(point_id):
            raise OutOfModeScope(
                f"Point '{point_id}' is not part of calibration mode '{self.mode.id}'"
            )
        if confidence is None or not (0.0 <= confidence <= 1.0):
            raise InvalidConfidence(f"Confidence must be in [0, 1], got {confidence}")

        x, y = as_xy(image_point)
        point = CalibrationPoint(
            id=point_id,
            image_point=Point2D(x=x, y=y),
            world_point=self.catalog.world_coordinate_of(point_id),
            confidence=confidence,
        )
        self._history.append((point_id, self._points.get(point_id)))
        self._points[point_id] = point
        return point

    def remove_last_point(self) -> Optional[CalibrationPoint]:
        """Undo the most recent add. Returns the removed point, or None if empty."""
        if not self._history:
            return None
        point_id, previous = self._history.pop()
        removed = self._points.pop(point_id)
        if previous is not None:
            self._points[point_id] = previous
        return removed

    def remove_point(self, point_id: str) -> Optional[CalibrationPoint]:
        """Remove a specific point (and its undo history)."""
        self._history = [entry for entry in self._history if entry[0] != point_id]
        return self._points.pop(point_id, None)

    def is_ready_to_calibrate(self) -> bool:
        has_required = all(pid in self._points for pid in self.mode.required_point_ids)
        return has_required and len(self._points) >= self.mode.min_points

    def suggest_next_point(self) -> Optional[str]:
        for pid in self.mode.required_point_ids:
            if pid not in self._points:
                return pid
        for pid in self.mode.optional_point_ids:
            if pid not in self._points:
                return pid
        return None

    @property
    def points(self) -> List[CalibrationPoint]:
        return list(self._points.values())

    def __len__(self):
        return len(self._points)

    def clear(self):
        self._points.clear()
        self._history.clear()
