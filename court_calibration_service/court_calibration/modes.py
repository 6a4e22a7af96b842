"""Calibration mode catalog and court landmark lookup.

Modes and court geometry are pure data (``court_config``); this module only
validates and serves them. New modes can be registered at runtime without
touching the estimator.
"""
import logging
from typing import Dict, List

from court_calibration.config import DEFAULT_COURT_TYPE
from court_calibration.court_config import CALIBRATION_MODES, COURT_DIMENSIONS, COURT_VERTICES
from court_calibration.exceptions import InvalidPointId, UnknownCourtType, UnknownMode
from court_calibration.schemas import CalibrationMode, CourtDimensions, Point3D

logger = logging.getLogger(__name__)


def _load_default_modes() -> Dict[str, CalibrationMode]:
    return {
        mode_id: CalibrationMode(
            id=mode_id,
            required_point_ids=tuple(spec["required"]),
            optional_point_ids=tuple(spec.get("optional", ())),
            min_points=spec["min_points"],
            description=spec.get("description", ""),
        )
        for mode_id, spec in CALIBRATION_MODES.items()
    }


def available_court_types() -> List[str]:
    return list(COURT_VERTICES.keys())


class CalibrationModeCatalog:
    """Modes and landmark world coordinates for one court type."""

    def __init__(self, court_type: str = DEFAULT_COURT_TYPE):
        if court_type not in COURT_VERTICES:
            raise UnknownCourtType(
                f"Unknown court type: {court_type}. Valid options: {available_court_types()}"
            )
        self.court_type = court_type
        self._modes = _load_default_modes()
        for mode in self._modes.values():
            self._check_points_exist(mode)

    def get_mode(self, mode_id: str) -> CalibrationMode:
        try:
            return self._modes[mode_id]
        except KeyError:
            raise UnknownMode(
                f"Unknown calibration mode: {mode_id}. Valid options: {list(self._modes)}"
            ) from None

    def list_modes(self) -> List[CalibrationMode]:
        return list(self._modes.values())

    def register_mode(self, mode: CalibrationMode) -> CalibrationMode:
        """
        Add (or replace) a mode.

        Raises:
            InvalidPointId: If a point id has no world coordinate on this court.
        """
        self._check_points_exist(mode)
        if mode.id in self._modes:
            logger.info("Replacing calibration mode '%s'", mode.id)
        self._modes[mode.id] = mode
        return mode

    def world_coordinate_of(self, point_id: str, court_type: str = None) -> Point3D:
        """
        World position (meters, Z = 0) of a named court landmark.

        Raises:
            UnknownCourtType: If ``court_type`` has no geometry.
            InvalidPointId: If the landmark does not exist on that court.
        """
        vertices = self._vertices(court_type or self.court_type)
        if point_id not in vertices:
            raise InvalidPointId(f"Unknown court landmark: {point_id}")
        x, y = vertices[point_id]
        return Point3D(x=x, y=y, z=0.0)

    def court_dimensions(self, court_type: str = None) -> CourtDimensions:
        court_type = court_type or self.court_type
        self._vertices(court_type)
        dims = COURT_DIMENSIONS[court_type]
        return CourtDimensions(length=dims["length"], width=dims["width"])

    def landmark_ids(self, court_type: str = None) -> List[str]:
        return list(self._vertices(court_type or self.court_type))

    def _vertices(self, court_type: str) -> Dict[str, tuple]:
        try:
            return COURT_VERTICES[court_type]
        except KeyError:
            raise UnknownCourtType(
                f"Unknown court type: {court_type}. Valid options: {available_court_types()}"
            ) from None

    def _check_points_exist(self, mode: CalibrationMode) -> None:
        vertices = self._vertices(self.court_type)
        missing = [pid for pid in mode.all_point_ids if pid not in vertices]
        if missing:
            raise InvalidPointId(
                f"Mode '{mode.id}' references landmarks not on a {self.court_type} court: {missing}"
            )
