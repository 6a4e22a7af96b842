"""Calibration session state machine.

    UNCALIBRATED --select_mode--> COLLECTING_POINTS --calibrate--> CALIBRATED
                                         ^                    \\--> FAILED
                                         |                              |
                                         +-------- recalibrate ---------+

``reset()`` returns to UNCALIBRATED from any state, discarding the mode,
points and result. Every transition method returns the new state.

Each video (or each side of a comparison view) owns its own session;
sessions share no mutable state.
"""
import logging
from enum import Enum
from typing import Optional, Sequence

from court_calibration.collector import PointCollector
from court_calibration.config import DEFAULT_COURT_TYPE
from court_calibration.exceptions import (
    DegenerateConfiguration,
    InsufficientInliers,
    InvalidStateTransition,
    NotCalibrated,
    NotReadyToCalibrate,
)
from court_calibration.modes import CalibrationModeCatalog
from court_calibration.quality import QualityAssessor
from court_calibration.ransac import RobustFitter
from court_calibration.schemas import (
    CalibrationMode,
    CalibrationPoint,
    CalibrationResult,
    ImageDimensions,
    LineCorrespondence,
)
from court_calibration.transforms import CoordinateTransformer

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    UNCALIBRATED = "uncalibrated"
    COLLECTING_POINTS = "collecting_points"
    CALIBRATED = "calibrated"
    FAILED = "failed"


class CalibrationSession:
    """One user's calibration of one video."""

    def __init__(
        self,
        court_type: str = DEFAULT_COURT_TYPE,
        catalog: CalibrationModeCatalog = None,
        fitter: RobustFitter = None,
        assessor: QualityAssessor = None,
    ):
        self.catalog = catalog or CalibrationModeCatalog(court_type)
        self.court_type = self.catalog.court_type
        self.fitter = fitter or RobustFitter()
        self.assessor = assessor or QualityAssessor()

        self._state = SessionState.UNCALIBRATED
        self._collector: Optional[PointCollector] = None
        self._result: Optional[CalibrationResult] = None
        self._failure_reason: Optional[str] = None

    # ── Read-only views ───────────────────────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def mode(self) -> Optional[CalibrationMode]:
        return self._collector.mode if self._collector is not None else None

    @property
    def points(self) -> Sequence[CalibrationPoint]:
        return self._collector.points if self._collector is not None else []

    @property
    def result(self) -> Optional[CalibrationResult]:
        return self._result

    @property
    def failure_reason(self) -> Optional[str]:
        return self._failure_reason

    @property
    def mean_world_error_m(self) -> Optional[float]:
        return self._result.mean_world_error_m if self._result else None

    def is_ready_to_calibrate(self) -> bool:
        return self._collector is not None and self._collector.is_ready_to_calibrate()

    def suggest_next_point(self) -> Optional[str]:
        return self._collector.suggest_next_point() if self._collector is not None else None

    # ── Transitions ───────────────────────────────────────────────────────────

    def select_mode(self, mode_id: str) -> SessionState:
        """Switch to a mode, discarding all points and any result."""
        mode = self.catalog.get_mode(mode_id)
        self._collector = PointCollector(mode, self.catalog)
        self._result = None
        self._failure_reason = None
        return self._transition(SessionState.COLLECTING_POINTS)

    def add_point(self, point_id: str, image_point, confidence: float = 1.0) -> SessionState:
        self._require(SessionState.COLLECTING_POINTS, "add points")
        self._collector.add_point(point_id, image_point, confidence)
        return self._state

    def remove_last_point(self) -> SessionState:
        self._require(SessionState.COLLECTING_POINTS, "remove points")
        self._collector.remove_last_point()
        return self._state

    def remove_point(self, point_id: str) -> SessionState:
        self._require(SessionState.COLLECTING_POINTS, "remove points")
        self._collector.remove_point(point_id)
        return self._state

    def calibrate(
        self,
        image_dimensions,
        line_correspondences: Sequence[LineCorrespondence] = (),
        inlier_threshold_m: float = None,
        max_iterations: int = None,
        min_inlier_fraction: float = None,
    ) -> SessionState:
        """
        Fit a homography to the collected points and assess its quality.

        Ends in CALIBRATED with a new result, or in FAILED with a reason when
        the points are degenerate or RANSAC finds too few inliers. A failed
        calibration never keeps a previous result.

        Raises:
            InvalidStateTransition: If not collecting points.
            NotReadyToCalibrate: If the mode's required points are missing.
        """
        self._require(SessionState.COLLECTING_POINTS, "calibrate")
        if not self._collector.is_ready_to_calibrate():
            raise NotReadyToCalibrate(
                f"Mode '{self.mode.id}' needs all of {list(self.mode.required_point_ids)} "
                f"and at least {self.mode.min_points} points; next missing: "
                f"{self._collector.suggest_next_point()}"
            )
        image_dimensions = _as_image_dimensions(image_dimensions)
        points = self._collector.points
        self._result = None

        try:
            fitted = self.fitter.fit(
                points,
                inlier_threshold_m=inlier_threshold_m,
                max_iterations=max_iterations,
                min_inlier_fraction=min_inlier_fraction,
            )
        except (DegenerateConfiguration, InsufficientInliers) as e:
            self._failure_reason = str(e)
            logger.warning("Calibration failed: %s", e)
            return self._transition(SessionState.FAILED)

        inlier_ids = set(fitted.inlier_point_ids)
        inliers = [p for p in points if p.id in inlier_ids]
        metrics = self.assessor.assess(
            fitted.matrix(),
            inliers,
            list(line_correspondences),
            image_dimensions,
            self.catalog.court_dimensions(),
        )
        self._result = fitted.model_copy(update={
            "quality_metrics": metrics,
            "mode_id": self.mode.id,
            "court_type": self.court_type,
        })
        self._failure_reason = None
        logger.info(
            "Calibrated with %d/%d inliers, mean court error %.3f m",
            len(fitted.inlier_point_ids), len(points), fitted.mean_world_error_m,
        )
        return self._transition(SessionState.CALIBRATED)

    def recalibrate(self) -> SessionState:
        """Go back to collecting points, keeping them. The previous result is dropped."""
        if self._state not in (SessionState.CALIBRATED, SessionState.FAILED):
            raise InvalidStateTransition(
                f"Cannot recalibrate from state '{self._state.value}'"
            )
        self._result = None
        self._failure_reason = None
        return self._transition(SessionState.COLLECTING_POINTS)

    def reset(self) -> SessionState:
        self._collector = None
        self._result = None
        self._failure_reason = None
        return self._transition(SessionState.UNCALIBRATED)

    def transformer(self) -> CoordinateTransformer:
        """Coordinate transformer for the current result.

        Raises:
            NotCalibrated: If the session is not in the CALIBRATED state.
        """
        if self._state != SessionState.CALIBRATED or self._result is None:
            raise NotCalibrated(f"Session is '{self._state.value}', not calibrated")
        return CoordinateTransformer.from_result(self._result)

    # ── Internal ──────────────────────────────────────────────────────────────

    def _require(self, state: SessionState, action: str):
        if self._state != state:
            raise InvalidStateTransition(
                f"Cannot {action} in state '{self._state.value}'"
            )

    def _transition(self, new_state: SessionState) -> SessionState:
        if new_state != self._state:
            logger.info("Session %s -> %s", self._state.value, new_state.value)
        self._state = new_state
        return new_state


def _as_image_dimensions(value) -> ImageDimensions:
    if isinstance(value, ImageDimensions):
        return value
    if isinstance(value, dict):
        return ImageDimensions(**value)
    width, height = value
    return ImageDimensions(width=width, height=height)
