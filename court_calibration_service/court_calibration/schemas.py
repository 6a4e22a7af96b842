"""Pydantic schemas for calibration data and API requests/responses."""
import time
from typing import List, Literal, Optional, Tuple

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, model_validator


class Point2D(BaseModel):
    """A point in image pixels (or a 2D court-plane point in meters)."""
    model_config = ConfigDict(frozen=True)

    x: float
    y: float


class Point3D(BaseModel):
    """A point in court meters. Z is height above the court plane."""
    model_config = ConfigDict(frozen=True)

    x: float
    y: float
    z: float = 0.0


class ImageDimensions(BaseModel):
    """Video frame size in pixels."""
    width: float = Field(gt=0)
    height: float = Field(gt=0)


class CourtDimensions(BaseModel):
    """Outer court extents in meters."""
    length: float = Field(gt=0)
    width: float = Field(gt=0)


class CalibrationMode(BaseModel):
    """A named set of court landmarks for one visibility scenario.

    Point id lists are ordered; the order is the order in which missing
    points are suggested.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    required_point_ids: Tuple[str, ...]
    optional_point_ids: Tuple[str, ...] = ()
    min_points: int = Field(ge=4)
    description: str = ""

    @model_validator(mode="after")
    def _check_point_sets(self):
        if self.min_points > len(self.required_point_ids):
            raise ValueError(
                f"Mode '{self.id}': min_points ({self.min_points}) exceeds "
                f"the number of required points ({len(self.required_point_ids)})"
            )
        overlap = set(self.required_point_ids) & set(self.optional_point_ids)
        if overlap:
            raise ValueError(
                f"Mode '{self.id}': points both required and optional: {sorted(overlap)}"
            )
        return self

    @property
    def all_point_ids(self) -> Tuple[str, ...]:
        return self.required_point_ids + self.optional_point_ids

    def allows(self, point_id: str) -> bool:
        return point_id in self.required_point_ids or point_id in self.optional_point_ids


class CalibrationPoint(BaseModel):
    """A user-clicked correspondence between an image pixel and a court landmark."""
    model_config = ConfigDict(frozen=True)

    id: str
    image_point: Point2D
    world_point: Point3D
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    collected_at: float = Field(default_factory=time.time)


class LineCorrespondence(BaseModel):
    """A court line (two world points) matched to clicked image points.

    Used only for quality assessment; it does not constrain estimation.
    """
    model_config = ConfigDict(frozen=True)

    court_line: Tuple[Point2D, Point2D]
    video_line: List[Point2D] = Field(min_length=2)
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)
    line_id: Optional[str] = None


class ValidationResult(BaseModel):
    """Outcome of a single coordinate-system check."""
    model_config = ConfigDict(frozen=True, ser_json_inf_nan="constants")

    is_valid: bool
    error: float
    confidence: float
    details: str


class CoordinateSystemValidation(BaseModel):
    model_config = ConfigDict(frozen=True, ser_json_inf_nan="constants")

    round_trip_accuracy: ValidationResult
    boundary_validation: ValidationResult
    scale_consistency: ValidationResult
    overall_score: float


Grade = Literal["excellent", "good", "fair", "poor"]


class QualityMetrics(BaseModel):
    """Quantitative confidence in a fitted homography."""
    model_config = ConfigDict(frozen=True, ser_json_inf_nan="constants")

    reprojection_error: float           # mean pixel error, inf when nothing projects
    condition_number: float             # >= 1, capped
    perspective_distortion: float       # coefficient of variation, >= 0
    line_alignment_scores: List[float] = []
    coordinate_sanity_score: float
    coordinate_validation: Optional[CoordinateSystemValidation] = None
    overall_confidence: float = Field(ge=0.0, le=1.0)
    grade: Grade
    recommendations: List[str]
    numerically_unstable: bool = False


class CalibrationResult(BaseModel):
    """Immutable outcome of a successful calibration.

    ``homography`` maps court meters (X, Y, 1) to image pixels.
    """
    model_config = ConfigDict(frozen=True, ser_json_inf_nan="constants")

    homography: List[List[float]]
    inlier_point_ids: List[str]
    outlier_point_ids: List[str] = []
    quality_metrics: Optional[QualityMetrics] = None
    mean_world_error_m: Optional[float] = None
    mode_id: Optional[str] = None
    court_type: Optional[str] = None
    timestamp: float = Field(default_factory=time.time)

    @model_validator(mode="after")
    def _check_shape(self):
        if len(self.homography) != 3 or any(len(row) != 3 for row in self.homography):
            raise ValueError("homography must be a 3x3 matrix")
        return self

    def matrix(self) -> np.ndarray:
        """Return the homography as a float64 numpy array."""
        return np.array(self.homography, dtype=np.float64)


# =============================================================================
# API request / response models
# =============================================================================

class CreateSessionRequest(BaseModel):
    court_type: Optional[str] = None
    mode_id: Optional[str] = None


class SelectModeRequest(BaseModel):
    mode_id: str


class AddPointRequest(BaseModel):
    """A click on the video frame for a named court landmark."""
    point_id: str
    x: float
    y: float
    confidence: float = 1.0


class LineAnnotation(BaseModel):
    """A court line annotation: a named court line and the clicked image points on it.

    Attributes:
        line_id: Identifier for the line (e.g. "net", "short_service_near").
                 Must match a key in COURT_LINES.
        points: Two or more clicked points along the line, in image pixels.
                Only the first and last are compared with the court line.
        confidence: User confidence in the annotation, in [0, 1].
    """
    line_id: str
    points: List[Point2D]
    confidence: float = 1.0


class CalibrateRequest(BaseModel):
    image_width: float = Field(gt=0)
    image_height: float = Field(gt=0)
    lines: List[LineAnnotation] = []
    inlier_threshold_m: Optional[float] = Field(default=None, gt=0)
    max_iterations: Optional[int] = Field(default=None, ge=1)
    min_inlier_fraction: Optional[float] = Field(default=None, gt=0, le=1)
    seed: Optional[int] = None


class SessionResponse(BaseModel):
    model_config = ConfigDict(ser_json_inf_nan="constants")

    session_id: str
    state: str
    court_type: str
    mode_id: Optional[str] = None
    points: List[CalibrationPoint] = []
    ready_to_calibrate: bool = False
    suggested_point: Optional[str] = None
    failure_reason: Optional[str] = None
    result: Optional[CalibrationResult] = None


class ModeResponse(BaseModel):
    id: str
    description: str
    required_point_ids: List[str]
    optional_point_ids: List[str]
    min_points: int


class ImagePointsRequest(BaseModel):
    points: List[Point2D]


class WorldPointsRequest(BaseModel):
    points: List[Point3D]


class WorldPointsResponse(BaseModel):
    points: List[Optional[Point3D]]


class ImagePointsResponse(BaseModel):
    points: List[Optional[Point2D]]


class LandmarksRequest(BaseModel):
    """Pose landmarks in image pixels, with optional pose-model world landmarks for height."""
    landmarks: List[Point2D]
    world_landmarks: Optional[List[Optional[Point3D]]] = None
    player_height_m: Optional[float] = Field(default=None, gt=0)
