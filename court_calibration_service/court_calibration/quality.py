"""Calibration quality assessment.

Folds five independent measurements into one confidence score:

    term                   raw metric                      normalized to [0, 1]
    ---------------------  ------------------------------  ------------------------------
    reprojection (30%)     mean pixel error of the points  max(0, 1 - e / 100)
    condition (20%)        ||H||_F / |det H|, capped        max(0, 1 - log10(max(1, c)) / 6)
    perspective (20%)      CV of local scale in quadrants  max(0, 1 - d)
    lines (20%)            mean line alignment score       as is (1.0 when no lines given)
    coordinates (10%)      coordinate-system sanity score  as is

The weights and thresholds are empirical defaults, overridable per call via
``QualityConfig``. Numerical problems never raise here: they show up as a
high condition number, an infinite reprojection error and recommendations.
"""
import logging
import math
from typing import List, Optional, Sequence

import numpy as np
from pydantic import BaseModel

from court_calibration import config
from court_calibration.homography import as_xy, invert_homography, is_valid_homography, project_points
from court_calibration.line_constraints import line_alignment_scores
from court_calibration.linalg import LinearAlgebraBackend, default_backend
from court_calibration.schemas import (
    CalibrationPoint,
    CourtDimensions,
    ImageDimensions,
    LineCorrespondence,
    QualityMetrics,
)
from court_calibration.validation import local_scales, validate_coordinate_system

logger = logging.getLogger(__name__)

NO_ISSUES_MESSAGE = "Calibration quality is good. No specific improvements needed."


class QualityConfig(BaseModel):
    """Weights, thresholds and normalisation scales used by QualityAssessor."""
    weight_reprojection: float = config.QUALITY_WEIGHT_REPROJECTION
    weight_condition: float = config.QUALITY_WEIGHT_CONDITION
    weight_perspective: float = config.QUALITY_WEIGHT_PERSPECTIVE
    weight_lines: float = config.QUALITY_WEIGHT_LINES
    weight_coordinates: float = config.QUALITY_WEIGHT_COORDINATES

    reprojection_threshold_px: float = config.REPROJECTION_ERROR_THRESHOLD_PX
    condition_threshold: float = config.CONDITION_NUMBER_THRESHOLD
    perspective_threshold: float = config.PERSPECTIVE_DISTORTION_THRESHOLD
    line_alignment_threshold: float = config.LINE_ALIGNMENT_THRESHOLD
    coordinate_sanity_threshold: float = config.COORDINATE_SANITY_THRESHOLD

    reprojection_normalization_px: float = config.REPROJECTION_NORMALIZATION_PX
    line_falloff_px: float = config.LINE_ALIGNMENT_FALLOFF_PX
    perspective_probe_px: float = config.PERSPECTIVE_PROBE_PX
    condition_number_cap: float = config.CONDITION_NUMBER_CAP

    grade_excellent: float = config.GRADE_EXCELLENT
    grade_good: float = config.GRADE_GOOD
    grade_fair: float = config.GRADE_FAIR


# =============================================================================
# Raw metrics
# =============================================================================

def reprojection_error(H: np.ndarray, correspondences: Sequence) -> float:
    """
    Mean pixel distance between observed image points and reprojected world
    points. Points projecting to infinity are skipped; +inf if none remain.
    """
    pairs = [_as_pair(c) for c in correspondences]
    if not pairs:
        return math.inf
    image_pts = np.array([p[0] for p in pairs], dtype=np.float64)
    world_pts = np.array([p[1] for p in pairs], dtype=np.float64)

    projected, valid = project_points(H, world_pts)
    if not valid.any():
        return math.inf
    skipped = int((~valid).sum())
    if skipped:
        logger.warning("Skipped %d correspondences projecting to infinity", skipped)
    return float(np.linalg.norm(projected[valid] - image_pts[valid], axis=1).mean())


def condition_number(
    H: np.ndarray,
    cap: float = config.CONDITION_NUMBER_CAP,
    backend: LinearAlgebraBackend = None,
) -> float:
    """Cheap stability proxy ||H||_F / |det H|, in [1, cap]. A singular H reports the cap."""
    backend = backend or default_backend
    H = np.asarray(H, dtype=np.float64)
    if not np.all(np.isfinite(H)):
        return cap
    det = abs(backend.det(H))
    if det < config.DETERMINANT_EPSILON:
        return cap
    return float(max(1.0, min(np.linalg.norm(H) / det, cap)))


def perspective_distortion(
    H: np.ndarray,
    image: ImageDimensions,
    probe_px: float = config.PERSPECTIVE_PROBE_PX,
) -> float:
    """
    Coefficient of variation of the local pixel → meter scale measured at
    the four image quadrants (20% / 80% of width and height).

    A fronto-parallel view gives ~0. Returns 1.0 (maximal) when fewer than
    two scales could be measured.
    """
    H_inv = invert_homography(H) if is_valid_homography(H) else None
    if H_inv is None:
        return 1.0

    w, h = image.width, image.height
    centres = [(w * 0.2, h * 0.2), (w * 0.8, h * 0.2), (w * 0.2, h * 0.8), (w * 0.8, h * 0.8)]
    scales = local_scales(H_inv, centres, probe_px)
    if len(scales) < 2:
        return 1.0

    scales = np.array(scales)
    mean = float(scales.mean())
    return float(scales.std() / mean) if mean > 0 else 1.0


def grade_for(confidence: float, cfg: QualityConfig) -> str:
    if confidence >= cfg.grade_excellent:
        return "excellent"
    if confidence >= cfg.grade_good:
        return "good"
    if confidence >= cfg.grade_fair:
        return "fair"
    return "poor"


def _as_pair(correspondence):
    """(image_xy, world_xy) from a CalibrationPoint or an (image, world) pair."""
    if isinstance(correspondence, CalibrationPoint):
        return as_xy(correspondence.image_point), as_xy(correspondence.world_point)
    image, world = correspondence
    return as_xy(image), as_xy(world)


# =============================================================================
# Assessor
# =============================================================================

class QualityAssessor:
    """Computes QualityMetrics for a fitted homography."""

    def __init__(self, quality_config: QualityConfig = None, backend: LinearAlgebraBackend = None):
        self.config = quality_config or QualityConfig()
        self.backend = backend or default_backend

    def assess(
        self,
        homography,
        correspondences: Sequence,
        line_correspondences: Sequence[LineCorrespondence],
        image_dimensions: ImageDimensions,
        court_dimensions: CourtDimensions,
    ) -> QualityMetrics:
        """
        Assess a homography (court meters → image pixels).

        Args:
            homography: 3x3 matrix
            correspondences: CalibrationPoints or (image_point, world_point) pairs
            line_correspondences: Optional court line annotations (may be empty)
            image_dimensions: Video frame size in pixels
            court_dimensions: Court extents in meters

        Returns:
            QualityMetrics with overall confidence, grade and recommendations
        """
        cfg = self.config
        H = np.asarray(homography, dtype=np.float64)

        reproj = reprojection_error(H, correspondences)
        cond = condition_number(H, cfg.condition_number_cap, self.backend)
        distortion = perspective_distortion(H, image_dimensions, cfg.perspective_probe_px)
        line_scores = line_alignment_scores(H, line_correspondences, cfg.line_falloff_px)
        coordinate_validation = validate_coordinate_system(H, image_dimensions, court_dimensions)
        sanity = coordinate_validation.overall_score

        unstable = not is_valid_homography(H) or cond >= cfg.condition_number_cap or math.isinf(reproj)
        if unstable:
            logger.warning(
                "Homography is numerically unstable (condition %.3g, reprojection %.3g px)", cond, reproj
            )

        confidence = self.overall_confidence(reproj, cond, distortion, line_scores, sanity)
        metrics = QualityMetrics(
            reprojection_error=reproj,
            condition_number=cond,
            perspective_distortion=distortion,
            line_alignment_scores=line_scores,
            coordinate_sanity_score=sanity,
            coordinate_validation=coordinate_validation,
            overall_confidence=confidence,
            grade=grade_for(confidence, cfg),
            recommendations=self.recommendations(reproj, cond, distortion, line_scores, sanity),
            numerically_unstable=unstable,
        )
        logger.info("Calibration quality: %s (confidence %.2f, reprojection %.2f px)",
                    metrics.grade, confidence, reproj)
        return metrics

    def overall_confidence(
        self,
        reproj: float,
        cond: float,
        distortion: float,
        line_scores: List[float],
        sanity: float,
    ) -> float:
        cfg = self.config
        reprojection_score = max(0.0, 1.0 - reproj / cfg.reprojection_normalization_px)
        condition_score = max(0.0, 1.0 - math.log10(max(1.0, cond)) / 6.0)
        perspective_score = max(0.0, 1.0 - distortion)
        line_score = _mean(line_scores, default=1.0)

        overall = (
            reprojection_score * cfg.weight_reprojection
            + condition_score * cfg.weight_condition
            + perspective_score * cfg.weight_perspective
            + line_score * cfg.weight_lines
            + sanity * cfg.weight_coordinates
        )
        return float(min(1.0, max(0.0, overall)))

    def recommendations(
        self,
        reproj: float,
        cond: float,
        distortion: float,
        line_scores: List[float],
        sanity: float,
    ) -> List[str]:
        cfg = self.config
        messages = []
        if reproj > cfg.reprojection_threshold_px:
            messages.append(
                "High reprojection error detected. Check click accuracy and make sure "
                "each point is placed exactly on its court landmark."
            )
        if cond > cfg.condition_threshold:
            messages.append(
                "Matrix instability detected. Spread the calibration points more evenly "
                "across the visible court."
            )
        if distortion > cfg.perspective_threshold:
            messages.append(
                "High perspective distortion. Consider recalibrating with points that cover "
                "both the near and far parts of the court."
            )
        if line_scores and _mean(line_scores) < cfg.line_alignment_threshold:
            messages.append(
                "Poor line alignment detected. Redraw the lines so they follow the actual "
                "court lines in the video."
            )
        if sanity < cfg.coordinate_sanity_threshold:
            messages.append(
                "Coordinate system validation failed. Check that each clicked point matches "
                "the court landmark it is labelled as."
            )
        if not messages:
            messages.append(NO_ISSUES_MESSAGE)
        return messages


def _mean(values: Sequence[float], default: float = 0.0) -> float:
    return float(sum(values) / len(values)) if values else default
