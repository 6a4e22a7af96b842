"""Court line correspondences for calibration quality assessment.

A court line (e.g. the net line or the near short service line) has two
known endpoints on the court. The user clicks two or more points along the
same line in the video. Projecting the court endpoints through the fitted
homography and comparing them with the first and last clicked points gives
an independent check of the calibration in regions that may have no
clicked landmarks.

Line correspondences never constrain the estimate; they are only scored.

Usage:
=====
    from court_calibration.line_constraints import build_line_correspondence, line_alignment_scores

    net = build_line_correspondence("net", [(212, 388), (1705, 391)])
    scores = line_alignment_scores(H, [net])
"""
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from court_calibration.config import DEFAULT_COURT_TYPE, LINE_ALIGNMENT_FALLOFF_PX
from court_calibration.court_config import COURT_LINES, COURT_VERTICES
from court_calibration.exceptions import (
    InvalidConfidence,
    InvalidLineCorrespondence,
    UnknownCourtType,
)
from court_calibration.homography import as_xy, project_points
from court_calibration.schemas import LineCorrespondence, Point2D


def get_available_lines() -> Dict[str, Tuple[str, str]]:
    """Return dict of available line IDs and their endpoint landmark ids."""
    return dict(COURT_LINES)


def get_line_world_endpoints(line_id: str, court_type: str = DEFAULT_COURT_TYPE) -> Tuple[Point2D, Point2D]:
    """
    Court-plane endpoints (meters) of a named court line.

    Raises:
        InvalidLineCorrespondence: If line_id is not recognized
        UnknownCourtType: If the court type has no geometry
    """
    if line_id not in COURT_LINES:
        raise InvalidLineCorrespondence(
            f"Unknown line ID: {line_id}. Valid options: {list(COURT_LINES.keys())}"
        )
    if court_type not in COURT_VERTICES:
        raise UnknownCourtType(f"Unknown court type: {court_type}")

    vertices = COURT_VERTICES[court_type]
    start_id, end_id = COURT_LINES[line_id]
    (x1, y1), (x2, y2) = vertices[start_id], vertices[end_id]
    return Point2D(x=x1, y=y1), Point2D(x=x2, y=y2)


def build_line_correspondence(
    line_id: str,
    image_points: Sequence,
    confidence: float = 1.0,
    court_type: str = DEFAULT_COURT_TYPE,
) -> LineCorrespondence:
    """
    Pair a named court line with clicked image points along it.

    Args:
        line_id: Key of COURT_LINES (e.g. "net", "short_service_near")
        image_points: Two or more clicked points in image pixels, ordered
            from the line's start landmark to its end landmark
        confidence: User confidence in the annotation, in [0, 1]
        court_type: Court geometry to take the endpoints from

    Raises:
        InvalidLineCorrespondence: Unknown line or fewer than two points
        InvalidConfidence: Confidence outside [0, 1]
    """
    if len(image_points) < 2:
        raise InvalidLineCorrespondence(
            f"Line '{line_id}' needs at least 2 image points, got {len(image_points)}"
        )
    if confidence is None or not (0.0 <= confidence <= 1.0):
        raise InvalidConfidence(f"Confidence must be in [0, 1], got {confidence}")

    start, end = get_line_world_endpoints(line_id, court_type)
    video_line = [Point2D(x=x, y=y) for x, y in (as_xy(p) for p in image_points)]
    return LineCorrespondence(
        court_line=(start, end),
        video_line=video_line,
        confidence=confidence,
        line_id=line_id,
    )


# =============================================================================
# Alignment scoring
# =============================================================================

def line_endpoint_error(H: np.ndarray, line: LineCorrespondence) -> Optional[float]:
    """
    Mean pixel distance between the projected court endpoints and the first
    and last clicked image points. None if an endpoint projects to infinity.
    """
    court = np.array([as_xy(p) for p in line.court_line])
    projected, valid = project_points(H, court)
    if not valid.all():
        return None

    observed = np.array([as_xy(line.video_line[0]), as_xy(line.video_line[-1])])
    errors = np.linalg.norm(projected - observed, axis=1)
    return float(errors.mean())


def line_alignment_score(
    H: np.ndarray,
    line: LineCorrespondence,
    falloff_px: float = LINE_ALIGNMENT_FALLOFF_PX,
) -> float:
    """Score in [0, 1]: 1 at zero endpoint error, falling linearly to 0 at ``falloff_px``."""
    error = line_endpoint_error(H, line)
    if error is None:
        return 0.0
    return max(0.0, 1.0 - error / falloff_px)


def line_alignment_scores(
    H: np.ndarray,
    lines: Sequence[LineCorrespondence],
    falloff_px: float = LINE_ALIGNMENT_FALLOFF_PX,
) -> List[float]:
    H = np.asarray(H, dtype=np.float64)
    return [line_alignment_score(H, line, falloff_px) for line in lines]
