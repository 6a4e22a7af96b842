"""Coordinate-system sanity checks for a fitted homography.

Three independent checks, folded into one score:

- round trip:   image → court → image over a grid of test pixels
- bounds:       mapped test pixels should land near the court
- scale:        local meters-per-pixel should not vary wildly across the frame

The overall score is 0.4 * round trip + 0.3 * bounds + 0.3 * scale.
"""
from typing import List, Optional, Tuple

import numpy as np

from court_calibration.homography import invert_homography, project_points
from court_calibration.schemas import (
    CoordinateSystemValidation,
    CourtDimensions,
    ImageDimensions,
    ValidationResult,
)

ROUND_TRIP_WEIGHT = 0.4
BOUNDS_WEIGHT = 0.3
SCALE_WEIGHT = 0.3

ROUND_TRIP_TOLERANCE_PX = 2.0
# Mapped points beyond this multiple of the court extents count as out of bounds
BOUNDS_MARGIN_FACTOR = 2.0
MAX_OUT_OF_BOUNDS_RATIO = 0.1
SCALE_PROBE_PX = 50.0


def generate_test_points(image: ImageDimensions) -> np.ndarray:
    """A 5x5 grid (10%..90%), the centre and four 5%-inset corners, as Nx2 pixels."""
    w, h = image.width, image.height
    fractions = np.linspace(0.1, 0.9, 5)
    grid = [(fx * w, fy * h) for fx in fractions for fy in fractions]

    margin = min(w, h) * 0.05
    extra = [
        (w / 2, h / 2),
        (margin, margin),
        (w - margin, margin),
        (margin, h - margin),
        (w - margin, h - margin),
    ]
    return np.array(grid + extra, dtype=np.float64)


def validate_round_trip(
    H: np.ndarray,
    test_points: np.ndarray,
    tolerance_px: float = ROUND_TRIP_TOLERANCE_PX,
) -> ValidationResult:
    """Image → world → image error over the test points."""
    H_inv = invert_homography(H)
    if H_inv is None:
        return ValidationResult(is_valid=False, error=float("inf"), confidence=0.0,
                                details="Homography is not invertible")

    world, valid_w = project_points(H_inv, test_points)
    back, valid_b = project_points(H, np.nan_to_num(world))
    valid = valid_w & valid_b
    if not valid.any():
        return ValidationResult(is_valid=False, error=float("inf"), confidence=0.0,
                                details="No valid transformations found")

    errors = np.linalg.norm(back[valid] - test_points[valid], axis=1)
    avg_error = float(errors.mean())
    max_error = float(errors.max())
    return ValidationResult(
        is_valid=avg_error <= tolerance_px and max_error <= tolerance_px * 2,
        error=avg_error,
        confidence=max(0.0, 1.0 - avg_error / tolerance_px),
        details=(
            f"Average error: {avg_error:.2f}px, Max error: {max_error:.2f}px, "
            f"Valid transforms: {int(valid.sum())}/{len(test_points)}"
        ),
    )


def validate_bounds(
    H: np.ndarray,
    test_points: np.ndarray,
    image: ImageDimensions,
    court: CourtDimensions,
) -> ValidationResult:
    """Fraction of in-frame test pixels that map to somewhere near the court."""
    in_frame = (
        (test_points[:, 0] >= 0) & (test_points[:, 0] <= image.width)
        & (test_points[:, 1] >= 0) & (test_points[:, 1] <= image.height)
    )
    H_inv = invert_homography(H)
    if H_inv is None or not in_frame.any():
        return ValidationResult(is_valid=False, error=1.0, confidence=0.0,
                                details="No valid coordinate transformations")

    world, valid = project_points(H_inv, test_points[in_frame])
    world = world[valid]
    if len(world) == 0:
        return ValidationResult(is_valid=False, error=1.0, confidence=0.0,
                                details="No valid coordinate transformations")

    max_x = court.width * BOUNDS_MARGIN_FACTOR
    max_y = court.length * BOUNDS_MARGIN_FACTOR
    out_of_bounds = int(np.sum((np.abs(world[:, 0]) > max_x) | (np.abs(world[:, 1]) > max_y)))
    ratio = out_of_bounds / len(world)
    return ValidationResult(
        is_valid=ratio < MAX_OUT_OF_BOUNDS_RATIO,
        error=ratio,
        confidence=max(0.0, 1.0 - ratio),
        details=f"{out_of_bounds}/{len(world)} points out of court bounds ({ratio * 100:.1f}%)",
    )


def local_scales(
    H_inv: np.ndarray,
    centres: List[Tuple[float, float]],
    probe_px: float,
) -> List[float]:
    """
    Meters per pixel at each centre, from a symmetric horizontal probe.

    Centres whose probe endpoints cannot be mapped are skipped.
    """
    scales = []
    for cx, cy in centres:
        probe = np.array([[cx - probe_px, cy], [cx + probe_px, cy]])
        world, valid = project_points(H_inv, probe)
        if not valid.all():
            continue
        scales.append(float(np.linalg.norm(world[1] - world[0]) / (2 * probe_px)))
    return scales


def validate_scale_consistency(
    H: np.ndarray,
    image: ImageDimensions,
    probe_px: float = SCALE_PROBE_PX,
) -> ValidationResult:
    """Relative spread of local scale at the centre and four quadrant centres."""
    H_inv = invert_homography(H)
    w, h = image.width, image.height
    centres = [(w * 0.5, h * 0.5), (w * 0.25, h * 0.25), (w * 0.75, h * 0.25),
               (w * 0.25, h * 0.75), (w * 0.75, h * 0.75)]
    scales = local_scales(H_inv, centres, probe_px) if H_inv is not None else []

    if len(scales) < 2:
        return ValidationResult(is_valid=False, error=1.0, confidence=0.0,
                                details="Insufficient scale measurements")

    scales = np.array(scales)
    avg = float(scales.mean())
    if avg <= 0:
        return ValidationResult(is_valid=False, error=1.0, confidence=0.0,
                                details="Degenerate scale measurements")
    variations = np.abs(scales - avg) / avg
    max_var = float(variations.max())
    avg_var = float(variations.mean())
    return ValidationResult(
        is_valid=max_var < 0.2 and avg_var < 0.1,
        error=avg_var,
        confidence=max(0.0, 1.0 - avg_var * 5),
        details=f"Scale variation: avg {avg_var * 100:.1f}%, max {max_var * 100:.1f}%",
    )


def validate_coordinate_system(
    H: np.ndarray,
    image: ImageDimensions,
    court: CourtDimensions,
    test_points: Optional[np.ndarray] = None,
) -> CoordinateSystemValidation:
    """Run all checks and combine them into an overall score in [0, 1]."""
    if test_points is None:
        test_points = generate_test_points(image)
    H = np.asarray(H, dtype=np.float64)

    round_trip = validate_round_trip(H, test_points)
    bounds = validate_bounds(H, test_points, image, court)
    scale = validate_scale_consistency(H, image)

    overall = (
        round_trip.confidence * ROUND_TRIP_WEIGHT
        + bounds.confidence * BOUNDS_WEIGHT
        + scale.confidence * SCALE_WEIGHT
    )
    return CoordinateSystemValidation(
        round_trip_accuracy=round_trip,
        boundary_validation=bounds,
        scale_consistency=scale,
        overall_score=float(min(1.0, max(0.0, overall))),
    )
