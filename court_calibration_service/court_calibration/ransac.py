"""RANSAC robust fitting around the DLT homography estimator.

Strategy:
  1. Draw a random minimal sample of 4 correspondences (re-draw when any
     three of them are collinear in the image or on the court)
  2. Estimate a candidate homography from the sample
  3. Score it: back-project every observed image point through the
     candidate's inverse and measure the distance to its known court
     position in METERS; points closer than the threshold are inliers
  4. Keep the candidate with the most inliers (ties: lower mean inlier
     residual)
  5. Refit on the winning inlier set for the final homography

Residuals are measured in court meters so that the threshold has the same
meaning anywhere on the court, independent of the video resolution.
"""
import logging
from typing import Optional, Sequence

import numpy as np

from court_calibration import config
from court_calibration.exceptions import DegenerateConfiguration, InsufficientInliers
from court_calibration.homography import (
    MIN_CORRESPONDENCES,
    HomographyEstimator,
    are_collinear,
    has_collinear_triple,
    invert_homography,
    project_points,
    to_array,
)
from court_calibration.schemas import CalibrationPoint, CalibrationResult

logger = logging.getLogger(__name__)


def world_residuals(H: np.ndarray, image_pts: np.ndarray, world_pts: np.ndarray) -> np.ndarray:
    """
    Distance in meters between each known court point and its observed
    image point mapped back onto the court through H^-1.

    Returns +inf for every point when H cannot be inverted, and for points
    whose back-projection is at infinity.
    """
    H_inv = invert_homography(H)
    residuals = np.full(len(image_pts), np.inf)
    if H_inv is None:
        return residuals
    estimated, valid = project_points(H_inv, image_pts)
    residuals[valid] = np.linalg.norm(estimated[valid] - world_pts[valid], axis=1)
    return residuals


class RobustFitter:
    """Finds a homography supported by the largest consistent subset of clicks."""

    def __init__(
        self,
        estimator: HomographyEstimator = None,
        inlier_threshold_m: float = None,
        max_iterations: int = None,
        min_inlier_fraction: float = None,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.estimator = estimator or HomographyEstimator()
        self.inlier_threshold_m = (
            config.RANSAC_INLIER_THRESHOLD_M if inlier_threshold_m is None else inlier_threshold_m
        )
        self.max_iterations = config.RANSAC_MAX_ITERATIONS if max_iterations is None else max_iterations
        self.min_inlier_fraction = (
            config.RANSAC_MIN_INLIER_FRACTION if min_inlier_fraction is None else min_inlier_fraction
        )
        if rng is None:
            rng = np.random.default_rng(config.RANSAC_SEED if seed is None else seed)
        self.rng = rng

    def fit(
        self,
        points: Sequence[CalibrationPoint],
        inlier_threshold_m: float = None,
        max_iterations: int = None,
        min_inlier_fraction: float = None,
    ) -> CalibrationResult:
        """
        Robustly fit a homography to calibration points.

        Args:
            points: Collected calibration points (ids must be unique)
            inlier_threshold_m: Max court-space residual (meters) for an inlier
            max_iterations: Number of minimal samples to draw
            min_inlier_fraction: Required fraction of inliers for success

        Returns:
            CalibrationResult with the refined homography and the inlier /
            outlier id sets. ``quality_metrics`` is left unset.

        Raises:
            DegenerateConfiguration: Fewer than 4 points, all points
                collinear, or no non-degenerate sample could be drawn.
            InsufficientInliers: The best model's inlier fraction is below
                ``min_inlier_fraction``.
        """
        threshold = self.inlier_threshold_m if inlier_threshold_m is None else inlier_threshold_m
        iterations = self.max_iterations if max_iterations is None else max_iterations
        min_fraction = self.min_inlier_fraction if min_inlier_fraction is None else min_inlier_fraction

        points = list(points)
        ids = [p.id for p in points]
        image_pts = to_array(p.image_point for p in points)
        world_pts = to_array(p.world_point for p in points)

        inlier_mask = self.find_inliers(image_pts, world_pts, threshold, iterations, min_fraction)

        # Refit on the winning inlier set
        H = self.estimator.estimate_arrays(image_pts[inlier_mask], world_pts[inlier_mask])
        residuals = world_residuals(H, image_pts[inlier_mask], world_pts[inlier_mask])

        inlier_ids = [pid for pid, keep in zip(ids, inlier_mask) if keep]
        outlier_ids = [pid for pid, keep in zip(ids, inlier_mask) if not keep]
        if outlier_ids:
            logger.info("RANSAC rejected %d of %d points as outliers: %s",
                        len(outlier_ids), len(ids), ", ".join(outlier_ids))

        return CalibrationResult(
            homography=H.tolist(),
            inlier_point_ids=inlier_ids,
            outlier_point_ids=outlier_ids,
            mean_world_error_m=float(np.mean(residuals)),
        )

    def find_inliers(
        self,
        image_pts: np.ndarray,
        world_pts: np.ndarray,
        threshold: float,
        iterations: int,
        min_fraction: float,
    ) -> np.ndarray:
        """Run the sampling loop and return the boolean inlier mask of the best model."""
        n = len(image_pts)
        if n < MIN_CORRESPONDENCES:
            raise DegenerateConfiguration(
                f"Need at least {MIN_CORRESPONDENCES} correspondences for a homography, got {n}"
            )
        if are_collinear(image_pts) or are_collinear(world_pts):
            raise DegenerateConfiguration("All correspondences are collinear")

        best_mask = None
        best_count = 0
        best_mean = np.inf

        for iteration in range(iterations):
            idx = self._draw_sample(image_pts, world_pts)
            if idx is None:
                continue

            try:
                H = self.estimator.estimate_arrays(image_pts[idx], world_pts[idx])
            except DegenerateConfiguration:
                continue

            residuals = world_residuals(H, image_pts, world_pts)
            mask = residuals < threshold
            count = int(mask.sum())
            if count == 0:
                continue
            mean_residual = float(np.mean(residuals[mask]))

            if count > best_count or (count == best_count and mean_residual < best_mean):
                best_mask, best_count, best_mean = mask, count, mean_residual
                logger.debug("RANSAC iteration %d: %d/%d inliers (mean residual %.4f m)",
                             iteration, count, n, mean_residual)
                if count == n and mean_residual < 1e-12:
                    break

        if best_mask is None:
            raise DegenerateConfiguration("No non-degenerate minimal sample could be drawn")

        fraction = best_count / n
        if fraction < min_fraction:
            raise InsufficientInliers(
                f"Best model has {best_count}/{n} inliers ({fraction:.0%}), "
                f"need at least {min_fraction:.0%}"
            )
        logger.debug("RANSAC best model: %d/%d inliers", best_count, n)
        return best_mask

    def _draw_sample(self, image_pts: np.ndarray, world_pts: np.ndarray) -> Optional[np.ndarray]:
        """Draw 4 indices with no collinear triple, or None after too many attempts."""
        n = len(image_pts)
        for _ in range(config.RANSAC_MAX_SAMPLE_ATTEMPTS):
            idx = self.rng.choice(n, MIN_CORRESPONDENCES, replace=False)
            if has_collinear_triple(image_pts[idx]) or has_collinear_triple(world_pts[idx]):
                continue
            return idx
        return None

