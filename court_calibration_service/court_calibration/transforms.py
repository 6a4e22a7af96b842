"""Pixel ↔ court-meter coordinate conversion.

``CoordinateTransformer`` is the sanctioned way for other subsystems (pose
speed calculation, ROI cropping) to obtain metric coordinates from a
calibration.

Coordinate System:
==================
- Image: video-frame pixels (x right, y down)
- World: court meters, origin at the near-left doubles corner, Z = height
  above the court surface

The homography only models the ground plane (Z = 0):

- ``image_to_world`` always returns Z = 0 (or the caller-supplied height,
  which is NOT used in the projection).
- ``world_to_image`` ignores Z. Points above the court are therefore only
  handled approximately; see ``transform_landmarks_to_world`` for the
  height heuristic used for body landmarks.
"""
import logging
from typing import List, Optional, Sequence

import numpy as np

from court_calibration.config import (
    HOMOGENEOUS_EPSILON,
    LANDMARK_DEPTH_SCALE,
    REFERENCE_PLAYER_HEIGHT_M,
)
from court_calibration.exceptions import NotCalibrated, NumericalInstability
from court_calibration.homography import as_xy, invert_homography, is_valid_homography, to_array
from court_calibration.schemas import CalibrationResult, Point2D, Point3D

logger = logging.getLogger(__name__)

# 33-point pose model landmark indices
FOOT_LANDMARKS = (27, 28, 31, 32)        # ankles and foot tips
HIP_LANDMARKS = (23, 24)
UPPER_BODY_LANDMARK_LIMIT = 11           # indices below this are head / face

# Fallback landmark heights (meters) for a reference-height player
HEAD_HEIGHT_M = 1.5
HIP_HEIGHT_M = 0.9
OTHER_LANDMARK_HEIGHT_M = 0.7


class CoordinateTransformer:
    """Applies a fitted homography (court → image) and its inverse."""

    def __init__(self, homography):
        H = np.asarray(homography, dtype=np.float64)
        if not is_valid_homography(H):
            raise NotCalibrated("Homography is missing, degenerate or non-finite")
        H_inv = invert_homography(H)
        if H_inv is None:
            raise NotCalibrated("Homography cannot be inverted")
        self.H = H
        self.H_inv = H_inv

    @classmethod
    def from_result(cls, result: CalibrationResult) -> "CoordinateTransformer":
        return cls(result.matrix())

    # ── Single points ─────────────────────────────────────────────────────────

    def image_to_world(self, point, z: float = 0.0) -> Point3D:
        """
        Map an image pixel onto the court plane.

        Args:
            point: Image point (Point2D, dict or (x, y))
            z: Height to report on the result. The projection itself is
               always onto the ground plane.

        Raises:
            NumericalInstability: If the homogeneous divisor is ~0 (the
                pixel lies on the court's vanishing line).
        """
        x, y = as_xy(point)
        X, Y, w = self.H_inv @ np.array([x, y, 1.0])
        if abs(w) < HOMOGENEOUS_EPSILON:
            raise NumericalInstability(
                f"Image point ({x:.1f}, {y:.1f}) projects to infinity on the court plane"
            )
        return Point3D(x=float(X / w), y=float(Y / w), z=float(z))

    def world_to_image(self, point) -> Point2D:
        """
        Map a court point to image pixels.

        Z is ignored (ground-plane model): a point above the court is drawn
        where its ground footprint appears, which is only an approximation.

        Raises:
            NumericalInstability: If the homogeneous divisor is ~0.
        """
        X, Y = as_xy(point)
        x, y, w = self.H @ np.array([X, Y, 1.0])
        if abs(w) < HOMOGENEOUS_EPSILON:
            raise NumericalInstability(
                f"Court point ({X:.2f}, {Y:.2f}) projects to infinity in the image"
            )
        return Point2D(x=float(x / w), y=float(y / w))

    # ── Batches ───────────────────────────────────────────────────────────────

    def batch_image_to_world(self, points: Sequence, z: float = 0.0) -> List[Optional[Point3D]]:
        """Like ``image_to_world`` for many points; unmappable points become None."""
        if not len(points):
            return []
        pts = to_array(points)
        homogeneous = np.hstack([pts, np.ones((len(pts), 1))]) @ self.H_inv.T

        results = []
        for X, Y, w in homogeneous:
            if abs(w) < HOMOGENEOUS_EPSILON:
                results.append(None)
            else:
                results.append(Point3D(x=float(X / w), y=float(Y / w), z=float(z)))
        return results

    def batch_world_to_image(self, points: Sequence) -> List[Optional[Point2D]]:
        """Like ``world_to_image`` for many points; unmappable points become None."""
        if not len(points):
            return []
        pts = to_array(points)
        homogeneous = np.hstack([pts, np.ones((len(pts), 1))]) @ self.H.T

        results = []
        for x, y, w in homogeneous:
            if abs(w) < HOMOGENEOUS_EPSILON:
                results.append(None)
            else:
                results.append(Point2D(x=float(x / w), y=float(y / w)))
        return results

    # ── Pose landmarks (approximate) ──────────────────────────────────────────

    def transform_landmarks_to_world(
        self,
        landmarks: Sequence,
        world_landmarks: Optional[Sequence] = None,
        player_height_m: Optional[float] = None,
        depth_scale: float = LANDMARK_DEPTH_SCALE,
    ) -> List[Optional[Point3D]]:
        """
        Convert pose landmarks (image pixels) to court coordinates.

        APPROXIMATION, not a 3D reconstruction. Only the feet are on the
        ground plane, so only they get an exact homography projection. Every
        other landmark is projected as if it were on the ground (its X, Y are
        therefore biased away from the camera) and is given an estimated
        height:

        - with ``world_landmarks`` from the pose model: |z| * depth_scale
        - otherwise a body-proportion fallback (head 1.5 m, hips 0.9 m,
          other joints 0.7 m), scaled by player_height / 1.75 m when the
          player's height is known

        Args:
            landmarks: Image-space landmarks (objects/dicts with x, y)
            world_landmarks: Optional pose-model world landmarks (with z)
            player_height_m: Optional player height for the fallback scaling
            depth_scale: Multiplier applied to pose-model depth

        Returns:
            One Point3D per landmark; None where the projection fails.
        """
        height_ratio = 1.0
        if player_height_m:
            height_ratio = player_height_m / REFERENCE_PLAYER_HEIGHT_M

        transformed = []
        for i, landmark in enumerate(landmarks):
            if i in FOOT_LANDMARKS:
                z = 0.0
            elif world_landmarks is not None and i < len(world_landmarks) and world_landmarks[i] is not None:
                z = abs(_landmark_z(world_landmarks[i])) * depth_scale
            else:
                z = _fallback_height(i) * height_ratio

            try:
                transformed.append(self.image_to_world(landmark, z=z))
            except NumericalInstability:
                logger.warning("Landmark %d projects to infinity; skipping", i)
                transformed.append(None)
        return transformed


def _landmark_z(landmark) -> float:
    if hasattr(landmark, "z"):
        return float(landmark.z or 0.0)
    if isinstance(landmark, dict):
        return float(landmark.get("z") or 0.0)
    return float(landmark[2]) if len(landmark) > 2 else 0.0


def _fallback_height(index: int) -> float:
    if index < UPPER_BODY_LANDMARK_LIMIT:
        return HEAD_HEIGHT_M
    if index in HIP_LANDMARKS:
        return HIP_HEIGHT_M
    return OTHER_LANDMARK_HEIGHT_M
