"""Homography estimation from court landmark correspondences.

Coordinate convention:
======================
The estimated homography H maps the COURT PLANE to the IMAGE:

    [x, y, w]^T = H @ [X, Y, 1]^T      image pixel = (x / w, y / w)

where (X, Y) are court meters (Z = 0, the ground plane) and (x, y) are
video-frame pixels. Image → court uses the inverse of H (see
``transforms.CoordinateTransformer``).

Estimation uses the normalized Direct Linear Transform:

    1. Isotropically normalize both point sets (centroid at the origin,
       mean distance from the origin sqrt(2)).
    2. Build the 2n x 9 DLT system, two rows per correspondence.
    3. Take the right singular vector of the smallest singular value.
    4. Denormalize back to pixel / meter scale.
    5. Fix the overall scale (H[2][2] = 1, or unit Frobenius norm when
       H[2][2] is ~0).

Normalization is always applied; without it the DLT system mixes
coordinates of order 1 (meters) with products of order 1e5 (pixels
squared) and the SVD becomes badly conditioned.
"""
import logging
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np

from court_calibration.config import (
    COLLINEARITY_TOLERANCE,
    DETERMINANT_EPSILON,
    HOMOGENEOUS_EPSILON,
    RANK_DEFICIENCY_TOLERANCE,
)
from court_calibration.exceptions import DegenerateConfiguration
from court_calibration.linalg import LinearAlgebraBackend, default_backend

logger = logging.getLogger(__name__)

MIN_CORRESPONDENCES = 4


def as_xy(point) -> Tuple[float, float]:
    """Return (x, y) for a Point2D/Point3D model, a mapping or a sequence."""
    if hasattr(point, "x") and hasattr(point, "y"):
        return float(point.x), float(point.y)
    if isinstance(point, dict):
        return float(point["x"]), float(point["y"])
    return float(point[0]), float(point[1])


def to_array(points: Iterable) -> np.ndarray:
    """Convert an iterable of points to an Nx2 float64 array."""
    if isinstance(points, np.ndarray):
        return points.astype(np.float64).reshape(-1, 2)
    return np.array([as_xy(p) for p in points], dtype=np.float64).reshape(-1, 2)


# =============================================================================
# Geometry helpers
# =============================================================================

def normalize_points(points: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Isotropic (Hartley) normalization of a 2D point set.

    Args:
        points: Nx2 array

    Returns:
        Tuple of (normalized Nx2 points, 3x3 similarity transform T) such
        that normalized = T @ [x, y, 1].

    Raises:
        DegenerateConfiguration: If all points coincide.
    """
    centroid = points.mean(axis=0)
    centered = points - centroid
    mean_dist = np.mean(np.sqrt(np.sum(centered ** 2, axis=1)))
    if mean_dist < HOMOGENEOUS_EPSILON:
        raise DegenerateConfiguration("All points coincide; cannot normalize")

    scale = np.sqrt(2.0) / mean_dist
    T = np.array([
        [scale, 0.0, -scale * centroid[0]],
        [0.0, scale, -scale * centroid[1]],
        [0.0, 0.0, 1.0],
    ])
    return centered * scale, T


def are_collinear(points: np.ndarray, tol: float = COLLINEARITY_TOLERANCE) -> bool:
    """True if every point lies (numerically) on one line."""
    if len(points) < 3:
        return True
    centered = points - points.mean(axis=0)
    s = np.linalg.svd(centered, compute_uv=False)
    if s[0] < HOMOGENEOUS_EPSILON:
        return True
    return s[1] <= np.sqrt(tol) * s[0]


def has_collinear_triple(points: np.ndarray, tol: float = COLLINEARITY_TOLERANCE) -> bool:
    """True if any three points of a small set are (numerically) collinear.

    Used to reject degenerate minimal samples. The triangle area is compared
    with the squared spread of the set so the test is scale independent.
    """
    n = len(points)
    spread = np.max(np.ptp(points, axis=0)) if n else 0.0
    if spread < HOMOGENEOUS_EPSILON:
        return True
    scale = spread * spread
    for i in range(n - 2):
        for j in range(i + 1, n - 1):
            for k in range(j + 1, n):
                a, b, c = points[i], points[j], points[k]
                area = abs((b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0]))
                if area <= tol * scale:
                    return True
    return False


def project_points(H: np.ndarray, points: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Apply a homography to Nx2 points.

    Returns:
        Tuple of (projected Nx2 array, valid mask). Points whose homogeneous
        divisor is near zero are marked invalid and left as NaN.
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    homogeneous = np.hstack([pts, np.ones((len(pts), 1))])
    mapped = homogeneous @ np.asarray(H, dtype=np.float64).T
    w = mapped[:, 2]
    valid = np.abs(w) >= HOMOGENEOUS_EPSILON

    projected = np.full((len(pts), 2), np.nan)
    projected[valid] = mapped[valid, :2] / w[valid, None]
    return projected, valid


def relative_determinant(H: np.ndarray, backend: LinearAlgebraBackend = None) -> float:
    """|det(H)| divided by ||H||_F^3, a scale-free singularity measure."""
    backend = backend or default_backend
    norm = np.linalg.norm(H)
    if norm < HOMOGENEOUS_EPSILON:
        return 0.0
    return abs(backend.det(H)) / norm ** 3


def is_valid_homography(H) -> bool:
    """
    Check that H is a usable homography.

    Requires a 3x3 finite matrix with a determinant bounded away from zero
    and a non-vanishing H[2][2].
    """
    if H is None:
        return False
    H = np.asarray(H, dtype=np.float64)
    if H.shape != (3, 3) or not np.all(np.isfinite(H)):
        return False
    if relative_determinant(H) < DETERMINANT_EPSILON:
        return False
    if abs(H[2, 2]) < HOMOGENEOUS_EPSILON * np.linalg.norm(H):
        return False
    return True


def invert_homography(H: np.ndarray, backend: LinearAlgebraBackend = None) -> Optional[np.ndarray]:
    """Inverse of H with the same scale convention, or None if H is singular."""
    backend = backend or default_backend
    H = np.asarray(H, dtype=np.float64)
    if relative_determinant(H, backend) < DETERMINANT_EPSILON:
        return None
    try:
        return fix_scale(backend.inv(H))
    except np.linalg.LinAlgError:
        return None


def fix_scale(H: np.ndarray) -> np.ndarray:
    """Rescale so H[2][2] == 1, or to unit Frobenius norm when H[2][2] ~ 0."""
    norm = np.linalg.norm(H)
    if norm < HOMOGENEOUS_EPSILON:
        return H
    if abs(H[2, 2]) > HOMOGENEOUS_EPSILON * norm:
        return H / H[2, 2]
    return H / norm


def reprojection_errors(H: np.ndarray, image_pts: np.ndarray, world_pts: np.ndarray) -> np.ndarray:
    """Per-point pixel distance between observed image points and projected world points.

    Points that project to infinity get an error of +inf.
    """
    projected, valid = project_points(H, world_pts)
    errors = np.full(len(image_pts), np.inf)
    errors[valid] = np.linalg.norm(projected[valid] - image_pts[valid], axis=1)
    return errors


# =============================================================================
# DLT estimator
# =============================================================================

def build_dlt_matrix(image_pts: np.ndarray, world_pts: np.ndarray) -> np.ndarray:
    """
    Build the 2n x 9 DLT coefficient matrix for image ~ H @ world.

    Args:
        image_pts: Nx2 image coordinates (normally already normalized)
        world_pts: Nx2 world coordinates (normally already normalized)
    """
    n = len(image_pts)
    A = np.zeros((2 * n, 9))
    X, Y = world_pts[:, 0], world_pts[:, 1]
    x, y = image_pts[:, 0], image_pts[:, 1]

    A[0::2, 0] = X
    A[0::2, 1] = Y
    A[0::2, 2] = 1.0
    A[0::2, 6] = -x * X
    A[0::2, 7] = -x * Y
    A[0::2, 8] = -x

    A[1::2, 3] = X
    A[1::2, 4] = Y
    A[1::2, 5] = 1.0
    A[1::2, 6] = -y * X
    A[1::2, 7] = -y * Y
    A[1::2, 8] = -y
    return A


class HomographyEstimator:
    """Normalized DLT homography solver (court meters → image pixels)."""

    def __init__(self, backend: LinearAlgebraBackend = None):
        self.backend = backend or default_backend

    def estimate(self, correspondences: Sequence) -> np.ndarray:
        """
        Estimate H from (image_point, world_point) pairs.

        Args:
            correspondences: Sequence of (image_point, world_point) pairs.
                Points may be Point2D/Point3D models, dicts or (x, y)
                sequences. World Z is ignored (ground plane).

        Returns:
            3x3 homography mapping court meters to image pixels

        Raises:
            DegenerateConfiguration: Fewer than 4 correspondences, collinear
                points, or a numerically singular solve.
        """
        pairs = list(correspondences)
        if len(pairs) < MIN_CORRESPONDENCES:
            raise DegenerateConfiguration(
                f"Need at least {MIN_CORRESPONDENCES} correspondences for a homography, got {len(pairs)}"
            )
        image_pts = to_array(p[0] for p in pairs)
        world_pts = to_array(p[1] for p in pairs)
        return self.estimate_arrays(image_pts, world_pts)

    def estimate_arrays(self, image_pts: np.ndarray, world_pts: np.ndarray) -> np.ndarray:
        """Array form of ``estimate``: Nx2 image points and Nx2 world points."""
        image_pts = np.asarray(image_pts, dtype=np.float64).reshape(-1, 2)
        world_pts = np.asarray(world_pts, dtype=np.float64).reshape(-1, 2)

        if image_pts.shape != world_pts.shape:
            raise DegenerateConfiguration(
                f"Point arrays must have same shape: {image_pts.shape} vs {world_pts.shape}"
            )
        if len(image_pts) < MIN_CORRESPONDENCES:
            raise DegenerateConfiguration(
                f"Need at least {MIN_CORRESPONDENCES} correspondences for a homography, got {len(image_pts)}"
            )
        if not (np.all(np.isfinite(image_pts)) and np.all(np.isfinite(world_pts))):
            raise DegenerateConfiguration("Correspondences contain non-finite coordinates")
        if are_collinear(image_pts) or are_collinear(world_pts):
            raise DegenerateConfiguration("All correspondences are collinear")

        # Step 1: isotropic normalization of both point sets
        img_n, T_img = normalize_points(image_pts)
        world_n, T_world = normalize_points(world_pts)

        # Step 2-3: DLT system solved by SVD
        A = build_dlt_matrix(img_n, world_n)
        h, singular_values = self.backend.solve_least_squares(A)

        # A 2n x 9 system has min(2n, 9) singular values; the missing ones are 0
        s = np.zeros(9)
        s[:len(singular_values)] = singular_values[:9]
        if s[0] < HOMOGENEOUS_EPSILON or (s[7] - s[8]) <= RANK_DEFICIENCY_TOLERANCE * s[0]:
            raise DegenerateConfiguration(
                "DLT system is rank deficient (smallest singular values are indistinguishable)"
            )

        H_n = np.asarray(h, dtype=np.float64).reshape(3, 3)

        # Step 4: denormalize, image = T_img^-1 @ H_n @ T_world @ world
        try:
            T_img_inv = self.backend.inv(T_img)
        except np.linalg.LinAlgError as e:
            raise DegenerateConfiguration(f"Normalization transform is singular: {e}")
        H = T_img_inv @ H_n @ T_world

        if not np.all(np.isfinite(H)) or relative_determinant(H, self.backend) < DETERMINANT_EPSILON:
            raise DegenerateConfiguration("Estimated homography is numerically singular")

        # Step 5: fix scale
        H = fix_scale(H)
        logger.debug(
            "Estimated homography from %d correspondences (smallest singular values %.3e, %.3e)",
            len(image_pts), s[7], s[8]
        )
        return H
