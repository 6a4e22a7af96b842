"""Configuration constants for the court calibration engine."""
import os
from pathlib import Path


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value not in (None, "") else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


# Court / mode defaults
DEFAULT_COURT_TYPE = os.getenv("DEFAULT_COURT_TYPE", "badminton")
DEFAULT_MODE_ID = os.getenv("DEFAULT_MODE_ID", "minimal")

# RANSAC defaults - residuals are measured in court meters
RANSAC_INLIER_THRESHOLD_M = _env_float("RANSAC_INLIER_THRESHOLD_M", 0.25)
RANSAC_MAX_ITERATIONS = _env_int("RANSAC_MAX_ITERATIONS", 1000)
RANSAC_MIN_INLIER_FRACTION = _env_float("RANSAC_MIN_INLIER_FRACTION", 0.6)
RANSAC_SEED = int(os.environ["RANSAC_SEED"]) if os.getenv("RANSAC_SEED") else None
# Attempts at drawing a non-collinear minimal sample before giving up on an iteration
RANSAC_MAX_SAMPLE_ATTEMPTS = 20

# Numeric tolerances
HOMOGENEOUS_EPSILON = 1e-10
DETERMINANT_EPSILON = 1e-10
# Relative gap between the two smallest singular values below which a
# DLT system is treated as rank deficient
RANK_DEFICIENCY_TOLERANCE = 1e-9
# Area (relative to squared spread) below which a point triple is collinear
COLLINEARITY_TOLERANCE = 1e-9
CONDITION_NUMBER_CAP = 1e6

# Quality assessment weights (empirical, not derived)
QUALITY_WEIGHT_REPROJECTION = 0.30
QUALITY_WEIGHT_CONDITION = 0.20
QUALITY_WEIGHT_PERSPECTIVE = 0.20
QUALITY_WEIGHT_LINES = 0.20
QUALITY_WEIGHT_COORDINATES = 0.10

# Quality recommendation thresholds
REPROJECTION_ERROR_THRESHOLD_PX = 50.0
CONDITION_NUMBER_THRESHOLD = 1000.0
PERSPECTIVE_DISTORTION_THRESHOLD = 0.3
LINE_ALIGNMENT_THRESHOLD = 0.7
COORDINATE_SANITY_THRESHOLD = 0.6

# Normalisation scales used when folding metrics into a confidence
REPROJECTION_NORMALIZATION_PX = 100.0
LINE_ALIGNMENT_FALLOFF_PX = 50.0
PERSPECTIVE_PROBE_PX = 50.0

# Grade boundaries on overall confidence
GRADE_EXCELLENT = 0.9
GRADE_GOOD = 0.7
GRADE_FAIR = 0.5

# Pose landmark height heuristic
LANDMARK_DEPTH_SCALE = 2.0
REFERENCE_PLAYER_HEIGHT_M = 1.75

# Service configuration
DATA_DIR = Path(os.getenv("DATA_DIR", "data"))
RESULTS_DIR = DATA_DIR / "calibrations"
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = _env_int("PORT", 8000)
