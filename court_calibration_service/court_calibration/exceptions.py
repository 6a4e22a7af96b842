"""Error taxonomy for the calibration engine.

Every error derives from ``CalibrationError`` which is itself a
``ValueError``, so callers that only care about bad input can keep
catching ``ValueError``.
"""


class CalibrationError(ValueError):
    """Base class for all calibration errors."""


# Point collection (always recoverable: re-prompt the user)

class InvalidPointId(CalibrationError):
    """Point id is not a known court landmark."""


class OutOfModeScope(InvalidPointId):
    """Point id is not part of the active mode's required/optional sets."""


class InvalidConfidence(CalibrationError):
    """Confidence is outside [0, 1]."""


# Catalog lookups

class UnknownMode(CalibrationError):
    """Mode id is not registered in the catalog."""


class UnknownCourtType(CalibrationError):
    """Court type has no geometry in the catalog."""


# Estimation (aborts calibrate())

class DegenerateConfiguration(CalibrationError):
    """Too few, collinear or numerically singular correspondences."""


class InsufficientInliers(CalibrationError):
    """RANSAC found no model with enough inlier support."""


# Session / transform usage

class NotReadyToCalibrate(CalibrationError):
    """calibrate() was called before the mode's required points were collected."""


class InvalidStateTransition(CalibrationError):
    """Operation is not allowed in the session's current state."""


class NotCalibrated(CalibrationError):
    """A calibrated homography was required but none is available."""


class NumericalInstability(CalibrationError):
    """Homogeneous divisor is numerically zero for a single-point transform."""


class InvalidLineCorrespondence(CalibrationError):
    """Unknown court line id or too few clicked image points on the line."""
