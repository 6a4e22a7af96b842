"""Save and load calibration results as JSON."""
import logging
from pathlib import Path

from court_calibration.schemas import CalibrationResult

logger = logging.getLogger(__name__)


def save_result(result: CalibrationResult, path) -> Path:
    """
    Write a CalibrationResult to a JSON file.

    Floats are written with their shortest round-trip repr and infinities
    as constants, so ``load_result`` reproduces every field exactly.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        f.write(result.model_dump_json(indent=2))
    logger.info("Saved calibration result to %s", path)
    return path


def load_result(path) -> CalibrationResult:
    """Load a CalibrationResult written by ``save_result``."""
    with open(path, "r") as f:
        return CalibrationResult.model_validate_json(f.read())
