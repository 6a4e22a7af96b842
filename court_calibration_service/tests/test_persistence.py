"""Tests for saving and loading calibration results."""
import json

from court_calibration.persistence import load_result, save_result
from court_calibration.session import CalibrationSession


def _calibrated_result(minimal_clicks, image_dims):
    session = CalibrationSession()
    session.select_mode("minimal")
    for point_id, xy in minimal_clicks:
        session.add_point(point_id, xy)
    session.calibrate(image_dims)
    return session.result


def test_round_trip_is_lossless(tmp_path, minimal_clicks, image_dims):
    result = _calibrated_result(minimal_clicks, image_dims)
    path = save_result(result, tmp_path / "nested" / "calibration.json")

    loaded = load_result(path)
    assert loaded == result
    # Exact floats, not merely close
    assert loaded.homography == result.homography
    assert loaded.quality_metrics.overall_confidence == result.quality_metrics.overall_confidence
    assert loaded.quality_metrics.coordinate_validation == result.quality_metrics.coordinate_validation


def test_file_is_plain_json(tmp_path, minimal_clicks, image_dims):
    result = _calibrated_result(minimal_clicks, image_dims)
    path = save_result(result, tmp_path / "calibration.json")

    with open(path) as f:
        data = json.load(f)
    assert len(data["homography"]) == 3
    assert data["mode_id"] == "minimal"
    assert data["court_type"] == "badminton"
    assert "recommendations" in data["quality_metrics"]
