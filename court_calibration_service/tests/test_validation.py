"""Tests for coordinate-system sanity checks."""
import numpy as np
import pytest

from court_calibration.schemas import CourtDimensions, ImageDimensions
from court_calibration.validation import (
    generate_test_points,
    validate_bounds,
    validate_coordinate_system,
    validate_round_trip,
    validate_scale_consistency,
)

BADMINTON = CourtDimensions(length=13.4, width=6.1)
FRAME = ImageDimensions(width=1000, height=900)


def test_generate_test_points():
    points = generate_test_points(FRAME)
    assert points.shape == (30, 2)
    # Grid spans 10%..90% of the frame
    assert points[:25, 0].min() == pytest.approx(100.0)
    assert points[:25, 0].max() == pytest.approx(900.0)
    assert points[:25, 1].max() == pytest.approx(810.0)
    # Centre and 5%-inset corners (inset by 5% of the shorter side)
    np.testing.assert_allclose(points[25], [500.0, 450.0])
    np.testing.assert_allclose(points[26], [45.0, 45.0])
    np.testing.assert_allclose(points[29], [955.0, 855.0])


class TestChecks:
    def test_round_trip_exact(self, affine_homography):
        result = validate_round_trip(affine_homography, generate_test_points(FRAME))
        assert result.is_valid
        assert result.error < 1e-9
        assert result.confidence == pytest.approx(1.0)

    def test_round_trip_singular(self):
        result = validate_round_trip(np.zeros((3, 3)), generate_test_points(FRAME))
        assert not result.is_valid
        assert result.confidence == 0.0

    def test_bounds_inside_court_area(self, affine_homography):
        result = validate_bounds(affine_homography, generate_test_points(FRAME), FRAME, BADMINTON)
        assert result.is_valid
        assert result.error == 0.0
        assert result.confidence == 1.0

    def test_bounds_when_pixels_map_far_off_court(self):
        # 1 m of court is 0.01 px: every frame pixel lands kilometres away
        H = np.diag([0.01, 0.01, 1.0])
        result = validate_bounds(H, generate_test_points(FRAME), FRAME, BADMINTON)
        assert not result.is_valid
        assert result.confidence < 0.1

    def test_uniform_scale(self, affine_homography):
        result = validate_scale_consistency(affine_homography, FRAME)
        assert result.is_valid
        assert result.confidence == pytest.approx(1.0)

    def test_perspective_scale_varies(self, true_homography, image_dims):
        result = validate_scale_consistency(true_homography, image_dims)
        assert result.error > 0.0
        assert result.confidence < 1.0


class TestOverall:
    def test_perfect_score(self, affine_homography):
        validation = validate_coordinate_system(affine_homography, FRAME, BADMINTON)
        assert validation.overall_score == pytest.approx(1.0)
        assert validation.round_trip_accuracy.is_valid
        assert validation.boundary_validation.is_valid
        assert validation.scale_consistency.is_valid

    def test_weighted_combination(self, true_homography, image_dims):
        validation = validate_coordinate_system(true_homography, image_dims, BADMINTON)
        expected = (
            0.4 * validation.round_trip_accuracy.confidence
            + 0.3 * validation.boundary_validation.confidence
            + 0.3 * validation.scale_consistency.confidence
        )
        assert validation.overall_score == pytest.approx(expected)
        assert 0.0 <= validation.overall_score <= 1.0

    def test_singular_scores_zero(self):
        validation = validate_coordinate_system(np.zeros((3, 3)), FRAME, BADMINTON)
        assert validation.overall_score == 0.0
