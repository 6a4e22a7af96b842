"""Tests for court line correspondences and alignment scoring."""
import numpy as np
import pytest

from court_calibration.exceptions import InvalidConfidence, InvalidLineCorrespondence, UnknownCourtType
from court_calibration.line_constraints import (
    build_line_correspondence,
    get_available_lines,
    get_line_world_endpoints,
    line_alignment_score,
    line_alignment_scores,
    line_endpoint_error,
)


class TestLineConfiguration:
    def test_available_lines(self):
        lines = get_available_lines()
        assert "net" in lines
        assert "short_service_near" in lines
        assert lines["near_baseline"] == ("corner_near_left", "corner_near_right")

    def test_net_endpoints_badminton(self):
        start, end = get_line_world_endpoints("net")
        assert (start.x, start.y) == (0.0, pytest.approx(6.7))
        assert (end.x, end.y) == (pytest.approx(6.1), pytest.approx(6.7))

    def test_tennis_service_line_stops_at_singles(self):
        start, end = get_line_world_endpoints("short_service_near", court_type="tennis")
        assert start.x == pytest.approx((10.97 - 8.23) / 2)
        assert end.x == pytest.approx(10.97 - (10.97 - 8.23) / 2)
        assert start.y == pytest.approx(23.77 / 2 - 6.40)

    def test_unknown_line(self):
        with pytest.raises(InvalidLineCorrespondence, match="Unknown line ID"):
            get_line_world_endpoints("halfway")

    def test_unknown_court(self):
        with pytest.raises(UnknownCourtType):
            get_line_world_endpoints("net", court_type="squash")


class TestBuildCorrespondence:
    def test_build(self):
        line = build_line_correspondence("net", [(10, 400), (500, 402), (990, 405)], confidence=0.8)
        assert line.line_id == "net"
        assert len(line.video_line) == 3
        assert line.confidence == 0.8
        assert line.court_line[0].y == pytest.approx(6.7)

    def test_needs_two_points(self):
        with pytest.raises(InvalidLineCorrespondence, match="at least 2"):
            build_line_correspondence("net", [(10, 400)])

    def test_confidence_range(self):
        with pytest.raises(InvalidConfidence):
            build_line_correspondence("net", [(10, 400), (990, 405)], confidence=1.5)


class TestAlignment:
    def test_perfect_alignment(self, affine_homography):
        line = build_line_correspondence("near_baseline", [(200.0, 100.0), (810.0, 100.0)])
        assert line_endpoint_error(affine_homography, line) == pytest.approx(0.0, abs=1e-9)
        assert line_alignment_score(affine_homography, line) == pytest.approx(1.0)

    def test_linear_falloff(self, affine_homography):
        # Both endpoints 25 px off: half of the 50 px falloff
        line = build_line_correspondence("near_baseline", [(200.0, 125.0), (810.0, 125.0)])
        assert line_alignment_score(affine_homography, line) == pytest.approx(0.5)

    def test_only_first_and_last_points_count(self, affine_homography):
        line = build_line_correspondence("near_baseline", [(200.0, 100.0), (400.0, 900.0), (810.0, 100.0)])
        assert line_alignment_score(affine_homography, line) == pytest.approx(1.0)

    def test_beyond_falloff_is_zero(self, affine_homography):
        line = build_line_correspondence("near_baseline", [(200.0, 200.0), (810.0, 200.0)])
        assert line_alignment_score(affine_homography, line) == 0.0

    def test_endpoint_at_infinity_scores_zero(self):
        # Divisor 1 - Y / 6.7 vanishes on the net line
        H = np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, -1.0 / 6.7, 1.0]])
        line = build_line_correspondence("net", [(0.0, 0.0), (1.0, 0.0)])
        assert line_endpoint_error(H, line) is None
        assert line_alignment_score(H, line) == 0.0

    def test_scores_for_many_lines(self, affine_homography):
        lines = [
            build_line_correspondence("near_baseline", [(200.0, 100.0), (810.0, 100.0)]),
            build_line_correspondence("far_baseline", [(200.0, 795.0), (810.0, 795.0)]),
        ]
        scores = line_alignment_scores(affine_homography, lines, falloff_px=100.0)
        assert scores == [pytest.approx(1.0), pytest.approx(0.75)]
