from pathlib import Path
import numpy as np
import pytest
from fastapi.testclient import TestClient

# Ensure the service root is on sys.path so `court_calibration` and `app` import when tests run
import sys
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from court_calibration.homography import project_points
from court_calibration.modes import CalibrationModeCatalog
from court_calibration.schemas import CalibrationPoint, ImageDimensions, Point2D
from app import app, sessions


# Badminton doubles corners as seen from behind the near baseline in a 1920x1080 frame
COURT_CORNERS_WORLD = np.array([[0.0, 0.0], [6.1, 0.0], [6.1, 13.4], [0.0, 13.4]], dtype=np.float64)
COURT_CORNERS_IMAGE = np.array([[300, 900], [1600, 900], [1250, 250], [650, 250]], dtype=np.float64)


def four_point_homography(src, dst):
    """Exact H (h33 = 1) mapping four src points onto four dst points, solved in float64."""
    A = []
    b = []
    for (x, y), (u, v) in zip(src, dst):
        A.append([x, y, 1, 0, 0, 0, -u * x, -u * y])
        A.append([0, 0, 0, x, y, 1, -v * x, -v * y])
        b.extend([u, v])
    h = np.linalg.solve(np.array(A, dtype=np.float64), np.array(b, dtype=np.float64))
    return np.append(h, 1.0).reshape(3, 3)


@pytest.fixture(autouse=True)
def use_temp_dirs(tmp_path, monkeypatch):
    """Redirect the results directory to a temporary path and start with no sessions."""
    temp_results = tmp_path / "data" / "calibrations"
    monkeypatch.setattr("app.RESULTS_DIR", temp_results)
    sessions.clear()
    yield
    sessions.clear()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def image_dims():
    return ImageDimensions(width=1920, height=1080)


@pytest.fixture
def true_homography():
    """Ground-truth perspective homography (court meters -> image pixels)."""
    return four_point_homography(COURT_CORNERS_WORLD, COURT_CORNERS_IMAGE)


@pytest.fixture
def affine_homography():
    """Fronto-parallel view: 100 px/m across, 50 px/m along the court, offset (200, 100)."""
    return np.array([
        [100.0, 0.0, 200.0],
        [0.0, 50.0, 100.0],
        [0.0, 0.0, 1.0],
    ])


@pytest.fixture
def catalog():
    return CalibrationModeCatalog("badminton")


@pytest.fixture
def make_points(catalog):
    """Build exact CalibrationPoints for landmark ids by projecting through H."""
    def _make(H, point_ids, offsets=None):
        offsets = offsets or {}
        world = np.array([[catalog.world_coordinate_of(pid).x, catalog.world_coordinate_of(pid).y]
                          for pid in point_ids])
        image, valid = project_points(H, world)
        assert valid.all()
        points = []
        for pid, (x, y) in zip(point_ids, image):
            dx, dy = offsets.get(pid, (0.0, 0.0))
            points.append(CalibrationPoint(
                id=pid,
                image_point=Point2D(x=float(x + dx), y=float(y + dy)),
                world_point=catalog.world_coordinate_of(pid),
            ))
        return points
    return _make


@pytest.fixture
def full_court_points(true_homography, catalog, make_points):
    mode = catalog.get_mode("full_court")
    return make_points(true_homography, list(mode.required_point_ids))


@pytest.fixture
def minimal_clicks(true_homography, catalog, make_points):
    """(point_id, (x, y)) clicks for every required point of the minimal mode."""
    mode = catalog.get_mode("minimal")
    points = make_points(true_homography, list(mode.required_point_ids))
    return [(p.id, (p.image_point.x, p.image_point.y)) for p in points]
