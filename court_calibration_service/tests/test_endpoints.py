import json

import pytest

import app as app_module


def create_session(client, **body):
    r = client.post("/sessions", json=body or None)
    assert r.status_code == 200
    return r.json()["session_id"]


def click_all(client, sid, clicks):
    for point_id, (x, y) in clicks:
        r = client.post(f"/sessions/{sid}/points", json={"point_id": point_id, "x": x, "y": y})
        assert r.status_code == 200
    return r.json()


def calibrated_session(client, clicks):
    sid = create_session(client, mode_id="minimal")
    click_all(client, sid, clicks)
    r = client.post(f"/sessions/{sid}/calibrate", json={"image_width": 1920, "image_height": 1080, "seed": 0})
    assert r.status_code == 200
    assert r.json()["state"] == "calibrated"
    return sid


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_court_types_and_modes(client):
    r = client.get("/court-types")
    assert r.status_code == 200
    assert set(r.json()) == {"badminton", "tennis"}

    r = client.get("/modes", params={"court_type": "tennis"})
    assert r.status_code == 200
    modes = {m["id"]: m for m in r.json()}
    assert set(modes) == {"minimal", "half_court", "baseline_view", "full_court"}
    assert modes["minimal"]["min_points"] == 5

    assert client.get("/modes", params={"court_type": "squash"}).status_code == 404


def test_get_available_lines(client):
    r = client.get("/line-constraints/available-lines")
    assert r.status_code == 200
    lines = r.json()
    assert lines["net"] == ["net_left", "net_right"]


def test_create_session_without_body(client):
    r = client.post("/sessions")
    assert r.status_code == 200
    body = r.json()
    assert body["state"] == "uncalibrated"
    assert body["court_type"] == "badminton"
    assert body["mode_id"] is None


def test_create_session_unknown_court(client):
    r = client.post("/sessions", json={"court_type": "squash"})
    assert r.status_code == 400


def test_unknown_session(client):
    assert client.get("/sessions/nope").status_code == 404
    assert client.post("/sessions/nope/points", json={"point_id": "net_left", "x": 1, "y": 1}).status_code == 404
    assert client.delete("/sessions/nope").status_code == 404


def test_select_mode(client):
    sid = create_session(client)
    r = client.post(f"/sessions/{sid}/mode", json={"mode_id": "full_court"})
    assert r.status_code == 200
    body = r.json()
    assert body["state"] == "collecting_points"
    assert body["suggested_point"] == "corner_near_left"

    r = client.post(f"/sessions/{sid}/mode", json={"mode_id": "drone_view"})
    assert r.status_code == 404


def test_create_with_mode(client):
    r = client.post("/sessions", json={"mode_id": "minimal"})
    assert r.status_code == 200
    body = r.json()
    assert body["state"] == "collecting_points"
    assert body["mode_id"] == "minimal"
    assert body["suggested_point"] == "corner_near_left"
    assert body["ready_to_calibrate"] is False


def test_calibrate_with_no_points(client):
    sid = create_session(client, mode_id="minimal")
    r = client.post(f"/sessions/{sid}/calibrate", json={"image_width": 1920, "image_height": 1080})
    assert r.status_code == 400
    assert "corner_near_left" in r.json()["detail"]
    assert client.get(f"/sessions/{sid}").json()["state"] == "collecting_points"


def test_point_errors(client):
    sid = create_session(client)
    # No mode yet
    r = client.post(f"/sessions/{sid}/points", json={"point_id": "net_left", "x": 1, "y": 1})
    assert r.status_code == 409

    client.post(f"/sessions/{sid}/mode", json={"mode_id": "minimal"})
    r = client.post(f"/sessions/{sid}/points", json={"point_id": "corner_far_left", "x": 1, "y": 1})
    assert r.status_code == 400
    r = client.post(f"/sessions/{sid}/points", json={"point_id": "net_left", "x": 1, "y": 1, "confidence": 2.0})
    assert r.status_code == 400


def test_undo_and_remove_points(client, minimal_clicks):
    sid = create_session(client, mode_id="minimal")
    body = click_all(client, sid, minimal_clicks[:3])
    assert len(body["points"]) == 3

    r = client.delete(f"/sessions/{sid}/points/last")
    assert r.status_code == 200
    assert [p["id"] for p in r.json()["points"]] == [pid for pid, _ in minimal_clicks[:2]]

    r = client.delete(f"/sessions/{sid}/points/{minimal_clicks[0][0]}")
    assert r.status_code == 200
    assert len(r.json()["points"]) == 1

    r = client.get(f"/sessions/{sid}/next-point")
    assert r.json() == {"point_id": minimal_clicks[0][0], "ready_to_calibrate": False}


def test_calibrate_before_ready(client, minimal_clicks):
    sid = create_session(client, mode_id="minimal")
    click_all(client, sid, minimal_clicks[:4])
    r = client.post(f"/sessions/{sid}/calibrate", json={"image_width": 1920, "image_height": 1080})
    assert r.status_code == 400


def test_full_calibration_flow(client, minimal_clicks):
    sid = create_session(client, mode_id="minimal")
    body = click_all(client, sid, minimal_clicks)
    assert body["ready_to_calibrate"]

    net_y = dict(minimal_clicks)["net_left"][1]
    payload = {
        "image_width": 1920,
        "image_height": 1080,
        "seed": 7,
        "lines": [{"line_id": "net", "points": [
            {"x": dict(minimal_clicks)["net_left"][0], "y": net_y},
            {"x": dict(minimal_clicks)["net_right"][0], "y": net_y},
        ]}],
    }
    r = client.post(f"/sessions/{sid}/calibrate", json=payload)
    assert r.status_code == 200
    body = r.json()
    assert body["state"] == "calibrated"
    metrics = body["result"]["quality_metrics"]
    assert metrics["reprojection_error"] < 1e-6
    assert metrics["line_alignment_scores"] == [pytest.approx(1.0, abs=1e-6)]
    assert metrics["grade"] in ("excellent", "good", "fair", "poor")

    r = client.get(f"/sessions/{sid}/result")
    assert r.status_code == 200
    assert r.json()["mode_id"] == "minimal"
    assert len(r.json()["homography"]) == 3


def test_calibrate_unknown_line(client, minimal_clicks):
    sid = create_session(client, mode_id="minimal")
    click_all(client, sid, minimal_clicks)
    payload = {"image_width": 1920, "image_height": 1080,
               "lines": [{"line_id": "halfway", "points": [{"x": 0, "y": 0}, {"x": 1, "y": 1}]}]}
    r = client.post(f"/sessions/{sid}/calibrate", json=payload)
    assert r.status_code == 400
    assert "Unknown line ID" in r.json()["detail"]


def test_failed_calibration_is_not_an_error(client, minimal_clicks):
    sid = create_session(client, mode_id="minimal")
    collinear = [(pid, (100.0 + 150.0 * i, 500.0)) for i, (pid, _) in enumerate(minimal_clicks)]
    click_all(client, sid, collinear)

    r = client.post(f"/sessions/{sid}/calibrate", json={"image_width": 1920, "image_height": 1080})
    assert r.status_code == 200
    body = r.json()
    assert body["state"] == "failed"
    assert body["result"] is None
    assert "collinear" in body["failure_reason"]

    assert client.get(f"/sessions/{sid}/result").status_code == 409
    assert client.post(f"/sessions/{sid}/image-to-world", json={"points": [{"x": 1, "y": 1}]}).status_code == 409


def test_result_before_calibrate(client):
    sid = create_session(client, mode_id="minimal")
    assert client.get(f"/sessions/{sid}/result").status_code == 409
    assert client.post(f"/sessions/{sid}/result/save").status_code == 409


def test_recalibrate_and_reset(client, minimal_clicks):
    sid = calibrated_session(client, minimal_clicks)

    r = client.post(f"/sessions/{sid}/recalibrate")
    assert r.status_code == 200
    assert r.json()["state"] == "collecting_points"
    assert len(r.json()["points"]) == len(minimal_clicks)
    assert r.json()["result"] is None

    # Already collecting
    assert client.post(f"/sessions/{sid}/recalibrate").status_code == 409

    r = client.post(f"/sessions/{sid}/reset")
    assert r.status_code == 200
    assert r.json()["state"] == "uncalibrated"
    assert r.json()["points"] == []


def test_coordinate_conversion(client, minimal_clicks):
    sid = calibrated_session(client, minimal_clicks)
    net_left = dict(minimal_clicks)["net_left"]

    r = client.post(f"/sessions/{sid}/image-to-world", json={"points": [{"x": net_left[0], "y": net_left[1]}]})
    assert r.status_code == 200
    world = r.json()["points"][0]
    assert world["x"] == pytest.approx(0.0, abs=1e-4)
    assert world["y"] == pytest.approx(6.7, abs=1e-4)
    assert world["z"] == 0.0

    r = client.post(f"/sessions/{sid}/world-to-image", json={"points": [{"x": 0.0, "y": 6.7}]})
    assert r.status_code == 200
    image = r.json()["points"][0]
    assert image["x"] == pytest.approx(net_left[0], abs=1e-3)
    assert image["y"] == pytest.approx(net_left[1], abs=1e-3)


def test_landmarks_to_world(client, minimal_clicks):
    sid = calibrated_session(client, minimal_clicks)
    x, y = dict(minimal_clicks)["net_left"]
    landmarks = [{"x": x, "y": y}] * 28

    r = client.post(f"/sessions/{sid}/landmarks-to-world", json={"landmarks": landmarks, "player_height_m": 1.75})
    assert r.status_code == 200
    points = r.json()["points"]
    assert len(points) == 28
    assert points[0]["z"] == pytest.approx(1.5)      # head
    assert points[23]["z"] == pytest.approx(0.9)     # hip
    assert points[27]["z"] == 0.0                     # ankle, on the ground
    assert points[27]["y"] == pytest.approx(6.7, abs=1e-4)


def test_save_result(client, minimal_clicks):
    sid = calibrated_session(client, minimal_clicks)
    r = client.post(f"/sessions/{sid}/result/save")
    assert r.status_code == 200
    assert r.json()["status"] == "saved"

    path = app_module.RESULTS_DIR / r.json()["filename"]
    assert path.exists()
    with open(path) as f:
        saved = json.load(f)
    assert saved["homography"] == client.get(f"/sessions/{sid}/result").json()["homography"]


def test_sessions_are_independent(client, minimal_clicks):
    first = calibrated_session(client, minimal_clicks)
    second = create_session(client, mode_id="minimal")

    assert client.get(f"/sessions/{second}").json()["state"] == "collecting_points"
    assert client.get(f"/sessions/{first}").json()["state"] == "calibrated"

    assert client.delete(f"/sessions/{first}").json() == {"status": "deleted"}
    assert client.get(f"/sessions/{first}").status_code == 404
    assert client.get(f"/sessions/{second}").status_code == 200
