# python
import argparse
import os
import cv2
import pandas as pd

from court_calibration.config import DEFAULT_COURT_TYPE, DEFAULT_MODE_ID
from court_calibration.court_config import COURT_LINES
from court_calibration.exceptions import CalibrationError
from court_calibration.persistence import save_result
from court_calibration.session import CalibrationSession, SessionState
from court_calibration.video import extract_frame, get_frame_dimensions


def draw_court_overlay(frame, session):
    """Draw the calibrated court lines back onto the frame."""
    transformer = session.transformer()
    for start_id, end_id in COURT_LINES.values():
        try:
            p1 = transformer.world_to_image(session.catalog.world_coordinate_of(start_id))
            p2 = transformer.world_to_image(session.catalog.world_coordinate_of(end_id))
        except CalibrationError:
            continue
        cv2.line(frame, (int(p1.x), int(p1.y)), (int(p2.x), int(p2.y)), (0, 255, 0), 2, cv2.LINE_AA)


def annotate_frame_cv(frame, session, dims):
    """
    Show the frame in an OpenCV window and collect clicks for the session's mode.
    The terminal shows which landmark to click next.
    Controls:
      - left click: place the suggested landmark at the clicked pixel
      - u: undo the last point
      - c: calibrate (and draw the fitted court on success)
      - r: recalibrate (go back to clicking points)
      - q: quit
    """
    window_name = f"Calibrate: {session.mode.id}"
    raw_clicks = []

    def on_mouse(event, x, y, flags, param):
        if event == cv2.EVENT_LBUTTONDOWN:
            raw_clicks.append((int(x), int(y)))

    cv2.namedWindow(window_name, cv2.WINDOW_NORMAL)
    cv2.setMouseCallback(window_name, on_mouse)
    print(f"Click: {session.suggest_next_point()}")

    while True:
        disp = frame.copy()
        for point in session.points:
            x, y = int(point.image_point.x), int(point.image_point.y)
            cv2.circle(disp, (x, y), 4, (0, 0, 255), -1)
            cv2.putText(disp, point.id, (x + 6, y + 6),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.5, (0, 255, 255), 1, cv2.LINE_AA)
        if session.state == SessionState.CALIBRATED:
            draw_court_overlay(disp, session)

        cv2.imshow(window_name, disp)
        key = cv2.waitKey(50) & 0xFF

        while raw_clicks and session.state == SessionState.COLLECTING_POINTS:
            x, y = raw_clicks.pop(0)
            point_id = session.suggest_next_point()
            if point_id is None:
                print("All points placed. Press 'c' to calibrate or 'u' to undo.")
                continue
            session.add_point(point_id, (x, y))
            print(f"Placed {point_id} at ({x}, {y}). Next: {session.suggest_next_point()}")
        raw_clicks.clear()

        if key == ord("u") and session.state == SessionState.COLLECTING_POINTS:
            session.remove_last_point()
            print(f"Undone. Next: {session.suggest_next_point()}")
        if key == ord("c") and session.state == SessionState.COLLECTING_POINTS:
            try:
                session.calibrate(dims)
            except CalibrationError as e:
                print(f"Cannot calibrate yet: {e}")
                continue
            if session.state == SessionState.FAILED:
                print(f"Calibration failed: {session.failure_reason}. Press 'r' to fix points.")
            else:
                metrics = session.result.quality_metrics
                print(f"Calibration {metrics.grade} (confidence {metrics.overall_confidence:.2f}, "
                      f"reprojection {metrics.reprojection_error:.1f}px, "
                      f"court error {session.mean_world_error_m:.3f}m)")
                if session.result.outlier_point_ids:
                    print(f"Outliers: {', '.join(session.result.outlier_point_ids)}")
                for message in metrics.recommendations:
                    print(f"  - {message}")
        if key == ord("r") and session.state in (SessionState.CALIBRATED, SessionState.FAILED):
            session.recalibrate()
            print(f"Back to collecting points. Next: {session.suggest_next_point()}")
        if key == ord("q"):
            break

    cv2.destroyWindow(window_name)


def main():
    parser = argparse.ArgumentParser(description="Click court landmarks on a video frame and calibrate the camera.")
    parser.add_argument("--video", "-v", required=True, help="Path to video file")
    parser.add_argument("--frame", "-f", type=int, default=0, help="Frame index to annotate")
    parser.add_argument("--court", default=DEFAULT_COURT_TYPE, help="Court type (badminton or tennis)")
    parser.add_argument("--mode", "-m", default=DEFAULT_MODE_ID, help="Calibration mode id")
    parser.add_argument("--output", "-o", default="calibration_points.csv", help="Output CSV file for clicked points")
    parser.add_argument("--result", default="calibration_result.json", help="Output JSON file for the calibration result")
    args = parser.parse_args()

    if not os.path.exists(args.video):
        raise SystemExit(f"Video not found: {args.video}")

    frame = extract_frame(args.video, args.frame)
    if frame is None:
        raise SystemExit(f"Could not read frame {args.frame} from {args.video}")
    dims = get_frame_dimensions(args.video)

    session = CalibrationSession(court_type=args.court)
    session.select_mode(args.mode)
    annotate_frame_cv(frame, session, dims)

    rows = [
        {
            "point_id": p.id,
            "x_img": p.image_point.x,
            "y_img": p.image_point.y,
            "x_world": p.world_point.x,
            "y_world": p.world_point.y,
            "confidence": p.confidence,
            "inlier": session.result is None or p.id in session.result.inlier_point_ids,
        }
        for p in session.points
    ]
    if rows:
        df = pd.DataFrame(rows)
        df.to_csv(args.output, index=False)
        print(f"Saved {len(df)} points to {args.output}")
    else:
        print("No points collected; nothing saved.")

    if session.result is not None:
        save_result(session.result, args.result)
        print(f"Saved calibration result to {args.result}")


if __name__ == "__main__":
    main()
