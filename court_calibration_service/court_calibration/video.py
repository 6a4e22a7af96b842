"""Video utilities for frame size and frame extraction."""
import cv2
import numpy as np
from typing import Optional

from court_calibration.schemas import ImageDimensions


def get_frame_dimensions(video_path: str) -> ImageDimensions:
    """
    Read the frame size of a video.

    Args:
        video_path: Path to video file

    Returns:
        ImageDimensions in pixels
    """
    cap = cv2.VideoCapture(video_path)

    if not cap.isOpened():
        raise ValueError(f"Failed to open video: {video_path}")

    width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
    height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
    cap.release()

    if width <= 0 or height <= 0:
        raise ValueError(f"Video reports no frame size: {video_path}")
    return ImageDimensions(width=width, height=height)


def extract_frame(video_path: str, frame_idx: int) -> Optional[np.ndarray]:
    """
    Extract a single BGR frame from a video.

    Args:
        video_path: Path to video file
        frame_idx: Frame index to extract (0-based)

    Returns:
        HxWx3 BGR image, or None if extraction fails
    """
    cap = cv2.VideoCapture(video_path)

    if not cap.isOpened():
        raise ValueError(f"Failed to open video: {video_path}")

    # Seek to frame
    cap.set(cv2.CAP_PROP_POS_FRAMES, frame_idx)

    ret, frame = cap.read()
    cap.release()

    if not ret or frame is None:
        return None
    return frame

