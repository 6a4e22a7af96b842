"""
Court Calibration Engine

This package maps between video-frame pixels and court meters:
- modes: Calibration mode catalog and court landmark lookup
- collector: Point collection for the active mode
- linalg: Swappable linear-algebra backend (SVD, least squares)
- homography: Normalized DLT homography estimation
- ransac: RANSAC robust fitting against mis-clicked points
- transforms: Pixel <-> court coordinate conversion
- quality: Calibration quality metrics, grade and recommendations
- validation: Coordinate-system sanity checks
- line_constraints: Court line correspondences for quality scoring
- session: Calibration session state machine
- persistence: Save/load calibration results
- schemas: Pydantic models for data and API request/response validation
- exceptions: Calibration error hierarchy
- config: Configuration constants
- court_config: Badminton and tennis court geometry and mode definitions
- video: Frame size and frame extraction utilities
"""
