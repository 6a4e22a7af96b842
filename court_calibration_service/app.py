"""FastAPI application for court camera calibration."""
import uuid
from typing import Dict, List, Optional
import logging

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from court_calibration.config import ALLOWED_ORIGINS, DEFAULT_COURT_TYPE, LOG_LEVEL, RESULTS_DIR
from court_calibration.exceptions import (
    CalibrationError,
    InvalidStateTransition,
    NotCalibrated,
    NumericalInstability,
    UnknownCourtType,
    UnknownMode,
)
from court_calibration.line_constraints import build_line_correspondence, get_available_lines
from court_calibration.modes import CalibrationModeCatalog, available_court_types
from court_calibration.persistence import save_result
from court_calibration.ransac import RobustFitter
from court_calibration.schemas import (
    AddPointRequest,
    CalibrateRequest,
    CalibrationResult,
    CreateSessionRequest,
    ImageDimensions,
    ImagePointsRequest,
    ImagePointsResponse,
    LandmarksRequest,
    ModeResponse,
    SelectModeRequest,
    SessionResponse,
    WorldPointsRequest,
    WorldPointsResponse,
)
from court_calibration.session import CalibrationSession

# Configure logging
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="Court Calibration API")

# Enable CORS for frontend
app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# In-memory storage, one independent session per video
sessions: Dict[str, CalibrationSession] = {}


# --- Health Check ---
@app.get("/health")
async def health_check():
    """Health check endpoint for container orchestration."""
    return {"status": "ok"}


# --- Helper Functions ---
def get_session(session_id: str) -> CalibrationSession:
    if session_id not in sessions:
        raise HTTPException(status_code=404, detail="Session not found")
    return sessions[session_id]


def to_http_error(error: CalibrationError) -> HTTPException:
    """Map a calibration error to an HTTP error response."""
    if isinstance(error, (InvalidStateTransition, NotCalibrated)):
        status = 409
    elif isinstance(error, NumericalInstability):
        status = 422
    else:
        status = 400
    return HTTPException(status_code=status, detail=str(error))


def session_response(session_id: str, session: CalibrationSession) -> SessionResponse:
    return SessionResponse(
        session_id=session_id,
        state=session.state.value,
        court_type=session.court_type,
        mode_id=session.mode.id if session.mode else None,
        points=list(session.points),
        ready_to_calibrate=session.is_ready_to_calibrate(),
        suggested_point=session.suggest_next_point(),
        failure_reason=session.failure_reason,
        result=session.result,
    )


# --- Catalog ---
@app.get("/court-types", response_model=List[str])
async def list_court_types():
    return available_court_types()


@app.get("/modes", response_model=List[ModeResponse])
async def list_modes(court_type: str = Query(DEFAULT_COURT_TYPE)):
    """List calibration modes available for a court type."""
    try:
        catalog = CalibrationModeCatalog(court_type)
    except UnknownCourtType as e:
        raise HTTPException(status_code=404, detail=str(e))
    return [
        ModeResponse(
            id=mode.id,
            description=mode.description,
            required_point_ids=list(mode.required_point_ids),
            optional_point_ids=list(mode.optional_point_ids),
            min_points=mode.min_points,
        )
        for mode in catalog.list_modes()
    ]


@app.get("/line-constraints/available-lines")
async def available_lines():
    """
    Court lines that can be annotated for quality assessment.

    Returns line ids with the two landmark ids that bound each line.
    """
    return {line_id: list(ends) for line_id, ends in get_available_lines().items()}


# --- Sessions ---
@app.post("/sessions", response_model=SessionResponse)
async def create_session(request: Optional[CreateSessionRequest] = None):
    """Create a calibration session, optionally selecting a mode straight away."""
    request = request or CreateSessionRequest()
    try:
        session = CalibrationSession(court_type=request.court_type or DEFAULT_COURT_TYPE)
        if request.mode_id:
            session.select_mode(request.mode_id)
    except CalibrationError as e:
        raise to_http_error(e)

    session_id = str(uuid.uuid4())
    sessions[session_id] = session
    logger.info(f"Created calibration session {session_id} ({session.court_type})")
    return session_response(session_id, session)


@app.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session_state(session_id: str):
    return session_response(session_id, get_session(session_id))


@app.delete("/sessions/{session_id}")
async def delete_session(session_id: str):
    get_session(session_id)
    del sessions[session_id]
    return {"status": "deleted"}


@app.post("/sessions/{session_id}/mode", response_model=SessionResponse)
async def select_mode(session_id: str, request: SelectModeRequest):
    """Select a calibration mode. Discards all points and any result."""
    session = get_session(session_id)
    try:
        session.select_mode(request.mode_id)
    except UnknownMode as e:
        raise HTTPException(status_code=404, detail=str(e))
    return session_response(session_id, session)


@app.post("/sessions/{session_id}/points", response_model=SessionResponse)
async def add_point(session_id: str, request: AddPointRequest):
    """Add (or re-click) a court landmark at an image position."""
    session = get_session(session_id)
    try:
        session.add_point(request.point_id, (request.x, request.y), request.confidence)
    except CalibrationError as e:
        raise to_http_error(e)
    return session_response(session_id, session)


@app.delete("/sessions/{session_id}/points/last", response_model=SessionResponse)
async def undo_last_point(session_id: str):
    session = get_session(session_id)
    try:
        session.remove_last_point()
    except CalibrationError as e:
        raise to_http_error(e)
    return session_response(session_id, session)


@app.delete("/sessions/{session_id}/points/{point_id}", response_model=SessionResponse)
async def remove_point(session_id: str, point_id: str):
    session = get_session(session_id)
    try:
        session.remove_point(point_id)
    except CalibrationError as e:
        raise to_http_error(e)
    return session_response(session_id, session)


@app.get("/sessions/{session_id}/next-point")
async def next_point(session_id: str):
    """Next landmark the user should click (required first, then optional)."""
    session = get_session(session_id)
    return {
        "point_id": session.suggest_next_point(),
        "ready_to_calibrate": session.is_ready_to_calibrate(),
    }


@app.post("/sessions/{session_id}/calibrate", response_model=SessionResponse)
async def calibrate(session_id: str, request: CalibrateRequest):
    """
    Fit the homography and assess its quality.

    A failed fit (degenerate points, too few inliers) is a valid outcome:
    the response has state "failed" and a failure_reason.
    """
    session = get_session(session_id)
    try:
        lines = [
            build_line_correspondence(line.line_id, line.points, line.confidence, session.court_type)
            for line in request.lines
        ]
        if request.seed is not None:
            session.fitter = RobustFitter(seed=request.seed)
        session.calibrate(
            ImageDimensions(width=request.image_width, height=request.image_height),
            line_correspondences=lines,
            inlier_threshold_m=request.inlier_threshold_m,
            max_iterations=request.max_iterations,
            min_inlier_fraction=request.min_inlier_fraction,
        )
    except CalibrationError as e:
        raise to_http_error(e)
    return session_response(session_id, session)


@app.post("/sessions/{session_id}/recalibrate", response_model=SessionResponse)
async def recalibrate(session_id: str):
    session = get_session(session_id)
    try:
        session.recalibrate()
    except CalibrationError as e:
        raise to_http_error(e)
    return session_response(session_id, session)


@app.post("/sessions/{session_id}/reset", response_model=SessionResponse)
async def reset(session_id: str):
    session = get_session(session_id)
    session.reset()
    return session_response(session_id, session)


@app.get("/sessions/{session_id}/result", response_model=CalibrationResult)
async def get_result(session_id: str):
    session = get_session(session_id)
    if session.result is None:
        raise HTTPException(status_code=409, detail="Session is not calibrated")
    return session.result


@app.post("/sessions/{session_id}/result/save")
async def save_session_result(session_id: str):
    """Persist the current calibration result as JSON under the data directory."""
    session = get_session(session_id)
    if session.result is None:
        raise HTTPException(status_code=409, detail="Session is not calibrated")
    path = save_result(session.result, RESULTS_DIR / f"{session_id}.json")
    return {"status": "saved", "filename": path.name}


# --- Coordinate conversion ---
@app.post("/sessions/{session_id}/image-to-world", response_model=WorldPointsResponse)
async def image_to_world(session_id: str, request: ImagePointsRequest):
    """Map image pixels to court meters. Points on the vanishing line come back as null."""
    session = get_session(session_id)
    try:
        transformer = session.transformer()
    except CalibrationError as e:
        raise to_http_error(e)
    return WorldPointsResponse(points=transformer.batch_image_to_world(request.points))


@app.post("/sessions/{session_id}/world-to-image", response_model=ImagePointsResponse)
async def world_to_image(session_id: str, request: WorldPointsRequest):
    """Map court points to image pixels (Z is ignored)."""
    session = get_session(session_id)
    try:
        transformer = session.transformer()
    except CalibrationError as e:
        raise to_http_error(e)
    return ImagePointsResponse(points=transformer.batch_world_to_image(request.points))


@app.post("/sessions/{session_id}/landmarks-to-world", response_model=WorldPointsResponse)
async def landmarks_to_world(session_id: str, request: LandmarksRequest):
    """
    Approximate court positions for pose landmarks.

    Feet are projected exactly; other landmarks get an estimated height.
    """
    session = get_session(session_id)
    try:
        transformer = session.transformer()
    except CalibrationError as e:
        raise to_http_error(e)
    points = transformer.transform_landmarks_to_world(
        request.landmarks,
        world_landmarks=request.world_landmarks,
        player_height_m=request.player_height_m,
    )
    return WorldPointsResponse(points=points)
