"""
Proctoring API - FastAPI endpoints for the event engine

Endpoints:
- POST /api/proctor/start - Start the proctoring session
- POST /api/proctor/stream - Run one tick on a webcam frame
- POST /api/proctor/detections - Run one tick on client-side detections
- POST /api/proctor/stop - Stop the session and get the report
- GET /api/proctor/status - Get session status
- GET /api/proctor/report - Download the report as JSON, CSV or PDF
"""

import base64
import binascii
import logging
from typing import Any, Dict, List, Optional

import cv2
import numpy as np
from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, Field

from .events import Event
from .exceptions import SessionStateError
from .manager import SessionManager
from .dependencies import get_session_manager
from .reporting import EXPORTERS, report_filename
from .session import ProctorSession

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/proctor", tags=["Proctoring"])


# ============== Request/Response Models ==============

class StartSessionRequest(BaseModel):
    """Request to start a proctoring session"""
    candidate_name: str = Field("Unknown", description="Candidate name shown on the report")


class StartSessionResponse(BaseModel):
    """Response after starting a session"""
    session_id: str
    status: str
    detection_mode: str
    message: str


class StreamFrameRequest(BaseModel):
    """Request to process a webcam frame"""
    frame_base64: str = Field(..., description="Base64 encoded JPEG frame")
    timestamp_ms: Optional[float] = Field(None, description="Frame instant in epoch ms (server clock if omitted)")


class DetectionsRequest(BaseModel):
    """Detections computed by the client for one tick"""
    faces: Optional[List[Any]] = Field(..., description="Face boxes in any supported encoding; null if the face model did not run")
    objects: Optional[List[Any]] = Field(None, description="Object detections; null if the object model did not run")
    frame_width: float = Field(..., gt=0)
    frame_height: float = Field(..., gt=0)
    timestamp_ms: Optional[float] = Field(None, description="Tick instant in epoch ms (server clock if omitted)")


class TickResponse(BaseModel):
    """Events emitted by one tick"""
    processed: bool
    events: List[Dict[str, Any]]
    counts: Dict[str, int]
    current_score: int


class SessionStatusResponse(BaseModel):
    """Current session status"""
    session_id: str
    candidate_name: str
    is_active: bool
    detection_mode: str
    ticks_processed: int
    current_score: int
    counts: Dict[str, int]
    started_at: Optional[str] = None
    ended_at: Optional[str] = None


class ReportResponse(BaseModel):
    """Final proctoring report"""
    candidate_name: str
    started_at: str
    ended_at: str
    duration_ms: float
    duration_human: str
    counts_by_kind: Dict[str, int]
    integrity_score: int
    grade: str
    events: List[Dict[str, Any]]


# ============== Helpers ==============

def _require_session(manager: SessionManager) -> ProctorSession:
    try:
        return manager.get()
    except SessionStateError:
        raise HTTPException(status_code=404, detail="Session not found")


def _require_active(manager: SessionManager) -> ProctorSession:
    session = _require_session(manager)
    if not session.is_active:
        raise HTTPException(status_code=400, detail="Session is not active")
    return session


def _tick_response(session: ProctorSession, events: List[Event]) -> TickResponse:
    status = session.get_status()
    return TickResponse(
        processed=True,
        events=[event.to_dict() for event in events],
        counts=status["counts"],
        current_score=status["current_score"]
    )


# ============== API Endpoints ==============

@router.post("/start", response_model=StartSessionResponse)
async def start_session(
    request: StartSessionRequest,
    manager: SessionManager = Depends(get_session_manager)
):
    """
    Start a new proctoring session.

    Only one session can be live at a time.
    """
    try:
        session = manager.start(request.candidate_name)
    except SessionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))

    mode = session.detection_mode.value
    message = "Proctoring session started successfully"
    if mode != "full":
        message += f" (detection {mode})"

    return StartSessionResponse(
        session_id=session.id,
        status="active",
        detection_mode=mode,
        message=message
    )


@router.post("/stream", response_model=TickResponse)
async def stream_frame(
    request: StreamFrameRequest,
    manager: SessionManager = Depends(get_session_manager)
):
    """
    Process a single webcam frame.

    Decodes the base64 frame and runs one tick through the loaded models.
    """
    session = _require_active(manager)

    try:
        frame_bytes = base64.b64decode(request.frame_base64)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=400, detail="Invalid frame data")

    frame_array = np.frombuffer(frame_bytes, dtype=np.uint8)
    frame = cv2.imdecode(frame_array, cv2.IMREAD_COLOR) if frame_array.size else None

    if frame is None:
        raise HTTPException(status_code=400, detail="Invalid frame data")

    events = await session.tick(frame, now=request.timestamp_ms)
    return _tick_response(session, events)


@router.post("/detections", response_model=TickResponse)
async def submit_detections(
    request: DetectionsRequest,
    manager: SessionManager = Depends(get_session_manager)
):
    """
    Process detections produced by a client-side perception model.
    """
    session = _require_active(manager)

    events = session.process_detections(
        faces=request.faces,
        objects=request.objects,
        frame_size=(request.frame_width, request.frame_height),
        now=request.timestamp_ms
    )
    return _tick_response(session, events)


@router.post("/stop", response_model=ReportResponse)
async def stop_session(manager: SessionManager = Depends(get_session_manager)):
    """
    Stop the proctoring session and get the final report.

    Stopping an already stopped session returns the same report.
    """
    _require_session(manager)
    report = await manager.stop()
    return ReportResponse(**report.to_dict())


@router.get("/status", response_model=SessionStatusResponse)
async def get_session_status(manager: SessionManager = Depends(get_session_manager)):
    """
    Get current status of the proctoring session.
    """
    session = _require_session(manager)
    return SessionStatusResponse(**session.get_status())


@router.get("/report")
async def download_report(
    format: str = Query("json", pattern="^(json|csv|pdf)$"),
    manager: SessionManager = Depends(get_session_manager)
):
    """
    Download the report of the stopped session.
    """
    session = _require_session(manager)
    if session.report is None:
        raise HTTPException(status_code=409, detail="Session has not been stopped yet")

    exporter, media_type = EXPORTERS[format]
    filename = report_filename(session.report, format)

    return Response(
        content=exporter(session.report),
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'}
    )


@router.get("/models-status")
async def get_models_status(manager: SessionManager = Depends(get_session_manager)):
    """
    Check which perception models are loaded.
    """
    face_model, object_model = manager.models
    return {
        "face_model": face_model is not None,
        "object_model": object_model is not None
    }
