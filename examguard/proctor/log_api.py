"""
Event Log API - Receives forwarded events and session recordings

Endpoints:
- POST /api/log - Append an event entry
- GET /api/logs - Most recent entries
- GET /api/report - CSV of all entries
- POST /api/upload-video - Store a session recording
- GET /api/health - Health check
"""

import asyncio
import logging
import re
import time
from pathlib import Path
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, File, HTTPException, Response, UploadFile

from ..config import settings
from .dependencies import get_event_mirror, get_event_store, get_session_manager
from .manager import SessionManager
from .sinks import EventLogStore, MongoEventMirror

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Event Log"])

ALLOWED_VIDEO_TYPES = {"video/webm", "video/mp4", "video/quicktime", "application/octet-stream"}
ALLOWED_VIDEO_SUFFIX = re.compile(r"\.(webm|mp4|mov|mkv)$", re.IGNORECASE)


@router.post("/log")
async def append_log(
    entry: Dict[str, Any] = Body(...),
    store: EventLogStore = Depends(get_event_store),
    mirror: Optional[MongoEventMirror] = Depends(get_event_mirror)
):
    """Append one forwarded event, mirroring it to MongoDB when configured"""
    stored = await asyncio.to_thread(store.append, entry)
    if mirror is not None:
        await mirror.insert(stored)
    return {"ok": True}


@router.get("/logs")
async def recent_logs(store: EventLogStore = Depends(get_event_store)):
    """Return the most recent log entries"""
    return store.recent(settings.LOGS_PAGE_SIZE)


@router.get("/report")
async def logs_report(store: EventLogStore = Depends(get_event_store)):
    """Download all log entries as CSV"""
    return Response(
        content=store.to_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="proctoring_report.csv"'}
    )


@router.post("/upload-video")
async def upload_video(video: UploadFile = File(...)):
    """
    Store an uploaded session recording under UPLOADS_DIR.
    """
    filename = video.filename or "recording"
    if video.content_type not in ALLOWED_VIDEO_TYPES and not ALLOWED_VIDEO_SUFFIX.search(filename):
        raise HTTPException(status_code=400, detail="Unsupported file type")

    data = await video.read()
    if not data:
        raise HTTPException(status_code=400, detail="no file")
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="File too large")

    uploads = Path(settings.UPLOADS_DIR)
    uploads.mkdir(parents=True, exist_ok=True)

    safe_name = re.sub(r"[^A-Za-z0-9._-]", "_", Path(filename).name)
    dest = uploads / f"{safe_name}-{int(time.time() * 1000)}.webm"
    dest.write_bytes(data)

    logger.info(f"Stored recording {dest} ({len(data)} bytes)")
    return {"ok": True, "path": str(dest)}


@router.get("/health")
async def health_check(manager: SessionManager = Depends(get_session_manager)):
    """Health check for the proctoring service"""
    session = manager.current
    return {
        "ok": True,
        "status": "healthy",
        "active_session": session.id if session is not None and session.is_active else None,
        "module": "proctoring"
    }
