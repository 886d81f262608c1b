"""
examguard Proctoring Service - FastAPI Application
"""
import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from .config import settings
from .proctor.api import router as proctor_router
from .proctor.log_api import router as log_router
from .proctor.dependencies import get_event_mirror, get_session_manager
from .utils.logging_config import setup_logging

logger = logging.getLogger(__name__)


app = FastAPI(
    title=settings.APP_NAME,
    description="Attention and anomaly event engine for proctored sessions",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None
)


# ============================================================================
# Request Logging Middleware
# ============================================================================

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all incoming requests with timing."""
    start = time.time()
    path = request.url.path

    try:
        response = await call_next(request)
    except Exception as e:
        logger.exception(f"Request error on {request.method} {path}: {e}")
        raise

    if path not in ["/api/health", "/favicon.ico"]:
        duration_ms = int((time.time() - start) * 1000)
        logger.info(f"{request.method} {path} -> {response.status_code} in {duration_ms}ms")

    return response


# CORS middleware - allow all origins for LAN access
# Note: When using allow_origins=["*"], credentials must be False
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


app.include_router(proctor_router)
app.include_router(log_router)


@app.on_event("startup")
async def on_startup():
    logger.info(f"{settings.APP_NAME} ready (sink={settings.EVENT_SINK_URL or 'local'})")


@app.on_event("shutdown")
async def on_shutdown():
    """Stop a live session, flush its forwarding and close the MongoDB mirror"""
    session = get_session_manager().current
    if session is not None:
        if session.is_active:
            logger.warning(f"Stopping live session {session.id} on shutdown")
            session.stop()
        await session.aclose()

    mirror = get_event_mirror()
    if mirror is not None:
        await mirror.close()


if __name__ == "__main__":
    import uvicorn

    setup_logging("examguard", level=settings.LOG_LEVEL, log_to_file=settings.LOG_TO_FILE, log_dir=settings.LOG_DIR)
    uvicorn.run(app, host="0.0.0.0", port=4000)
