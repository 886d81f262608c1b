"""
Proctoring Logger - Logs proctoring events and results
"""

import logging
from typing import Any, Dict, Mapping, Optional

logger = logging.getLogger(__name__)


def log_proctor_event(
    session_id: str,
    event_type: str,
    details: Optional[Dict[str, Any]] = None,
    level: str = "info"
):
    """
    Log a proctoring event.

    Args:
        session_id: Proctoring session ID
        event_type: Type of event (session_start, no_face, session_end, etc.)
        details: Optional event details
        level: Log level (debug, info, warning, error)
    """
    message = f"[PROCTOR] session={session_id} event={event_type}"

    if details:
        detail_str = " ".join(f"{k}={v}" for k, v in details.items())
        message += f" {detail_str}"

    if level == "debug":
        logger.debug(message)
    elif level == "warning":
        logger.warning(message)
    elif level == "error":
        logger.error(message)
    else:
        logger.info(message)


def log_session_start(session_id: str, candidate_name: str, detection_mode: str):
    """Log session start event"""
    log_proctor_event(
        session_id=session_id,
        event_type="session_start",
        details={
            "candidate": candidate_name,
            "detection": detection_mode
        }
    )


def log_session_end(session_id: str, integrity_score: int, counts: Mapping[str, int], duration_ms: float):
    """Log session end event"""
    nonzero = [f"{k}:{v}" for k, v in counts.items() if v]
    log_proctor_event(
        session_id=session_id,
        event_type="session_end",
        details={
            "integrity_score": integrity_score,
            "counts": ",".join(nonzero) if nonzero else "none",
            "duration_ms": round(duration_ms)
        }
    )


def log_event_emitted(session_id: str, event_type: str, detail: Mapping[str, Any]):
    """Log an integrity event as it is emitted"""
    log_proctor_event(
        session_id=session_id,
        event_type=event_type,
        details=dict(detail),
        level="warning"
    )


def log_detection_degraded(session_id: str, detector: str, reason: str):
    """Log a perception model that could not be used"""
    log_proctor_event(
        session_id=session_id,
        event_type="detector_unavailable",
        details={
            "detector": detector,
            "reason": reason
        },
        level="warning"
    )
