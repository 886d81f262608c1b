"""
Session Manager - Holds the single live proctoring session for the service
"""

import logging
from typing import Any, Callable, Optional, Tuple

from ..config import Settings, settings as default_settings
from .exceptions import SessionStateError
from .reporting import Report
from .session import ProctorSession, load_detectors
from .sinks import (
    EventLogStore,
    EventSink,
    HttpEventSink,
    LocalEventSink,
    MongoEventMirror,
    VideoUploader
)

logger = logging.getLogger(__name__)

ModelLoader = Callable[[Settings], Tuple[Optional[Any], Optional[Any]]]


class SessionManager:
    """
    Enforces one live session at a time.

    Perception models are loaded once, on the first session start, and
    shared by later sessions.
    """

    def __init__(
        self,
        store: EventLogStore,
        config: Optional[Settings] = None,
        model_loader: ModelLoader = load_detectors,
        mirror: Optional[MongoEventMirror] = None
    ):
        self.store = store
        self.mirror = mirror
        self.config = config or default_settings
        self._model_loader = model_loader
        self._models: Optional[Tuple[Optional[Any], Optional[Any]]] = None
        self.current: Optional[ProctorSession] = None

    @property
    def models(self) -> Tuple[Optional[Any], Optional[Any]]:
        if self._models is None:
            if self.config.LOAD_MODELS:
                self._models = self._model_loader(self.config)
            else:
                logger.info("Model loading disabled by configuration")
                self._models = (None, None)
        return self._models

    def _build_sink(self) -> EventSink:
        if self.config.EVENT_SINK_URL:
            return HttpEventSink(self.config.EVENT_SINK_URL, timeout=self.config.SINK_TIMEOUT_SECONDS)
        return LocalEventSink(self.store, mirror=self.mirror)

    def start(self, candidate_name: str) -> ProctorSession:
        """
        Create and start a new session.

        Raises:
            SessionStateError: if another session is still live
        """
        if self.current is not None and self.current.is_active:
            raise SessionStateError(f"Session {self.current.id} is still active")

        face_model, object_model = self.models
        uploader = VideoUploader(self.config.VIDEO_UPLOAD_URL) if self.config.VIDEO_UPLOAD_URL else None

        session = ProctorSession(
            candidate_name=candidate_name,
            face_model=face_model,
            object_model=object_model,
            sink=self._build_sink(),
            video_uploader=uploader,
            config=self.config
        )
        session.start()
        self.current = session

        logger.info(f"Started proctoring session: {session.id}")
        return session

    def get(self, session_id: Optional[str] = None) -> ProctorSession:
        """
        Get the current session, optionally checking its ID.

        Raises:
            SessionStateError: if there is no matching session
        """
        if self.current is None:
            raise SessionStateError("No session has been started")
        if session_id is not None and session_id != self.current.id:
            raise SessionStateError(f"Session {session_id} not found")
        return self.current

    async def stop(self, session_id: Optional[str] = None) -> Report:
        """
        Stop the current session (idempotent) and return its report.

        The session's sink and uploader are closed once its final events
        have been handed over.
        """
        session = self.get(session_id)
        report = session.stop()
        await session.aclose()
        return report
