"""
Proctor Session - Manages a single proctoring session
"""

import asyncio
import time
import uuid
import logging
from enum import Enum
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..config import Settings, settings as default_settings
from .detectors import (
    FaceDetector,
    ObjectDetector,
    ObjectFlagDebouncer,
    PresenceTracker,
    is_paper_region
)
from .events import Event, EventKind
from .exceptions import SessionStateError
from .metrics import SessionAggregator
from .reporting import Report, build_report
from .scoring import IntegrityScorer
from .sinks import EventSink, NullEventSink, VideoUploader
from .utils.logging import (
    log_detection_degraded,
    log_event_emitted,
    log_session_end,
    log_session_start
)

logger = logging.getLogger(__name__)


class DetectionMode(str, Enum):
    """Which perception models are feeding the session"""
    FULL = "full"
    DEGRADED = "degraded"
    DISABLED = "disabled"


def epoch_ms() -> float:
    return time.time() * 1000.0


def load_detectors(config: Settings = default_settings) -> Tuple[Optional[FaceDetector], Optional[ObjectDetector]]:
    """
    Load both perception models, disabling any that fail.

    Returns:
        (face_model, object_model); either may be None
    """
    face_model = None
    object_model = None

    try:
        face_model = FaceDetector()
    except Exception as e:
        logger.warning(f"Face detector unavailable, presence checks disabled: {e}")

    try:
        object_model = ObjectDetector(
            model_path=config.YOLO_MODEL_PATH,
            confidence=config.RESCUE_CONFIDENCE_MIN
        )
    except Exception as e:
        logger.warning(f"Object detector unavailable, object checks disabled: {e}")

    return face_model, object_model


class ProctorSession:
    """
    Manages a single proctoring session.

    Owns the presence timers, the object debounce table and the session
    aggregator. All of them are mutated only from within a tick, and ticks
    are awaited one at a time by the caller, so no locking is needed.
    """

    def __init__(
        self,
        candidate_name: str,
        face_model: Optional[Any] = None,
        object_model: Optional[Any] = None,
        sink: Optional[EventSink] = None,
        video_uploader: Optional[VideoUploader] = None,
        config: Optional[Settings] = None,
        clock: Callable[[], float] = epoch_ms,
        session_id: Optional[str] = None
    ):
        """
        Initialize a new proctoring session.

        Args:
            candidate_name: Name shown on the report
            face_model: Object with detect(frame) -> raw face boxes, or None
            object_model: Object with detect(frame) -> raw detections, or None
            sink: Where emitted events are forwarded (best-effort)
            video_uploader: Receives the recording once on stop
            config: Settings (module defaults if not provided)
            clock: Returns "now" in epoch milliseconds
            session_id: Optional custom session ID (auto-generated if not provided)
        """
        self.config = config or default_settings
        self.id = session_id or f"EXM_{uuid.uuid4().hex[:6].upper()}"
        self.candidate_name = candidate_name or "Unknown"
        self.is_active = False

        self.face_model = face_model
        self.object_model = object_model
        self.sink = sink or NullEventSink()
        self.video_uploader = video_uploader
        self._clock = clock
        self._tick_lock = asyncio.Lock()

        self.presence = PresenceTracker(
            no_face_threshold_ms=self.config.NO_FACE_THRESHOLD_MS,
            look_away_threshold_ms=self.config.LOOK_AWAY_THRESHOLD_MS,
            cooldown_ms=self.config.HYSTERESIS_COOLDOWN_MS,
            gaze_deviation_fraction=self.config.GAZE_DEVIATION_FRACTION
        )
        self.objects = ObjectFlagDebouncer(
            item_classes=self.config.ITEM_CLASSES,
            confidence_min=self.config.ITEM_CONFIDENCE_MIN,
            rescue_min=self.config.RESCUE_CONFIDENCE_MIN,
            debounce_ms=self.config.ITEM_DEBOUNCE_MS,
            region_classifier=partial(
                is_paper_region,
                channel_order=self.config.FRAME_CHANNEL_ORDER,
                luminance_min=self.config.PAPER_LUMINANCE_MIN,
                fraction_min=self.config.PAPER_FRACTION_MIN,
                max_samples=self.config.PAPER_MAX_SAMPLES
            )
        )
        self.aggregator = SessionAggregator(history_limit=self.config.EVENT_HISTORY_LIMIT)
        self.scorer = IntegrityScorer()

        self.object_interval_ms = self.config.TICK_MS * self.config.OBJECT_TICK_MULTIPLIER
        self._last_object_tick: Optional[float] = None
        self.tick_count = 0
        self.report: Optional[Report] = None

    @property
    def detection_mode(self) -> DetectionMode:
        available = sum(m is not None for m in (self.face_model, self.object_model))
        if available == 2:
            return DetectionMode.FULL
        if available == 1:
            return DetectionMode.DEGRADED
        return DetectionMode.DISABLED

    def now(self) -> float:
        return self._clock()

    def _now(self, now: Optional[float]) -> float:
        return self._clock() if now is None else now

    def _emit(self, event: Event) -> Event:
        """Commit an event to the session, then forward it"""
        self.aggregator.record(event)
        if event.type is not EventKind.SESSION_START:
            log_event_emitted(self.id, event.type.value, event.detail)
        self.sink.submit(event.to_dict())
        return event

    # ==================== Lifecycle ====================

    def start(self, now: Optional[float] = None) -> Event:
        """
        Start the session: reset timers, debounce table and counters.

        Raises:
            SessionStateError: if the session was already started
        """
        if self.aggregator.is_started:
            raise SessionStateError(f"Session {self.id} was already started")

        now = self._now(now)
        self.presence.reset()
        self.objects.reset()
        self.aggregator.start(self.candidate_name, now)
        self._last_object_tick = now
        self.is_active = True

        mode = self.detection_mode
        log_session_start(self.id, self.candidate_name, mode.value)
        if self.face_model is None:
            log_detection_degraded(self.id, "face", "not loaded")
        if self.object_model is None:
            log_detection_degraded(self.id, "object", "not loaded")
        if mode is DetectionMode.DISABLED:
            logger.warning(f"No models loaded for session {self.id}; detection disabled")

        return self._emit(Event.at(now, EventKind.SESSION_START, candidate=self.candidate_name))

    def stop(self, now: Optional[float] = None, recording: Any = None) -> Report:
        """
        Stop the session and build the final report.

        Idempotent: stopping a stopped session returns the same report
        without forwarding anything again.

        Args:
            now: Stop instant (epoch ms), defaults to the clock
            recording: Optional recording (bytes or path) handed to the uploader

        Raises:
            SessionStateError: if the session was never started
        """
        if self.report is not None:
            return self.report
        if not self.aggregator.is_started:
            raise SessionStateError(f"Session {self.id} was never started")

        now = self._now(now)
        self.is_active = False
        self.aggregator.stop(now)

        report = build_report(self.aggregator, self.scorer, self.config.EVENT_HISTORY_LIMIT)
        self.report = report

        log_session_end(self.id, report.integrity_score, report.counts_by_kind, report.duration_ms)

        # Session is frozen: the report event is forwarded but not counted
        self.sink.submit(Event.at(now, EventKind.SESSION_REPORT, **report.to_dict()).to_dict())

        if recording is not None and self.video_uploader is not None:
            filename = f"{self.candidate_name.replace(' ', '_')}.webm"
            self.video_uploader.submit(recording, filename)

        return report

    async def aclose(self):
        """Wait for in-flight forwarding and release HTTP clients"""
        await self.sink.aclose()
        if self.video_uploader is not None:
            await self.video_uploader.aclose()

    # ==================== Ticks ====================

    def process_detections(
        self,
        faces: Optional[Sequence[Any]],
        objects: Optional[Sequence[Any]] = None,
        frame: Optional[np.ndarray] = None,
        frame_size: Optional[Tuple[float, float]] = None,
        now: Optional[float] = None
    ) -> List[Event]:
        """
        Run one tick over already-computed detections.

        Args:
            faces: Raw face entries, or None if the face model did not run
            objects: Raw object entries, or None if the object model did not run
            frame: Current frame (needed by the paper heuristic)
            frame_size: (width, height); taken from `frame` if omitted
            now: Tick instant (epoch ms), defaults to the clock

        Returns:
            Events emitted this tick; empty if the session is not active
        """
        if not self.is_active:
            return []

        now = self._now(now)

        if frame_size is None and frame is not None:
            frame_size = (frame.shape[1], frame.shape[0])

        emitted: List[Event] = []

        if faces is not None:
            if frame_size is None:
                raise ValueError("frame_size is required when no frame is given")
            width, height = frame_size
            emitted.extend(self.presence.update(now, faces, width, height))

        if objects is not None:
            emitted.extend(self.objects.update(now, objects, frame))

        for event in emitted:
            self._emit(event)

        self.tick_count += 1
        return emitted

    async def tick(self, frame: np.ndarray, now: Optional[float] = None) -> List[Event]:
        """
        Run the perception models on a frame and process the results.

        The face model runs every tick; the object model only once
        `object_interval_ms` has passed since its last run. Blocking model
        calls run in a worker thread and are awaited before any state
        changes. Overlapping ticks on one session run one at a time.

        Args:
            frame: BGR image
            now: Tick instant (epoch ms), defaults to the clock

        Returns:
            Events emitted this tick
        """
        async with self._tick_lock:
            if not self.is_active or self.detection_mode is DetectionMode.DISABLED:
                return []

            now = self._now(now)

            faces = None
            if self.face_model is not None:
                try:
                    faces = await asyncio.to_thread(self.face_model.detect, frame)
                except Exception as e:
                    logger.warning(f"Face model error: {e}")
                    faces = []

            objects = None
            if self.object_model is not None and now - self._last_object_tick >= self.object_interval_ms:
                self._last_object_tick = now
                try:
                    objects = await asyncio.to_thread(self.object_model.detect, frame)
                except Exception as e:
                    logger.warning(f"Object model error: {e}")

            # Stopped while the models were running
            if not self.is_active:
                return []

            return self.process_detections(faces, objects, frame=frame, now=now)

    # ==================== Status ====================

    def current_score(self) -> int:
        return self.scorer.compute(self.aggregator.counts)

    def get_status(self) -> Dict[str, Any]:
        summary = self.aggregator.get_summary()
        return {
            "session_id": self.id,
            "candidate_name": self.candidate_name,
            "is_active": self.is_active,
            "detection_mode": self.detection_mode.value,
            "ticks_processed": self.tick_count,
            "current_score": self.current_score(),
            "counts": summary["counts"],
            "started_at": summary["started_at"],
            "ended_at": summary["ended_at"]
        }
