"""
Presence Tracker - Turns per-tick face boxes into presence and gaze events

Emits:
- no_face: no face visible for longer than the absence threshold
- looking_away: a face held off-center for longer than the gaze threshold
- multiple_faces: more than one face in a single tick (not debounced)

Both duration checks use the same hysteresis: a timer starts when the
condition becomes true, fires once `now - since` exceeds the threshold, and
is then moved to `now + cooldown` instead of being cleared. A sustained
condition therefore re-fires every `threshold + cooldown` at most.
"""

import logging
import math
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from ..events import Event, EventKind, normalize_face_box
from ..exceptions import MalformedDetectionError

logger = logging.getLogger(__name__)


@dataclass
class TimerState:
    """Start instants (epoch ms) of the conditions currently held true"""

    no_face_since: Optional[float] = None
    away_since: Optional[float] = None

    def clear(self):
        self.no_face_since = None
        self.away_since = None


class PresenceTracker:
    """
    Tracks face presence and gaze deviation across ticks.

    The tracker owns its timers; a single shared gaze timer is used for
    all faces in the frame.
    """

    NO_FACE_THRESHOLD_MS = 10_000
    LOOK_AWAY_THRESHOLD_MS = 5_000
    HYSTERESIS_COOLDOWN_MS = 1_000
    GAZE_DEVIATION_FRACTION = 0.18

    def __init__(
        self,
        no_face_threshold_ms: float = NO_FACE_THRESHOLD_MS,
        look_away_threshold_ms: float = LOOK_AWAY_THRESHOLD_MS,
        cooldown_ms: float = HYSTERESIS_COOLDOWN_MS,
        gaze_deviation_fraction: float = GAZE_DEVIATION_FRACTION
    ):
        self.no_face_threshold_ms = no_face_threshold_ms
        self.look_away_threshold_ms = look_away_threshold_ms
        self.cooldown_ms = cooldown_ms
        self.gaze_deviation_fraction = gaze_deviation_fraction
        self.timers = TimerState()

    def reset(self):
        """Clear all timers (session start)"""
        self.timers.clear()

    def update(
        self,
        now: float,
        faces: Sequence[Any],
        frame_width: float,
        frame_height: float
    ) -> List[Event]:
        """
        Process one tick of face detections.

        Args:
            now: Tick instant in epoch milliseconds
            faces: Raw face entries from the face model, any supported encoding
            frame_width: Frame width in pixels
            frame_height: Frame height in pixels

        Returns:
            Events emitted this tick, in detection order
        """
        events: List[Event] = []
        faces = list(faces or [])

        if not faces:
            since = self.timers.no_face_since
            if since is None:
                self.timers.no_face_since = now
            elif now - since > self.no_face_threshold_ms:
                events.append(Event.at(now, EventKind.NO_FACE, duration_ms=now - since))
                self.timers.no_face_since = now + self.cooldown_ms
            self.timers.away_since = None
            return events

        self.timers.no_face_since = None
        if len(faces) > 1:
            events.append(Event.at(now, EventKind.MULTIPLE_FACES, count=len(faces)))

        limit = frame_width * self.gaze_deviation_fraction
        center_x, center_y = frame_width / 2, frame_height / 2

        for raw in faces:
            try:
                box = normalize_face_box(raw)
            except MalformedDetectionError as e:
                logger.warning(f"Skipping malformed face entry: {e}")
                continue

            face_x, face_y = box.center
            deviation = math.hypot(face_x - center_x, face_y - center_y)

            if deviation > limit:
                since = self.timers.away_since
                if since is None:
                    self.timers.away_since = now
                elif now - since > self.look_away_threshold_ms:
                    events.append(Event.at(now, EventKind.LOOKING_AWAY, duration_ms=now - since))
                    self.timers.away_since = now + self.cooldown_ms
            else:
                self.timers.away_since = None

        return events
