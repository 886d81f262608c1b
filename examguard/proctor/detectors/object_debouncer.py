"""
Object Flag Debouncer - Turns object detections into object_detected events

A detection is flagged when its label is a prohibited item scored above the
confidence floor, or when a lower-scored detection sits over a region the
paper heuristic classifies as bright. Emissions are debounced per reason:
the same reason is not re-emitted within the debounce window, while
different reasons cool down independently.
"""

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

import numpy as np

from ..events import Event, EventKind, FaceBox, ObjectDetection, normalize_object_detection
from .region_heuristic import is_paper_region

logger = logging.getLogger(__name__)

RegionClassifier = Callable[[np.ndarray, FaceBox], bool]


class ObjectFlagDebouncer:
    """
    Flags prohibited items and suppresses repeats per reason.

    Flagged classes (COCO names plus common aliases):
    - cell phone / cellphone / phone
    - laptop, keyboard, mouse, remote
    - book
    - tv / monitor
    """

    FLAGGABLE_CLASSES: Set[str] = {
        "cell phone",
        "cellphone",
        "phone",
        "laptop",
        "book",
        "remote",
        "keyboard",
        "mouse",
        "tv",
        "monitor"
    }

    HEURISTIC_REASON = "paper/note (heuristic)"

    CONFIDENCE_MIN = 0.45
    RESCUE_MIN = 0.25
    DEBOUNCE_MS = 5_000

    def __init__(
        self,
        item_classes: Optional[Iterable[str]] = None,
        confidence_min: float = CONFIDENCE_MIN,
        rescue_min: float = RESCUE_MIN,
        debounce_ms: float = DEBOUNCE_MS,
        region_classifier: RegionClassifier = is_paper_region
    ):
        self.item_classes = {c.lower() for c in (item_classes or self.FLAGGABLE_CLASSES)}
        self.confidence_min = confidence_min
        self.rescue_min = rescue_min
        self.debounce_ms = debounce_ms
        self.region_classifier = region_classifier

        # reason -> last emission instant (epoch ms)
        self.last_emitted: Dict[str, float] = {}

    def reset(self):
        """Forget all emissions (session start)"""
        self.last_emitted = {}

    def classify(self, detection: ObjectDetection, frame: Optional[np.ndarray]) -> Optional[str]:
        """
        Decide whether a detection is flagged.

        Returns:
            The debounce reason, or None if the detection is not flagged
        """
        label = detection.label.lower()

        if label in self.item_classes and detection.score >= self.confidence_min:
            return label

        if detection.score >= self.rescue_min and frame is not None:
            if self.region_classifier(frame, detection.box):
                return self.HEURISTIC_REASON

        return None

    def update(
        self,
        now: float,
        detections: Iterable[Any],
        frame: Optional[np.ndarray] = None
    ) -> List[Event]:
        """
        Process one batch of object detections.

        Args:
            now: Tick instant in epoch milliseconds
            detections: Raw entries from the object model
            frame: Current frame, used by the region heuristic

        Returns:
            object_detected events emitted this tick
        """
        events: List[Event] = []

        for raw in detections or []:
            try:
                detection = normalize_object_detection(raw)
                reason = self.classify(detection, frame)
                if reason is None:
                    continue

                last = self.last_emitted.get(reason)
                if last is not None and now - last <= self.debounce_ms:
                    logger.debug(f"Debounced {reason} ({now - last:.0f}ms since last)")
                    continue

                events.append(Event.at(
                    now,
                    EventKind.OBJECT_DETECTED,
                    object=reason,
                    model_class=detection.label,
                    score=round(detection.score, 2),
                    box=detection.box.as_list()
                ))
                self.last_emitted[reason] = now
            except Exception as e:
                logger.warning(f"Skipping object detection {raw!r}: {e}")

        return events
