"""Detector modules for proctoring"""

from .presence_tracker import PresenceTracker, TimerState
from .object_debouncer import ObjectFlagDebouncer
from .region_heuristic import is_paper_region, bright_fraction
from .face_detector import FaceDetector
from .object_detector import ObjectDetector

__all__ = [
    "PresenceTracker",
    "TimerState",
    "ObjectFlagDebouncer",
    "is_paper_region",
    "bright_fraction",
    "FaceDetector",
    "ObjectDetector"
]
