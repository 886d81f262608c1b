"""
examguard Proctoring Module

Turns per-frame perception results into integrity events:
- Face absence (no_face)
- Gaze deviation (looking_away)
- Multiple-person presence (multiple_faces)
- Prohibited objects and paper/notes (object_detected)

Produces an Integrity Score (0-100) and a report for each session.
"""

from .events import Event, EventKind, FaceBox, ObjectDetection
from .session import DetectionMode, ProctorSession

__all__ = [
    "Event",
    "EventKind",
    "FaceBox",
    "ObjectDetection",
    "DetectionMode",
    "ProctorSession"
]
