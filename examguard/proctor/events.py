"""
Proctoring Events - Event records and the canonical geometry types

Perception models hand us face rectangles in several encodings and object
detections as loosely-typed dicts. Everything is normalized here, at the
boundary, so the tracker and debouncer only ever see FaceBox and
ObjectDetection.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Sequence, Tuple

import numpy as np

from .exceptions import MalformedDetectionError


class EventKind(str, Enum):
    """Kinds of session events"""
    SESSION_START = "session_start"
    LOOKING_AWAY = "looking_away"
    NO_FACE = "no_face"
    MULTIPLE_FACES = "multiple_faces"
    OBJECT_DETECTED = "object_detected"
    SESSION_REPORT = "session_report"


def ms_to_datetime(ms: float) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime"""
    return datetime.fromtimestamp(ms / 1000.0, tz=timezone.utc)


def format_timestamp(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds")


@dataclass(frozen=True)
class Event:
    """
    A single session event.

    `detail` is wrapped in a read-only mapping on creation.
    """

    timestamp: datetime
    type: EventKind
    detail: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "type", EventKind(self.type))
        object.__setattr__(self, "detail", MappingProxyType(dict(self.detail)))

    @classmethod
    def at(cls, now_ms: float, kind: EventKind, **detail: Any) -> "Event":
        """Create an event stamped with a tick's `now` (epoch ms)"""
        return cls(timestamp=ms_to_datetime(now_ms), type=kind, detail=detail)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": format_timestamp(self.timestamp),
            "type": self.type.value,
            "detail": dict(self.detail),
        }


@dataclass(frozen=True)
class FaceBox:
    """Axis-aligned rectangle in frame-pixel coordinates"""

    x: float
    y: float
    w: float
    h: float

    def __post_init__(self):
        values = (self.x, self.y, self.w, self.h)
        if not all(math.isfinite(v) for v in values):
            raise MalformedDetectionError(f"Non-finite box: {values}")
        if self.w <= 0 or self.h <= 0:
            raise MalformedDetectionError(f"Box has no area: w={self.w}, h={self.h}")

    @property
    def center(self) -> Tuple[float, float]:
        return (self.x + self.w / 2, self.y + self.h / 2)

    def as_list(self) -> List[float]:
        return [self.x, self.y, self.w, self.h]


@dataclass(frozen=True)
class ObjectDetection:
    """One detection from the object model"""

    label: str
    score: float
    box: FaceBox


_SEQUENCE_TYPES = (list, tuple, np.ndarray)

_CORNER_KEYS = (("top_left", "bottom_right"), ("topLeft", "bottomRight"))
_XYWH_KEYS = ("bounding_box", "boundingBox", "box", "bbox")


def _number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise MalformedDetectionError(f"Not a number: {value!r}") from e


def _point(value: Any) -> Tuple[float, float]:
    """Read an [x, y] point, unwrapping the nested [[x, y]] form"""
    if isinstance(value, _SEQUENCE_TYPES) and len(value) > 0 and isinstance(value[0], _SEQUENCE_TYPES):
        return _point(value[0])
    if not isinstance(value, _SEQUENCE_TYPES) or len(value) < 2:
        raise MalformedDetectionError(f"Not a point: {value!r}")
    return _number(value[0]), _number(value[1])


def _from_xywh(values: Sequence[Any]) -> FaceBox:
    if len(values) < 4:
        raise MalformedDetectionError(f"Expected [x, y, w, h], got {values!r}")
    return FaceBox(*(_number(v) for v in values[:4]))


def normalize_face_box(raw: Any) -> FaceBox:
    """
    Normalize any supported face box encoding to a FaceBox.

    Supported:
        - FaceBox
        - {top_left|topLeft: [x, y], bottom_right|bottomRight: [x, y]} (also [[x, y]])
        - {bounding_box|boundingBox|box|bbox: [x, y, w, h]}
        - {x, y, w|width, h|height}
        - (x, y, w, h)
        - dlib-style rectangles with left()/top()/width()/height()

    Raises:
        MalformedDetectionError: if the entry cannot be normalized
    """
    if isinstance(raw, FaceBox):
        return raw

    if isinstance(raw, Mapping):
        for start_key, end_key in _CORNER_KEYS:
            if start_key in raw and end_key in raw:
                x1, y1 = _point(raw[start_key])
                x2, y2 = _point(raw[end_key])
                return FaceBox(x1, y1, x2 - x1, y2 - y1)

        for key in _XYWH_KEYS:
            if isinstance(raw.get(key), _SEQUENCE_TYPES):
                return _from_xywh(raw[key])

        if "x" in raw and "y" in raw:
            width = raw.get("w", raw.get("width"))
            height = raw.get("h", raw.get("height"))
            return FaceBox(_number(raw["x"]), _number(raw["y"]), _number(width), _number(height))

        raise MalformedDetectionError(f"Unrecognized face box keys: {sorted(raw)}")

    if isinstance(raw, _SEQUENCE_TYPES):
        return _from_xywh(raw)

    if all(callable(getattr(raw, name, None)) for name in ("left", "top", "width", "height")):
        return FaceBox(
            _number(raw.left()), _number(raw.top()),
            _number(raw.width()), _number(raw.height())
        )

    raise MalformedDetectionError(f"Unsupported face box type: {type(raw).__name__}")


def normalize_object_detection(raw: Any) -> ObjectDetection:
    """
    Normalize an object model entry to an ObjectDetection.

    Accepts an ObjectDetection or a mapping with `label`/`class`/`name`,
    `score`/`confidence` and `bbox`/`box` as [x, y, w, h].
    """
    if isinstance(raw, ObjectDetection):
        return raw

    if not isinstance(raw, Mapping):
        raise MalformedDetectionError(f"Unsupported detection type: {type(raw).__name__}")

    label = raw.get("label", raw.get("class", raw.get("name")))
    if label is None:
        raise MalformedDetectionError("Detection has no label")

    score = _number(raw.get("score", raw.get("confidence")))
    if not math.isfinite(score) or not 0.0 <= score <= 1.0:
        raise MalformedDetectionError(f"Score out of range: {score}")

    box = raw.get("bbox", raw.get("box"))
    if not isinstance(box, _SEQUENCE_TYPES):
        raise MalformedDetectionError(f"Detection has no box: {box!r}")

    return ObjectDetection(label=str(label), score=score, box=_from_xywh(box))
