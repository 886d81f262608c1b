"""
Model Loader - Lazy loading and caching of perception models
"""

import os
import logging
from functools import lru_cache
from typing import Optional

from ..exceptions import PerceptionUnavailableError

logger = logging.getLogger(__name__)

# Default model paths (relative to this file's directory)
MODELS_DIR = os.path.join(os.path.dirname(__file__), "weights")

FACE_CASCADE_FILE = "haarcascade_frontalface_default.xml"
DEFAULT_YOLO_WEIGHTS = "yolov8n.pt"


@lru_cache(maxsize=1)
def get_face_cascade():
    """
    Get OpenCV's frontal face Haar cascade.

    Looks in the local weights directory first, then in the cascades
    bundled with opencv-python.

    Raises:
        PerceptionUnavailableError: if the cascade cannot be loaded
    """
    import cv2

    possible_paths = [
        os.path.join(MODELS_DIR, FACE_CASCADE_FILE),
        os.path.join(cv2.data.haarcascades, FACE_CASCADE_FILE)
    ]

    for path in possible_paths:
        if os.path.exists(path):
            cascade = cv2.CascadeClassifier(path)
            if not cascade.empty():
                logger.info(f"Loading face cascade from: {path}")
                return cascade

    raise PerceptionUnavailableError(f"{FACE_CASCADE_FILE} not found in {possible_paths}")


@lru_cache(maxsize=4)
def get_yolo_model(model_path: Optional[str] = None):
    """
    Get YOLO model for prohibited object detection.

    Args:
        model_path: Explicit weights path. Defaults to weights/yolov8n.pt,
                    then to the ultralytics-managed yolov8n.pt download.

    Raises:
        PerceptionUnavailableError: if ultralytics is missing or loading fails
    """
    try:
        from ultralytics import YOLO
    except ImportError as e:
        raise PerceptionUnavailableError("ultralytics not installed. Run: pip install ultralytics") from e

    possible_paths = [p for p in (
        model_path,
        os.path.join(MODELS_DIR, DEFAULT_YOLO_WEIGHTS)
    ) if p]

    try:
        for path in possible_paths:
            if os.path.exists(path):
                logger.info(f"Loading YOLO model from: {path}")
                return YOLO(path)

        logger.warning(f"Local YOLO weights not found, using {DEFAULT_YOLO_WEIGHTS}")
        return YOLO(DEFAULT_YOLO_WEIGHTS)
    except Exception as e:
        raise PerceptionUnavailableError(f"Failed to load YOLO model: {e}") from e

