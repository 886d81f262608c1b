"""
Object Detector - Runs YOLO and reports labelled boxes
"""

import logging
from typing import Any, Dict, List, Optional

import numpy as np

logger = logging.getLogger(__name__)


class ObjectDetector:
    """
    Object model adapter for the flag debouncer.

    Reports every detection above `confidence`, not only prohibited
    items: low-scored boxes are still candidates for the paper heuristic.
    """

    def __init__(self, model=None, model_path: Optional[str] = None, confidence: float = 0.25):
        """
        Initialize object detector.

        Args:
            model: A loaded ultralytics YOLO model. If None, uses model_loader.
            model_path: Path to YOLO weights passed to model_loader.
            confidence: Minimum confidence passed to YOLO.

        Raises:
            PerceptionUnavailableError: if the model cannot be loaded
        """
        if model is None:
            from ..models import get_yolo_model
            model = get_yolo_model(model_path)

        self.model = model
        self.confidence = confidence

    def detect(self, frame: np.ndarray) -> List[Dict[str, Any]]:
        """
        Detect objects in a frame.

        Args:
            frame: BGR image from OpenCV

        Returns:
            List of {"label", "score", "bbox": [x, y, w, h]}
        """
        if frame is None or frame.size == 0:
            return []

        results = self.model.predict(frame, conf=self.confidence, verbose=False)

        detections: List[Dict[str, Any]] = []
        for result in results:
            if result.boxes is None:
                continue

            for box in result.boxes:
                cls_id = int(box.cls[0])
                x1, y1, x2, y2 = [float(v) for v in box.xyxy[0].tolist()]
                detections.append({
                    "label": self.model.names.get(cls_id, f"class_{cls_id}"),
                    "score": float(box.conf[0]),
                    "bbox": [x1, y1, x2 - x1, y2 - y1]
                })

        return detections
