"""
Face Detector - Detects faces using OpenCV's Haar cascade
"""

import cv2
import numpy as np
import logging
from typing import Any, Dict, List, Tuple

logger = logging.getLogger(__name__)


class FaceDetector:
    """
    Face model adapter for the presence tracker.

    Returns raw boxes in the `{"box": [x, y, w, h]}` encoding; geometry
    normalization happens in the engine.
    """

    def __init__(
        self,
        cascade=None,
        scale_factor: float = 1.1,
        min_neighbors: int = 5,
        min_size: Tuple[int, int] = (60, 60)
    ):
        """
        Initialize face detector.

        Args:
            cascade: A loaded cv2.CascadeClassifier. If None, uses model_loader.

        Raises:
            PerceptionUnavailableError: if the cascade cannot be loaded
        """
        if cascade is None:
            from ..models import get_face_cascade
            cascade = get_face_cascade()

        self.cascade = cascade
        self.scale_factor = scale_factor
        self.min_neighbors = min_neighbors
        self.min_size = min_size

    def detect(self, frame: np.ndarray) -> List[Dict[str, Any]]:
        """
        Detect faces in a frame.

        Args:
            frame: BGR image from OpenCV

        Returns:
            List of {"box": [x, y, w, h]}
        """
        if frame is None or frame.size == 0:
            return []

        gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
        faces = self.cascade.detectMultiScale(
            gray,
            scaleFactor=self.scale_factor,
            minNeighbors=self.min_neighbors,
            minSize=self.min_size
        )

        return [{"box": [int(x), int(y), int(w), int(h)]} for (x, y, w, h) in faces]
