"""Model loading utilities"""

from .model_loader import get_face_cascade, get_yolo_model

__all__ = ["get_face_cascade", "get_yolo_model"]
