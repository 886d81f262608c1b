"""
Region Heuristic - Bright-region test used to rescue paper/notes detections

A sheet of paper under webcam lighting shows up as a mostly near-white
patch. The test is intentionally strict (high luminance, high fraction) and
only runs on detections the object model already scored as plausible.
"""

import logging
import math

import numpy as np

from ..events import FaceBox

logger = logging.getLogger(__name__)

# Rec. 709 luma weights
LUMA_WEIGHTS = (0.2126, 0.7152, 0.0722)

LUMINANCE_MIN = 0.85
BRIGHT_FRACTION_MIN = 0.30
MAX_SAMPLES = 2000


def bright_fraction(
    frame: np.ndarray,
    box: FaceBox,
    channel_order: str = "BGR",
    luminance_min: float = LUMINANCE_MIN,
    max_samples: int = MAX_SAMPLES
) -> float:
    """
    Fraction of sampled pixels inside `box` brighter than `luminance_min`.

    The box is clamped to the frame. Pixels are sampled at a fixed stride
    so at most `max_samples` are read regardless of box size.

    Returns:
        Fraction in [0, 1]; 0.0 for a missing frame or an empty region
    """
    if frame is None or frame.ndim != 3 or frame.shape[2] < 3:
        return 0.0

    frame_h, frame_w = frame.shape[:2]
    x0 = max(0, int(round(box.x)))
    y0 = max(0, int(round(box.y)))
    x1 = min(frame_w, int(round(box.x + box.w)))
    y1 = min(frame_h, int(round(box.y + box.h)))

    if x1 <= x0 or y1 <= y0:
        return 0.0

    pixels = frame[y0:y1, x0:x1, :3].reshape(-1, 3)
    stride = max(1, math.ceil(pixels.shape[0] / max_samples))
    samples = pixels[::stride].astype(np.float64)

    if channel_order.upper() == "BGR":
        samples = samples[:, ::-1]

    luminance = samples @ np.asarray(LUMA_WEIGHTS) / 255.0
    return float(np.count_nonzero(luminance > luminance_min)) / samples.shape[0]


def is_paper_region(
    frame: np.ndarray,
    box: FaceBox,
    channel_order: str = "BGR",
    luminance_min: float = LUMINANCE_MIN,
    fraction_min: float = BRIGHT_FRACTION_MIN,
    max_samples: int = MAX_SAMPLES
) -> bool:
    """
    Check whether the region under `box` looks like a sheet of paper.

    Args:
        frame: H x W x 3 image (uint8)
        box: Region to inspect, in frame pixels
        channel_order: "BGR" (OpenCV) or "RGB"
        luminance_min: Per-pixel luminance (0-1) counted as bright
        fraction_min: Bright fraction above which the region is paper
        max_samples: Sampling cap

    Returns:
        True if the bright fraction exceeds `fraction_min`
    """
    fraction = bright_fraction(frame, box, channel_order, luminance_min, max_samples)
    logger.debug(f"Region bright fraction: {fraction:.3f}")
    return fraction > fraction_min
