"""
Integrity Scorer - Computes integrity score from event counts
"""

import logging
from typing import Any, Dict, Mapping, Optional

from ..events import EventKind

logger = logging.getLogger(__name__)


class IntegrityScorer:
    """
    Computes integrity score from session event counts.

    Formula:
        integrity_score = clamp(100
            - 6 * looking_away
            - 12 * no_face
            - 20 * multiple_faces
            - 3 * object_detected, 0, 100)

    Every occurrence costs the same; there is no time decay.
    """

    # Points deducted per event
    WEIGHTS: Dict[EventKind, int] = {
        EventKind.LOOKING_AWAY: 6,
        EventKind.NO_FACE: 12,
        EventKind.MULTIPLE_FACES: 20,
        EventKind.OBJECT_DETECTED: 3
    }

    def __init__(self, weights: Optional[Mapping[Any, int]] = None):
        """
        Initialize scorer with optional custom weights.

        Args:
            weights: Optional mapping of event kind to points, overriding defaults
        """
        self.weights = self.WEIGHTS.copy()
        if weights:
            self.weights.update({EventKind(k): v for k, v in weights.items()})

    def _count(self, counts: Mapping[Any, int], kind: EventKind) -> int:
        # Accept both EventKind and plain string keys
        return int(counts.get(kind, counts.get(kind.value, 0)))

    def compute(self, counts: Mapping[Any, int]) -> int:
        """
        Compute integrity score from counts.

        Args:
            counts: Mapping of event kind to number of events

        Returns:
            Integrity score (0-100, higher is better)
        """
        deductions = sum(
            weight * self._count(counts, kind)
            for kind, weight in self.weights.items()
        )

        final_score = max(0, min(100, 100 - deductions))

        logger.debug(f"Computed integrity score: {final_score} (deductions={deductions})")
        return final_score

    def compute_breakdown(self, counts: Mapping[Any, int]) -> Dict[str, Any]:
        """
        Compute integrity score with detailed breakdown.

        Returns:
            Dict with score and penalty per event kind
        """
        penalties = {}
        total = 0

        for kind, weight in self.weights.items():
            count = self._count(counts, kind)
            penalty = weight * count
            penalties[kind.value] = {
                "count": count,
                "weight": weight,
                "penalty": penalty
            }
            total += penalty

        return {
            "integrity_score": max(0, min(100, 100 - total)),
            "raw_score": 100 - total,
            "penalties": penalties,
            "total_penalty": total
        }

    def get_grade(self, score: int) -> str:
        """
        Convert score to letter grade.

        Returns:
            Grade: 'A' (excellent), 'B' (good), 'C' (warning), 'D' (concerning), 'F' (failed)
        """
        if score >= 90:
            return "A"
        elif score >= 80:
            return "B"
        elif score >= 70:
            return "C"
        elif score >= 60:
            return "D"
        else:
            return "F"


_default_scorer = IntegrityScorer()


def compute_integrity_score(counts: Mapping[Any, int]) -> int:
    """Score counts with the default weights"""
    return _default_scorer.compute(counts)
