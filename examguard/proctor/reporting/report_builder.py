"""
Report Builder - Frozen end-of-session proctoring report
"""

import math
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from ..events import Event, EventKind, format_timestamp, ms_to_datetime
from ..exceptions import SessionStateError
from ..metrics import SessionAggregator
from ..scoring import IntegrityScorer

logger = logging.getLogger(__name__)

DEFAULT_EVENT_LIMIT = 1000


def ms_to_human(ms: float) -> str:
    """
    Format a duration as e.g. "1h 2m 3s".

    Hours and minutes are omitted when zero; non-positive or
    non-finite durations render as "0s".
    """
    if ms is None or not math.isfinite(ms) or ms <= 0:
        return "0s"

    total = int(math.floor(ms / 1000 + 0.5))
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)

    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{seconds}s")
    return " ".join(parts)


@dataclass(frozen=True)
class Report:
    """Read-only snapshot of a finished session"""

    candidate_name: str
    started_at: str
    ended_at: str
    duration_ms: float
    duration_human: str
    counts_by_kind: Mapping[str, int]
    integrity_score: int
    grade: str
    events: Tuple[Event, ...]

    def count(self, kind: EventKind) -> int:
        return self.counts_by_kind.get(EventKind(kind).value, 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "candidate_name": self.candidate_name,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "duration_ms": self.duration_ms,
            "duration_human": self.duration_human,
            "counts_by_kind": dict(self.counts_by_kind),
            "integrity_score": self.integrity_score,
            "grade": self.grade,
            "events": [event.to_dict() for event in self.events]
        }


def build_report(
    aggregator: SessionAggregator,
    scorer: Optional[IntegrityScorer] = None,
    event_limit: int = DEFAULT_EVENT_LIMIT
) -> Report:
    """
    Build the report for a stopped session.

    Args:
        aggregator: The frozen session aggregator
        scorer: Scorer to use (default weights if None)
        event_limit: Maximum number of most-recent events to include

    Raises:
        SessionStateError: if the session is not frozen yet
    """
    if not aggregator.is_frozen:
        raise SessionStateError("Cannot build a report for a live session")

    scorer = scorer or IntegrityScorer()
    score = scorer.compute(aggregator.counts)

    report = Report(
        candidate_name=aggregator.name or "Unknown",
        started_at=format_timestamp(ms_to_datetime(aggregator.started_at_ms)),
        ended_at=format_timestamp(ms_to_datetime(aggregator.ended_at_ms)),
        duration_ms=aggregator.duration_ms,
        duration_human=ms_to_human(aggregator.duration_ms),
        counts_by_kind=MappingProxyType({kind.value: count for kind, count in aggregator.counts.items()}),
        integrity_score=score,
        grade=scorer.get_grade(score),
        events=tuple(aggregator.recent_events(event_limit))
    )

    logger.debug(f"Built report for {report.candidate_name}: score={score}")
    return report
