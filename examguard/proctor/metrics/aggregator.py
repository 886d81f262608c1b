"""
Session Aggregator - Owns the session record for a proctoring session
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional

from ..events import Event, EventKind, ms_to_datetime, format_timestamp
from ..exceptions import SessionStateError

logger = logging.getLogger(__name__)


def _zero_counts() -> Dict[EventKind, int]:
    return {kind: 0 for kind in EventKind}


@dataclass
class SessionAggregator:
    """
    Accumulates emitted events for one session.

    Keeps a bounded most-recent-first event buffer and a counter per
    event kind. Once stopped, the session is frozen and further events
    are rejected.
    """

    name: str = ""
    history_limit: int = 1000

    started_at_ms: Optional[float] = None
    ended_at_ms: Optional[float] = None
    duration_ms: float = 0

    counts: Dict[EventKind, int] = field(default_factory=_zero_counts)
    events: Deque[Event] = field(default_factory=deque)

    def __post_init__(self):
        self.events = deque(self.events, maxlen=self.history_limit)

    @property
    def is_started(self) -> bool:
        return self.started_at_ms is not None

    @property
    def is_frozen(self) -> bool:
        return self.ended_at_ms is not None

    def start(self, name: str, now: float):
        """Reset counters and the event buffer, and stamp the start time"""
        self.name = name
        self.started_at_ms = now
        self.ended_at_ms = None
        self.duration_ms = 0
        self.counts = _zero_counts()
        self.events = deque(maxlen=self.history_limit)

    def record(self, event: Event):
        """
        Record one emitted event.

        Raises:
            SessionStateError: if the session is not started or already frozen
        """
        if not self.is_started:
            raise SessionStateError("Session has not been started")
        if self.is_frozen:
            raise SessionStateError("Session is frozen")

        self.events.appendleft(event)
        self.counts[event.type] += 1

    def stop(self, now: float):
        """Stamp the end time and freeze the session. No-op if already frozen."""
        if not self.is_started:
            raise SessionStateError("Session has not been started")
        if self.is_frozen:
            return

        self.ended_at_ms = now
        self.duration_ms = max(0, now - self.started_at_ms)

    def recent_events(self, limit: Optional[int] = None) -> List[Event]:
        """Most-recent-first slice of the event buffer"""
        events = list(self.events)
        return events if limit is None else events[:limit]

    def count_of(self, kind: EventKind) -> int:
        return self.counts.get(EventKind(kind), 0)

    def get_summary(self) -> Dict[str, Any]:
        """
        Get a JSON-friendly summary of the session so far.

        Returns:
            Dict with name, timing and counts by kind
        """
        return {
            "name": self.name,
            "started_at": format_timestamp(ms_to_datetime(self.started_at_ms)) if self.is_started else None,
            "ended_at": format_timestamp(ms_to_datetime(self.ended_at_ms)) if self.is_frozen else None,
            "duration_ms": self.duration_ms,
            "counts": {kind.value: count for kind, count in self.counts.items()},
            "events_buffered": len(self.events)
        }
