"""Session metrics"""

from .aggregator import SessionAggregator

__all__ = ["SessionAggregator"]
