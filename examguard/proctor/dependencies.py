"""
FastAPI dependencies - process-wide event store and session manager
"""

from functools import lru_cache
from typing import Optional

from ..config import settings
from .manager import SessionManager
from .sinks import EventLogStore, MongoEventMirror


@lru_cache(maxsize=1)
def get_event_store() -> EventLogStore:
    return EventLogStore(settings.LOGS_FILE)


@lru_cache(maxsize=1)
def get_event_mirror() -> Optional[MongoEventMirror]:
    if not settings.MONGODB_URI:
        return None
    return MongoEventMirror(settings.MONGODB_URI, db_name=settings.MONGODB_DBNAME)


@lru_cache(maxsize=1)
def get_session_manager() -> SessionManager:
    return SessionManager(store=get_event_store(), config=settings, mirror=get_event_mirror())
