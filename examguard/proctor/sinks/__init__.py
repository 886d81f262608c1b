"""Event sinks and persistence collaborators"""

from .event_mirror import MongoEventMirror
from .event_store import EventLogStore
from .event_sink import EventSink, HttpEventSink, LocalEventSink, NullEventSink
from .video_uploader import VideoUploader

__all__ = [
    "EventLogStore",
    "EventSink",
    "HttpEventSink",
    "LocalEventSink",
    "MongoEventMirror",
    "NullEventSink",
    "VideoUploader"
]
