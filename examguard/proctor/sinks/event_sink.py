"""
Event Sinks - Best-effort forwarding of session events

The engine commits every event to the session before handing it to a
sink. Sinks never raise into the tick loop: failures are logged and the
event is dropped, with no retry.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set

import httpx

from .event_mirror import MongoEventMirror
from .event_store import EventLogStore

logger = logging.getLogger(__name__)


class FireAndForget:
    """Schedules coroutines on the running loop without awaiting them"""

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def _spawn(self, factory: Callable[[], Awaitable[Any]], what: str) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(f"No running event loop, {what} not sent")
            return None

        task = loop.create_task(factory())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def flush(self):
        """Wait for in-flight sends (used at shutdown and in tests)"""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class EventSink(FireAndForget):
    """Base sink: accepts JSON-ready event dicts"""

    def submit(self, entry: Dict[str, Any]):
        raise NotImplementedError

    async def aclose(self):
        await self.flush()


class NullEventSink(EventSink):
    """Discards everything"""

    def submit(self, entry: Dict[str, Any]):
        pass


class LocalEventSink(EventSink):
    """
    Appends events into an in-process EventLogStore (and its MongoDB mirror).

    On a running loop each append is scheduled like an HTTP send: the disk
    write runs in a worker thread, and appends are serialized in submit
    order. Without a loop (scripts, sync callers) the append is immediate.
    """

    def __init__(self, store: EventLogStore, mirror: Optional[MongoEventMirror] = None):
        super().__init__()
        self.store = store
        self.mirror = mirror
        self._write_lock: Optional[asyncio.Lock] = None

    def submit(self, entry: Dict[str, Any]):
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self._append(entry)
            return

        if self._write_lock is None:
            self._write_lock = asyncio.Lock()
        self._spawn(lambda: self._write(entry), f"event {entry.get('type')}")

    def _append(self, entry: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            return self.store.append(entry)
        except Exception as e:
            logger.warning(f"Local event log append failed: {e}")
            return None

    async def _write(self, entry: Dict[str, Any]):
        async with self._write_lock:
            stored = await asyncio.to_thread(self._append, entry)
        if stored is not None and self.mirror is not None:
            await self.mirror.insert(stored)


class HttpEventSink(EventSink):
    """
    POSTs each event as JSON to an event-log endpoint.

    Each submit schedules its own request on the running loop and
    returns immediately.
    """

    def __init__(self, url: str, timeout: float = 5.0, client: Optional[httpx.AsyncClient] = None):
        super().__init__()
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    def submit(self, entry: Dict[str, Any]):
        self._spawn(lambda: self._post(entry), f"event {entry.get('type')}")

    async def _post(self, entry: Dict[str, Any]):
        try:
            response = await self._client.post(self.url, json=entry)
            if response.status_code >= 400:
                logger.warning(f"Event sink rejected {entry.get('type')}: {response.status_code}")
        except Exception as e:
            logger.warning(f"Event sink unreachable ({self.url}): {e}")

    async def aclose(self):
        await self.flush()
        if self._owns_client:
            await self._client.aclose()
