"""
Event Log Store - In-memory event log with JSON file persistence

Backs the /api/log endpoints. Entries are kept in arrival order and the
whole log is rewritten to disk after every append, so callers on the event
loop hand appends to a worker thread.
"""

import csv
import io
import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class EventLogStore:
    """Append-only log of event entries"""

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self._entries: List[Dict[str, Any]] = []
        self._lock = threading.Lock()
        self.load()

    def __len__(self) -> int:
        return len(self._entries)

    def load(self):
        """Load entries from disk, starting empty if the file is missing or invalid"""
        if self.path is None or not self.path.exists():
            return

        try:
            data = json.loads(self.path.read_text(encoding="utf-8") or "[]")
            self._entries = data if isinstance(data, list) else []
            logger.info(f"Loaded {len(self._entries)} log entries from {self.path}")
        except (OSError, ValueError) as e:
            logger.error(f"Failed to read logs file {self.path}: {e}")
            self._entries = []

    def _persist(self):
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self._entries, indent=2), encoding="utf-8")
        except OSError as e:
            logger.error(f"Error writing logs file {self.path}: {e}")

    def append(self, entry: Dict[str, Any]) -> Dict[str, Any]:
        """Stamp `received_at` and store a copy of the entry"""
        stored = dict(entry)
        stored["received_at"] = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
        with self._lock:
            self._entries.append(stored)
            self._persist()
        return stored

    def recent(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Last `limit` entries, oldest first"""
        return self._entries[-limit:] if limit > 0 else []

    def all(self) -> List[Dict[str, Any]]:
        return list(self._entries)

    def to_csv(self) -> str:
        """Timestamp, event type and JSON detail per entry"""
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\r\n")
        writer.writerow(["Timestamp", "Event", "Detail"])
        for entry in self._entries:
            writer.writerow([
                entry.get("timestamp") or entry.get("received_at") or "",
                entry.get("type") or "",
                json.dumps(entry.get("detail", entry))
            ])
        return buffer.getvalue()
