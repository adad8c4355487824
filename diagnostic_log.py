"""
Diagnostic Log
Bounded, append-only buffer of human-readable runtime messages
"""

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Tuple

from observable import Observable

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 200


@dataclass(frozen=True)
class LogEntry:
    """A single log line"""
    timestamp: str
    message: str

    def __str__(self):
        return f"{self.timestamp} - {self.message}"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class DiagnosticLog(Observable):
    """
    Keeps only the most recent `capacity` entries, oldest evicted first.
    Subscribers receive the full ordered tuple of entries after every append or clear.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY, lock=None):
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")
        super().__init__(lock)
        self.capacity = capacity
        self._entries = deque(maxlen=capacity)

    def append(self, message: str) -> LogEntry:
        logger.debug(message)
        with self._lock:
            # Stamped under the lock so timestamps follow arrival order
            entry = LogEntry(_now(), message)
            self._entries.append(entry)
            self._publish(tuple(self._entries))
        return entry

    def clear(self):
        with self._lock:
            self._entries.clear()
            self._publish(())

    def entries(self, limit: Optional[int] = None) -> Tuple[LogEntry, ...]:
        """Snapshot of the log, optionally only the last `limit` entries."""
        with self._lock:
            snapshot = tuple(self._entries)
        if limit is not None and limit < len(snapshot):
            return snapshot[len(snapshot) - limit:]
        return snapshot

    def __len__(self):
        with self._lock:
            return len(self._entries)
