"""
Minimal subscriber registry shared by the log and the reading store
"""

import logging
import threading
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


class Observable:
    """
    Holds subscribers and publishes values to them.

    Mutations and publication happen under one re-entrant lock. Passing the
    same lock to several observables gives them a single, totally ordered
    writer path.
    """

    def __init__(self, lock: Optional[threading.RLock] = None):
        self._lock = lock or threading.RLock()
        self._subscribers: List[Callable] = []

    def subscribe(self, callback: Callable) -> Callable[[], None]:
        """Register callback; returns a function that removes it again."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def _publish(self, value):
        # Caller holds self._lock
        for callback in list(self._subscribers):
            try:
                callback(value)
            except Exception:
                logger.exception("Subscriber %r failed", callback)
