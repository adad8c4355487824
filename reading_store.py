"""
Reading Store
Holds the latest moisture reading and publishes every write to subscribers
"""

from moisture_models import DISCONNECTED_READING, UNKNOWN_READING, MoistureCategory, Reading, classify
from observable import Observable


class ReadingStore(Observable):
    """Single current Reading, observable"""

    def __init__(self, lock=None):
        super().__init__(lock)
        self._value = UNKNOWN_READING

    @property
    def value(self) -> Reading:
        with self._lock:
            return self._value

    @property
    def category(self) -> MoistureCategory:
        return classify(self.value.percentage)

    def set(self, reading: Reading):
        with self._lock:
            self._value = reading
            self._publish(reading)

    def reset_disconnected(self):
        self.set(DISCONNECTED_READING)
