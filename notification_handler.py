# Author: Omi Shrestha

import json
import math
import re
from dataclasses import dataclass
from typing import Optional

from moisture_models import Reading, in_range

# Value used when moisture_percentage is missing or not a number
MISSING_PERCENTAGE = -1

_NUMERIC = re.compile(r"\s*[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?\s*", re.ASCII)
_INTEGER = re.compile(r"[+-]?\d+", re.ASCII)


@dataclass(frozen=True)
class MoisturePayload:
    """
    Typed view of the JSON object sent by the sensor.

    moisture_percentage: int, -1 when absent or not numeric
    timestamp:           str, "" when absent
    sensor_status:       str, "" when absent
    """
    moisture_percentage: int
    timestamp: str
    sensor_status: str

    @classmethod
    def from_json(cls, text: str) -> "MoisturePayload":
        """Raises ValueError when text is not a JSON object."""
        obj = json.loads(text)
        if not isinstance(obj, dict):
            raise ValueError(f"expected a JSON object, got {type(obj).__name__}")
        return cls(
            moisture_percentage=_as_int(obj.get("moisture_percentage")),
            timestamp=_as_str(obj.get("timestamp")),
            sensor_status=_as_str(obj.get("sensor_status")),
        )

    def to_reading(self) -> Reading:
        return Reading(self.moisture_percentage, self.timestamp, self.sensor_status)


def _as_int(value) -> int:
    # bool is an int subclass but never a valid percentage
    if isinstance(value, bool) or value is None:
        return MISSING_PERCENTAGE
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else MISSING_PERCENTAGE
    if isinstance(value, str):
        # ASCII digits only; int() and float() would also take "4_5" or Arabic-Indic digits
        if not _NUMERIC.fullmatch(value):
            return MISSING_PERCENTAGE
        text = value.strip()
        if _INTEGER.fullmatch(text):
            return int(text)
        number = float(text)
        return int(number) if math.isfinite(number) else MISSING_PERCENTAGE
    return MISSING_PERCENTAGE


def _as_str(value) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value)


class NotificationParser:
    """
    Decodes notification payloads into readings.
    Every failure ends as a log entry; the store only changes on a valid reading.
    """

    def __init__(self, log, store):
        self.log = log
        self.store = store

    def handle_notify(self, data: bytes) -> Optional[Reading]:
        """
        Handle one notification payload.

        Args:
            data: Raw notification value

        Returns:
            The accepted Reading, or None when the payload was discarded
        """
        try:
            text = bytes(data).decode("utf-8")
        except UnicodeDecodeError:
            self.log.append(f"Discarded non UTF-8 payload: {bytes(data).hex()}")
            return None

        self.log.append(f"Received characteristic: {text}")

        try:
            payload = MoisturePayload.from_json(text)
        except ValueError as e:
            # json.JSONDecodeError is a ValueError too
            self.log.append(f"JSON parse error: {e}")
            return None

        self.log.append(
            f"Parsed JSON -> percent={payload.moisture_percentage} "
            f"ts={payload.timestamp} status={payload.sensor_status}"
        )

        if not in_range(payload.moisture_percentage):
            self.log.append(f"Rejected reading: moisture_percentage={payload.moisture_percentage} out of range")
            return None

        reading = payload.to_reading()
        self.store.set(reading)
        return reading
