"""
Soil moisture data model
Readings decoded from the sensor and the moisture categories derived from them
"""

from dataclasses import dataclass
from enum import Enum

# Accepted percentage range (inclusive)
MIN_PERCENTAGE = 0
MAX_PERCENTAGE = 100


@dataclass(frozen=True)
class Reading:
    """A single moisture reading reported by the sensor"""
    percentage: int
    timestamp: str
    sensor_status: str

    def to_dict(self) -> dict:
        return {
            "percentage": self.percentage,
            "timestamp": self.timestamp,
            "sensor_status": self.sensor_status,
        }


# Value held before any session has produced data
UNKNOWN_READING = Reading(0, "", "unknown")

# Value written whenever a session ends
DISCONNECTED_READING = Reading(0, "", "disconnected")


class MoistureCategory(Enum):
    """Ordinal moisture classification, driest first"""
    CRITICAL = "critical"
    LOW = "low"
    OPTIMAL = "optimal"
    HIGH = "high"
    SATURATED = "saturated"

    @property
    def advice(self) -> str:
        return _ADVICE[self]


_ADVICE = {
    MoistureCategory.CRITICAL: "Water now",
    MoistureCategory.LOW: "Consider watering soon",
    MoistureCategory.OPTIMAL: "Healthy",
    MoistureCategory.HIGH: "Moist",
    MoistureCategory.SATURATED: "Over-watered",
}


def classify(percentage: int) -> MoistureCategory:
    """
    Map a moisture percentage onto its category.
    Upper bounds are inclusive: 20, 40, 70 and 90.
    """
    if percentage <= 20:
        return MoistureCategory.CRITICAL
    if percentage <= 40:
        return MoistureCategory.LOW
    if percentage <= 70:
        return MoistureCategory.OPTIMAL
    if percentage <= 90:
        return MoistureCategory.HIGH
    return MoistureCategory.SATURATED


def in_range(percentage: int) -> bool:
    return MIN_PERCENTAGE <= percentage <= MAX_PERCENTAGE
