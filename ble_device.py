# Author: Omi Shrestha

from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass(frozen=True)
class DeviceHandle:
    """Represents a discovered BLE peripheral. Identity is the address."""

    address: str                                                 # Transport identifier (MAC / UUID)
    name: Optional[str] = field(default=None, compare=False)     # Advertised name, if any
    native: Any = field(default=None, compare=False, repr=False)  # Backend device object

    @property
    def label(self):
        return f"{self.address} ({self.name})"
