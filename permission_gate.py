"""
Permission gates
Answer whether the BLE capabilities needed for scanning and connecting are granted.
Scanner and ConnectionManager ask before every operation and treat "no" as a logged no-op.
"""

from typing import Callable


class StaticPermissionGate:
    """Fixed answer, typically taken from configuration"""

    def __init__(self, granted: bool = True):
        self.granted = granted

    def is_granted(self) -> bool:
        return self.granted


class CallablePermissionGate:
    """Delegates to a zero-argument callable, e.g. a platform permission check"""

    def __init__(self, check: Callable[[], bool]):
        self._check = check

    def is_granted(self) -> bool:
        return bool(self._check())
