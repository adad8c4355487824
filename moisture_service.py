"""
Moisture Service
Process-scoped owner of the BLE loop, the log, the latest reading, the scanner
and the connection manager. Construct once at startup, call start(), pass it to
the display layer, and shutdown() on exit.
"""

import threading

from ble_manager import ConnectionManager
from ble_scanner import Scanner
from ble_utils import BleakTransport
from config import Config
from diagnostic_log import DiagnosticLog
from loop_runner import LoopRunner
from moisture_models import DISCONNECTED_READING, UNKNOWN_READING, classify
from notification_handler import NotificationParser
from permission_gate import StaticPermissionGate
from reading_store import ReadingStore


class MoistureService:

    def __init__(self, config=Config, transport=None, gate=None):
        self.config = config
        # One lock for both observables: log and reading updates are totally ordered
        self._writer_lock = threading.RLock()
        self.log = DiagnosticLog(config.LOG_CAPACITY, lock=self._writer_lock)
        self.store = ReadingStore(lock=self._writer_lock)
        self.parser = NotificationParser(self.log, self.store)

        self.runner = LoopRunner()
        self.gate = gate or StaticPermissionGate(config.PERMISSIONS_GRANTED)
        self.transport = transport or BleakTransport(config.CONNECT_TIMEOUT, config.LOOKUP_TIMEOUT)

        self.manager = ConnectionManager(
            self.transport, self.runner, self.gate, self.parser, self.log, self.store,
            config.SERVICE_UUID, config.CHAR_UUID,
        )
        self.scanner = Scanner(
            self.transport, self.runner, self.gate, self.manager, self.log, config.SERVICE_UUID,
        )

    def start(self):
        self.runner.start()
        return self

    def shutdown(self, timeout: float = 10.0):
        """Stop scanning, drop the connection and stop the loop."""
        if not self.runner.running:
            return
        try:
            self.runner.run(self._close(), timeout=timeout)
        finally:
            self.runner.stop()

    async def _close(self):
        if self.scanner.scanning:
            await self.scanner.stop_scan_async()
        if self.manager.state.active:
            await self.manager.disconnect_async()

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()

    def status(self) -> dict:
        """Snapshot for display layers"""
        reading = self.store.value
        device = self.manager.current_device
        category = None
        if reading not in (UNKNOWN_READING, DISCONNECTED_READING):
            category = classify(reading.percentage)
        return {
            "state": self.manager.state.value,
            "device": {"address": device.address, "name": device.name} if device else None,
            "scanning": self.scanner.scanning,
            "reading": reading.to_dict(),
            "category": category.value if category else None,
            "advice": category.advice if category else None,
        }
