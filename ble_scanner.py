# Author: Omi Shrestha

"""
BLE Scanner
Finds the moisture sensor (or, unfiltered, any peripheral) and hands it to the
ConnectionManager. Browse mode only collects devices so the user can pick one.
Each mode keeps its own flag; running several at once is up to the caller to avoid.
"""

from concurrent.futures import Future
from typing import Dict, List, Optional

from ble_device import DeviceHandle
from ble_utils import advertises


class Scanner:

    def __init__(self, transport, runner, gate, manager, log, service_uuid: str):
        self._transport = transport
        self._runner = runner
        self._gate = gate
        self._manager = manager
        self._log = log
        self.service_uuid = service_uuid
        self.filtered_active = False
        self.unfiltered_active = False
        self.browse_active = False
        self._discovered: Dict[str, DeviceHandle] = {}  # lower-cased address -> device, in discovery order

    @property
    def scanning(self) -> bool:
        return self.filtered_active or self.unfiltered_active or self.browse_active

    def _permitted(self, action: str) -> bool:
        if self._gate.is_granted():
            return True
        self._log.append(f"Missing BLE permissions, cannot {action}")
        return False

    # ------------------------------------------------------------------
    # Filtered scan
    # ------------------------------------------------------------------

    def start_scan(self) -> Future:
        return self._runner.submit(self.start_scan_async())

    async def start_scan_async(self):
        if not self._permitted("start scan"):
            return
        if self.filtered_active:
            self._log.append("Scan already running")
            return
        self.filtered_active = True
        self._log.append(f"Starting scan for service {self.service_uuid}")
        try:
            await self._transport.start_scan(self._on_scan_result, [self.service_uuid])
        except Exception as e:
            self.filtered_active = False
            self._log.append(f"startScan failed: {e!r}")

    def _on_scan_result(self, device: DeviceHandle, service_uuids: List[str]) -> Optional[Future]:
        # Platform filters are not exact on every backend
        if not advertises(service_uuids, self.service_uuid):
            return None
        self._log.append(f"Discovered matching device {device.label} advertising service")
        return self._runner.submit(self._stop_and_connect(device))

    # ------------------------------------------------------------------
    # Unfiltered scan
    # ------------------------------------------------------------------

    def start_scan_unfiltered(self) -> Future:
        return self._runner.submit(self.start_scan_unfiltered_async())

    async def start_scan_unfiltered_async(self):
        if not self._permitted("start scanAny"):
            return
        if self.unfiltered_active:
            self._log.append("Scan (any) already running")
            return
        self.unfiltered_active = True
        self._log.append("Starting scan for any device")
        try:
            await self._transport.start_scan(self._on_any_scan_result, None)
        except Exception as e:
            self.unfiltered_active = False
            self._log.append(f"startScanAny failed: {e!r}")

    def _on_any_scan_result(self, device: DeviceHandle, service_uuids: List[str]) -> Optional[Future]:
        # Only the first device of a run is used
        if not self.unfiltered_active:
            return None
        self.unfiltered_active = False
        self._log.append(f"Discovered device (any) {device.label}")
        return self._runner.submit(self._stop_and_connect(device))

    # ------------------------------------------------------------------
    # Browse: collect devices, connect to the one picked later
    # ------------------------------------------------------------------

    def start_browse(self) -> Future:
        return self._runner.submit(self.start_browse_async())

    async def start_browse_async(self):
        if not self._permitted("start browse"):
            return
        if self.browse_active:
            self._log.append("Browse already running")
            return
        self._discovered.clear()
        self.browse_active = True
        self._log.append("Starting device browse")
        try:
            await self._transport.start_scan(self._on_browse_result, None)
        except Exception as e:
            self.browse_active = False
            self._log.append(f"startBrowse failed: {e!r}")

    def _on_browse_result(self, device: DeviceHandle, service_uuids: List[str]):
        if not self.browse_active:
            return
        key = device.address.lower()
        if key in self._discovered:
            return
        self._discovered[key] = device
        self._log.append(f"Listed device {len(self._discovered) - 1}: {device.label}")

    def discovered_devices(self) -> List[DeviceHandle]:
        """Devices seen by the last browse, in discovery order"""
        return list(self._discovered.values())

    def find_discovered(self, index: Optional[int] = None, address: Optional[str] = None) -> Optional[DeviceHandle]:
        devices = self.discovered_devices()
        if index is not None:
            return devices[index] if 0 <= index < len(devices) else None
        if address is not None:
            return self._discovered.get(address.strip().lower())
        return None

    def connect_discovered(self, device: DeviceHandle) -> Future:
        """Stop any scan, then connect to a device picked from the browse list."""
        return self._runner.submit(self.connect_discovered_async(device))

    async def connect_discovered_async(self, device: DeviceHandle):
        if not self._permitted("connect"):
            return
        self._log.append(f"Selected device {device.label}")
        await self._stop_and_connect(device)

    # ------------------------------------------------------------------
    # Stop
    # ------------------------------------------------------------------

    def stop_scan(self) -> Future:
        return self._runner.submit(self.stop_scan_async())

    async def stop_scan_async(self):
        if not self._permitted("stop scan"):
            return
        try:
            await self._transport.stop_scan()
        except Exception as e:
            # Flags stay set: the scan may still be running
            self._log.append(f"stopScan failed: {e!r}")
            return
        self.filtered_active = False
        self.unfiltered_active = False
        self.browse_active = False
        self._log.append("Stopped scan")

    async def _stop_and_connect(self, device: DeviceHandle):
        await self.stop_scan_async()
        await self._manager.connect_async(device)
