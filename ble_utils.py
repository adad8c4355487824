# Author: Omi Shrestha

from typing import Callable, Dict, Iterable, Optional, Set

from bleak import BleakClient, BleakScanner

from ble_device import DeviceHandle


# Moisture sensor UUIDs (replace to match your hardware, or set them in config)
SERVICE_UUID = "0000feed-0000-1000-8000-00805f9b34fb"        # Moisture service
MOISTURE_CHAR_UUID = "0000beef-0000-1000-8000-00805f9b34fb"  # Moisture characteristic (notify)

# Client Characteristic Configuration Descriptor
CCCD_UUID = "00002902-0000-1000-8000-00805f9b34fb"
ENABLE_NOTIFICATION_VALUE = b"\x01\x00"


def normalize_uuid(uuid: str) -> str:
    return str(uuid).lower()


def advertises(service_uuids: Iterable[str], service_uuid: str) -> bool:
    """True if the advertised service list contains service_uuid"""
    wanted = normalize_uuid(service_uuid)
    return any(normalize_uuid(u) == wanted for u in service_uuids or ())


class BleakLink:
    """
    One GATT connection to a peripheral.
    on_disconnected(status) is invoked when the peripheral drops the link.
    """

    def __init__(self, device: DeviceHandle, on_disconnected: Callable, timeout: float = 10.0):
        self.device = device
        self._on_disconnected = on_disconnected
        self.client = BleakClient(
            device.native or device.address,
            disconnected_callback=self._handle_disconnect,
            timeout=timeout,
        )

    def _handle_disconnect(self, client):
        # bleak reports no status code on disconnect
        self._on_disconnected(None)

    async def connect(self):
        await self.client.connect()

    async def discover_services(self) -> Dict[str, Set[str]]:
        """
        Returns {service uuid: {characteristic uuids}}.
        bleak resolves services while connecting, so this reads the cached collection.
        """
        return {
            normalize_uuid(service.uuid): {normalize_uuid(char.uuid) for char in service.characteristics}
            for service in self.client.services
        }

    async def start_notify(self, char_uuid: str, callback: Callable[[bytes], None]):
        # start_notify writes ENABLE_NOTIFICATION_VALUE to the CCCD of the characteristic
        def notify_handler(sender, data: bytearray):
            callback(bytes(data))

        await self.client.start_notify(char_uuid, notify_handler)

    async def close(self):
        if self.client.is_connected:
            await self.client.disconnect()


class BleakTransport:
    """bleak backed scanning, lookup and connection factory"""

    def __init__(self, connect_timeout: float = 10.0, lookup_timeout: float = 5.0):
        self.connect_timeout = connect_timeout
        self.lookup_timeout = lookup_timeout
        self._scanner: Optional[BleakScanner] = None

    async def start_scan(self, on_result: Callable, service_uuids: Optional[list] = None):
        """
        Start scanning in the background.

        Args:
            on_result: Called as on_result(DeviceHandle, advertised service uuids)
            service_uuids: Optional platform-level service filter
        """
        await self.stop_scan()

        def detection_callback(device, adv_data):
            on_result(DeviceHandle(device.address, device.name, device), list(adv_data.service_uuids))

        self._scanner = BleakScanner(detection_callback=detection_callback, service_uuids=service_uuids)
        await self._scanner.start()

    async def stop_scan(self):
        scanner, self._scanner = self._scanner, None
        if scanner is not None:
            await scanner.stop()

    async def find_device(self, address: str) -> Optional[DeviceHandle]:
        device = await BleakScanner.find_device_by_address(address, timeout=self.lookup_timeout)
        if device is None:
            return None
        return DeviceHandle(device.address, device.name, device)

    def create_link(self, device: DeviceHandle, on_disconnected: Callable) -> BleakLink:
        return BleakLink(device, on_disconnected, timeout=self.connect_timeout)
