"""
GATT Session
Lifecycle of one peripheral connection:
    IDLE -> CONNECTING -> CONNECTED -> NOTIFY_ENABLED -> DISCONNECTED

A session is never reused; DISCONNECTED is terminal. Transport failures are
logged verbatim and leave the session where it is. Nothing is retried.
"""

import itertools
from enum import Enum

from ble_device import DeviceHandle
from ble_utils import CCCD_UUID, ENABLE_NOTIFICATION_VALUE, normalize_uuid

_session_ids = itertools.count(1)


class SessionState(Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    NOTIFY_ENABLED = "notify_enabled"
    DISCONNECTED = "disconnected"

    @property
    def active(self) -> bool:
        return self not in (SessionState.IDLE, SessionState.DISCONNECTED)


class GattSession:
    """
    Drives one connection from connect request to notifications.

    Transport events arrive through the on_* methods; the link created by
    transport.create_link reports peripheral disconnects to on_disconnected.
    """

    def __init__(self, device: DeviceHandle, transport, parser, log, store,
                 service_uuid: str, characteristic_uuid: str):
        self.session_id = next(_session_ids)
        self.device = device
        self.service_uuid = normalize_uuid(service_uuid)
        self.characteristic_uuid = normalize_uuid(characteristic_uuid)
        self.state = SessionState.IDLE
        self.connect_pending = False  # True while the connect attempt is in flight
        self._transport = transport
        self._parser = parser
        self._log = log
        self._store = store
        self._link = None
        self._subscribing = False

    def __repr__(self):
        return f"<GattSession #{self.session_id} {self.device.address} {self.state.value}>"

    @property
    def active(self) -> bool:
        return self.state.active

    def begin(self):
        """IDLE -> CONNECTING. Creates the transport link."""
        if self.state is not SessionState.IDLE:
            self._log.append(f"Session #{self.session_id} already started ({self.state.value})")
            return
        self.state = SessionState.CONNECTING
        self.connect_pending = True
        self._log.append(f"Connecting to {self.device.label}")
        try:
            self._link = self._transport.create_link(self.device, self.on_disconnected)
        except Exception as e:
            self.connect_pending = False
            self._log.append(f"connectGatt failed: {e!r}")

    async def open(self):
        """Run the connect attempt started by begin() and everything after it."""
        link = self._link
        if self.state is not SessionState.CONNECTING or link is None:
            return
        try:
            await link.connect()
        except Exception as e:
            self._log.append(f"connect failed for {self.device.address}: {e!r}")
            return
        finally:
            self.connect_pending = False

        if self.state is SessionState.DISCONNECTED:
            # Closed while the connect was in flight
            self._log.append(f"Session #{self.session_id} closed during connect, releasing link")
            await self._close_link(link)
            return
        if self.state is SessionState.CONNECTING:
            await self.on_connected()

    async def on_connected(self):
        """CONNECTING -> CONNECTED, then discover services."""
        self.state = SessionState.CONNECTED
        self._log.append("Connected to GATT, discovering services")
        try:
            services = await self._link.discover_services()
        except Exception as e:
            self._log.append(f"Service discovery failed: {e!r}")
            return
        await self.on_services_discovered(services)

    async def on_services_discovered(self, services):
        """
        Args:
            services: {service uuid: {characteristic uuids}}
        """
        if self.state is not SessionState.CONNECTED:
            return
        self._log.append(f"onServicesDiscovered services={len(services)}")

        characteristics = None
        for uuid, chars in services.items():
            if normalize_uuid(uuid) == self.service_uuid:
                characteristics = {normalize_uuid(c) for c in chars}
                break
        if characteristics is None:
            self._log.append(f"Service {self.service_uuid} not found on {self.device.address}")
            return
        if self.characteristic_uuid not in characteristics:
            self._log.append(f"Characteristic {self.characteristic_uuid} not found in service {self.service_uuid}")
            return

        self._subscribing = True
        try:
            await self._link.start_notify(self.characteristic_uuid, self.on_notification)
        except Exception as e:
            self._log.append(f"Enabling notifications failed: {e!r}")
            return
        finally:
            self._subscribing = False

        if self.state is not SessionState.CONNECTED:
            return
        self.state = SessionState.NOTIFY_ENABLED
        self._log.append(
            f"writeDescriptor {CCCD_UUID}={ENABLE_NOTIFICATION_VALUE.hex()} done, "
            f"notifications enabled on {self.characteristic_uuid}"
        )

    def on_notification(self, payload: bytes):
        if self.state is SessionState.NOTIFY_ENABLED or (
                self.state is SessionState.CONNECTED and self._subscribing):
            self._parser.handle_notify(payload)
            return
        self._log.append(
            f"Dropped notification for session #{self.session_id} in state {self.state.value}"
        )

    def on_disconnected(self, status=None):
        """Peripheral or stack dropped the link."""
        if not self.active:
            return
        self.state = SessionState.DISCONNECTED
        self.connect_pending = False
        self._log.append(f"Disconnected from GATT (status={status})")
        self._store.reset_disconnected()

    async def close(self):
        """Explicit teardown: any state -> DISCONNECTED, link released best-effort."""
        self.state = SessionState.DISCONNECTED
        self.connect_pending = False
        link, self._link = self._link, None
        if link is not None:
            await self._close_link(link)

    async def _close_link(self, link):
        try:
            await link.close()
        except Exception as e:
            self._log.append(f"Releasing link to {self.device.address} failed: {e!r}")
