# Author: Omi Shrestha

"""
BLE Manager
Owns the single GATT session and the transport link behind it.
Connect and disconnect requests run one at a time on the BLE event loop.
"""

import asyncio
from concurrent.futures import Future
from typing import Optional

from ble_device import DeviceHandle
from gatt_session import GattSession, SessionState


class ConnectionManager:
    """
    At most one session is owned at a time; replacing it always goes
    through teardown first.

    Public methods are fire-and-forget: they return a Future that callers
    may ignore, outcomes surface through the log and the reading store.
    """

    def __init__(self, transport, runner, gate, parser, log, store,
                 service_uuid: str, characteristic_uuid: str):
        self._transport = transport
        self._runner = runner
        self._gate = gate
        self._parser = parser
        self._log = log
        self._store = store
        self.service_uuid = service_uuid
        self.characteristic_uuid = characteristic_uuid
        self._session: Optional[GattSession] = None
        self._lock: Optional[asyncio.Lock] = None

    @property
    def session(self) -> Optional[GattSession]:
        return self._session

    @property
    def state(self) -> SessionState:
        if self._session is None:
            return SessionState.IDLE
        return self._session.state

    @property
    def current_device(self) -> Optional[DeviceHandle]:
        if self._session is None or not self._session.active:
            return None
        return self._session.device

    def _permitted(self, action: str) -> bool:
        if self._gate.is_granted():
            return True
        self._log.append(f"Missing BLE permissions, cannot {action}")
        return False

    def _get_lock(self) -> asyncio.Lock:
        # Created on first use so it belongs to the BLE loop
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    # ------------------------------------------------------------------
    # Connect
    # ------------------------------------------------------------------

    def connect(self, device: DeviceHandle) -> Future:
        return self._runner.submit(self.connect_async(device))

    async def connect_async(self, device: DeviceHandle):
        """Tear down any live session, then start a new one for device."""
        if not self._permitted("connect"):
            return

        async with self._get_lock():
            current = self._session
            if (current is not None and current.device == device
                    and current.state is SessionState.CONNECTING and current.connect_pending):
                self._log.append(f"Already connecting to {device.address}, ignoring duplicate request")
                return
            if current is not None and current.active:
                self._log.append(f"Closing session #{current.session_id} before connecting to {device.address}")
                await self._teardown(current)

            session = GattSession(
                device, self._transport, self._parser, self._log, self._store,
                self.service_uuid, self.characteristic_uuid,
            )
            self._session = session
            session.begin()

        # Outside the lock so that disconnect() can interrupt a slow connect
        await session.open()

    def connect_by_address(self, address: str) -> Future:
        return self._runner.submit(self.connect_by_address_async(address))

    async def connect_by_address_async(self, address: str):
        if not self._permitted("connectByAddress"):
            return
        address = (address or "").strip()
        if not address:
            self._log.append("connectByAddress: empty address")
            return

        self._log.append(f"Looking up device {address}")
        try:
            device = await self._transport.find_device(address)
        except Exception as e:
            self._log.append(f"connectByAddress {address} failed: {e!r}")
            return
        if device is None:
            self._log.append(f"connectByAddress: device {address} not found")
            return
        await self.connect_async(device)

    # ------------------------------------------------------------------
    # Disconnect
    # ------------------------------------------------------------------

    def disconnect(self) -> Future:
        return self._runner.submit(self.disconnect_async())

    async def disconnect_async(self):
        if not self._permitted("disconnect"):
            return
        async with self._get_lock():
            session = self._session
            if session is None or not session.active:
                self._log.append("disconnect: no active session")
                return
            await self._teardown(session)

    async def _teardown(self, session: GattSession):
        await session.close()
        self._store.reset_disconnected()
        self._log.append(f"Disconnected from {session.device.address} (session #{session.session_id})")
