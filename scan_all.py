import asyncio
from bleak import BleakScanner

from ble_utils import advertises
from config import Config


async def scan_all(timeout=10.0):
    print(f"Scanning for ALL BLE devices ({timeout:.0f} seconds)...")
    found = await BleakScanner.discover(timeout=timeout, return_adv=True)

    print(f"\nFound {len(found)} devices:\n")
    for device, adv in found.values():
        marker = "  <-- moisture service" if advertises(adv.service_uuids, Config.SERVICE_UUID) else ""
        print(f"Name: {device.name or 'Unknown'}{marker}")
        print(f"Address: {device.address}")
        print(f"RSSI: {adv.rssi}")
        print("-" * 50)

if __name__ == "__main__":
    asyncio.run(scan_all())
