# Author: Omi Shrestha

import logging

from config import Config
from moisture_service import MoistureService

HELP = """
Commands:
  - 'scan' to scan for the moisture sensor and connect
  - 'scanany' to connect to the first device found (no service filter)
  - 'browse' to list nearby devices without connecting
  - 'devices' to show the devices found by 'browse'
  - 'stop' to stop scanning
  - 'connect <number|address>' to connect to a listed device or a known address
  - 'disconnect' to drop the connection
  - 'data' to view the latest reading
  - 'logs' to view the diagnostic log
  - 'clear' to clear the diagnostic log
  - 'quit' to exit
"""


def print_reading(reading):
    print(f"[BLE] Reading: {reading.percentage}% ts={reading.timestamp or '-'} status={reading.sensor_status}")


def print_devices(devices):
    print(f"\n[BLE] {len(devices)} device(s) listed")
    for idx, device in enumerate(devices):
        print(f"  {idx}. {device.name or 'Unknown'} - {device.address}")
    print()


def connect(service, target):
    """Connect to a listed device by number, or to any address"""
    if not target:
        print("Usage: connect <number|address>")
        return
    if target.isdigit():
        device = service.scanner.find_discovered(index=int(target))
        if device is None:
            print(f"No listed device {target}, run 'browse' then 'devices'")
            return
        service.scanner.connect_discovered(device)
        return
    device = service.scanner.find_discovered(address=target)
    if device is not None:
        service.scanner.connect_discovered(device)
    else:
        service.manager.connect_by_address(target)


def main():
    """Main application entry point."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    service = MoistureService(Config).start()
    service.store.subscribe(print_reading)

    print("=" * 50)
    print("SMARTPLANT MOISTURE RECEIVER")
    print(f"Service: {Config.SERVICE_UUID}")
    print(f"Characteristic: {Config.CHAR_UUID}")
    print("=" * 50)
    print(HELP)

    try:
        while True:
            try:
                line = input("Enter command: ").strip()
            except (EOFError, KeyboardInterrupt):
                print("\nExiting...")
                break

            command, _, arg = line.partition(" ")
            command = command.lower()

            if command == 'quit':
                break
            elif command == 'scan':
                service.scanner.start_scan()
            elif command == 'scanany':
                service.scanner.start_scan_unfiltered()
            elif command == 'stop':
                service.scanner.stop_scan()
            elif command == 'browse':
                service.scanner.start_browse()
            elif command == 'devices':
                print_devices(service.scanner.discovered_devices())
            elif command == 'connect':
                connect(service, arg.strip())
            elif command == 'disconnect':
                service.manager.disconnect()
            elif command == 'data':
                status = service.status()
                print(f"\n[DEVICE DATA] state={status['state']}")
                print_reading(service.store.value)
                if status['category']:
                    print(f"  Category: {status['category']} ({status['advice']})")
                print()
            elif command == 'logs':
                print("\n[LOG]")
                entries = service.log.entries(limit=20)
                if entries:
                    for entry in entries:
                        print(f"  {entry}")
                else:
                    print("  No log entries yet")
                print()
            elif command == 'clear':
                service.log.clear()
                print("[LOG] cleared")
            elif command:
                print(f"Unknown command: {command}")
                print(HELP)
    finally:
        service.shutdown()


if __name__ == "__main__":
    main()
