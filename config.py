import os

from ble_utils import MOISTURE_CHAR_UUID, SERVICE_UUID


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Must match the peripheral firmware
    SERVICE_UUID = os.environ.get("SMARTPLANT_SERVICE_UUID", SERVICE_UUID)
    CHAR_UUID = os.environ.get("SMARTPLANT_CHAR_UUID", MOISTURE_CHAR_UUID)

    LOG_CAPACITY = int(os.environ.get("SMARTPLANT_LOG_CAPACITY", "200"))

    # Seconds
    CONNECT_TIMEOUT = float(os.environ.get("SMARTPLANT_CONNECT_TIMEOUT", "10.0"))
    LOOKUP_TIMEOUT = float(os.environ.get("SMARTPLANT_LOOKUP_TIMEOUT", "5.0"))

    # Stand-in for the platform permission prompt
    PERMISSIONS_GRANTED = _env_bool("SMARTPLANT_PERMISSIONS_GRANTED", True)

    HOST = os.environ.get("SMARTPLANT_HOST", "0.0.0.0")
    PORT = int(os.environ.get("SMARTPLANT_PORT", "5000"))
