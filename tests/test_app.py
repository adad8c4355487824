import json

import pytest

from app import create_app
from fakes import DEVICE_A, DEVICE_B, SERVICE, FakeConfig, on_loop, wait_for
from gatt_session import SessionState


@pytest.fixture
def client(service):
    app = create_app(service, FakeConfig)
    app.config["TESTING"] = True
    return app.test_client()


def test_home(client):
    body = client.get("/").get_json()
    assert body["service_uuid"] == SERVICE
    assert "/ble/scan" in body["endpoints"]


def test_reading_defaults(client):
    body = client.get("/ble/reading").get_json()
    assert body["state"] == "idle"
    assert body["device"] is None
    assert body["reading"] == {"percentage": 0, "timestamp": "", "sensor_status": "unknown"}
    assert body["category"] is None


def test_connect_requires_address(client):
    assert client.post("/ble/connect", json={}).status_code == 400
    assert client.post("/ble/connect", data="garbage").status_code == 400


def test_connect_and_read(client, service, transport):
    response = client.post("/ble/connect", json={"address": DEVICE_A.address})
    assert response.status_code == 202
    assert wait_for(lambda: service.manager.state is SessionState.NOTIFY_ENABLED)

    payload = json.dumps({"moisture_percentage": 15, "timestamp": "T", "sensor_status": "active"}).encode()
    on_loop(service.runner, transport.links[0].notify, payload)

    body = client.get("/ble/reading").get_json()
    assert body["state"] == "notify_enabled"
    assert body["device"] == {"address": DEVICE_A.address, "name": DEVICE_A.name}
    assert body["reading"]["percentage"] == 15
    assert body["category"] == "critical"
    assert body["advice"] == "Water now"


def test_disconnect(client, service):
    client.post("/ble/connect", json={"address": DEVICE_A.address})
    assert wait_for(lambda: service.manager.state is SessionState.NOTIFY_ENABLED)

    assert client.post("/ble/disconnect").status_code == 202
    assert wait_for(lambda: service.manager.state is SessionState.DISCONNECTED)
    assert client.get("/ble/reading").get_json()["reading"]["sensor_status"] == "disconnected"


def test_scan_endpoints(client, service, transport):
    assert client.post("/ble/scan").status_code == 202
    assert wait_for(lambda: service.scanner.filtered_active)
    assert client.post("/ble/scan/stop").status_code == 202
    assert wait_for(lambda: not service.scanner.scanning)
    assert client.post("/ble/scan/any").status_code == 202
    assert wait_for(lambda: service.scanner.unfiltered_active)


def test_logs_and_clear(client, service):
    for i in range(3):
        service.log.append(f"entry {i}")

    body = client.get("/ble/logs?limit=2").get_json()
    assert body["capacity"] == 200
    assert [e["message"] for e in body["logs"]] == ["entry 1", "entry 2"]

    assert client.get("/ble/logs?limit=-1").status_code == 400

    assert client.delete("/ble/logs").status_code == 200
    assert client.get("/ble/logs").get_json()["count"] == 0


def browse(client, service, transport, *devices):
    assert client.post("/ble/scan/browse").status_code == 202
    assert wait_for(lambda: service.scanner.browse_active)
    for device in devices:
        on_loop(service.runner, transport.scan_callback, device, [])


def test_devices_lists_browse_results(client, service, transport):
    browse(client, service, transport, DEVICE_A, DEVICE_B, DEVICE_A)

    body = client.get("/ble/devices").get_json()
    assert body["browsing"] is True
    assert body["count"] == 2
    assert body["devices"] == [
        {"index": 0, "address": DEVICE_A.address, "name": DEVICE_A.name},
        {"index": 1, "address": DEVICE_B.address, "name": DEVICE_B.name},
    ]


def test_connect_by_index(client, service, transport):
    transport.lookup_error = RuntimeError("lookup must not happen")
    browse(client, service, transport, DEVICE_B, DEVICE_A)

    response = client.post("/ble/connect", json={"index": 1})
    assert response.status_code == 202
    assert response.get_json()["address"] == DEVICE_A.address
    assert wait_for(lambda: service.manager.state is SessionState.NOTIFY_ENABLED)
    assert service.manager.current_device == DEVICE_A
    assert transport.count("find_device") == 0
    assert not service.scanner.scanning


def test_connect_listed_address_skips_lookup(client, service, transport):
    transport.lookup_error = RuntimeError("lookup must not happen")
    browse(client, service, transport, DEVICE_A)

    response = client.post("/ble/connect", json={"address": DEVICE_A.address.lower()})
    assert response.status_code == 202
    assert wait_for(lambda: service.manager.state is SessionState.NOTIFY_ENABLED)
    assert transport.count("find_device") == 0


@pytest.mark.parametrize("body, status", [
    ({"index": 0}, 404),
    ({"index": "0"}, 400),
    ({"index": True}, 400),
    ({"address": 7}, 400),
])
def test_connect_rejects_bad_selection(client, body, status):
    assert client.post("/ble/connect", json=body).status_code == status


def test_create_app_needs_a_service():
    with pytest.raises(TypeError):
        create_app()
