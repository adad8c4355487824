import asyncio
import json

import pytest

from diagnostic_log import DiagnosticLog
from fakes import CHAR, DEVICE_A, SERVICE, FakeTransport, messages
from gatt_session import GattSession, SessionState
from moisture_models import DISCONNECTED_READING, Reading, UNKNOWN_READING
from notification_handler import NotificationParser
from reading_store import ReadingStore

READING = json.dumps({"moisture_percentage": 45, "timestamp": "T", "sensor_status": "active"}).encode()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def log():
    return DiagnosticLog()


@pytest.fixture
def store():
    return ReadingStore()


@pytest.fixture
def session(transport, log, store):
    return GattSession(DEVICE_A, transport, NotificationParser(log, store), log, store, SERVICE, CHAR)


def start(session):
    session.begin()
    asyncio.run(session.open())


def test_new_session_is_idle(session):
    assert session.state is SessionState.IDLE
    assert not session.active


def test_happy_path_reaches_notify_enabled(session, transport, log):
    session.begin()
    assert session.state is SessionState.CONNECTING
    assert session.connect_pending

    asyncio.run(session.open())

    assert session.state is SessionState.NOTIFY_ENABLED
    assert not session.connect_pending
    assert ("start_notify", DEVICE_A.address, CHAR) in transport.events
    assert any("00002902" in m and "0100" in m for m in messages(log))


def test_notification_is_forwarded_to_parser(session, transport, store):
    start(session)
    transport.links[0].notify(READING)
    assert store.value == Reading(45, "T", "active")


def test_uuid_matching_ignores_case(transport, log, store):
    transport.services = {SERVICE.upper(): {CHAR.upper()}}
    session = GattSession(DEVICE_A, transport, NotificationParser(log, store), log, store, SERVICE, CHAR)
    start(session)
    assert session.state is SessionState.NOTIFY_ENABLED


def test_missing_service_leaves_session_connected(session, transport, log):
    transport.services = {"0000180f-0000-1000-8000-00805f9b34fb": {"00002a19-0000-1000-8000-00805f9b34fb"}}
    start(session)
    assert session.state is SessionState.CONNECTED
    assert any("not found" in m for m in messages(log))
    assert transport.count("start_notify") == 0


def test_missing_characteristic_leaves_session_connected(session, transport, log):
    transport.services = {SERVICE: {"0000dead-0000-1000-8000-00805f9b34fb"}}
    start(session)
    assert session.state is SessionState.CONNECTED
    assert any(m.startswith(f"Characteristic {CHAR} not found") for m in messages(log))


def test_discovery_failure_is_logged(session, transport, log):
    transport.discover_error = RuntimeError("GATT error 133")
    start(session)
    assert session.state is SessionState.CONNECTED
    assert any("Service discovery failed" in m and "133" in m for m in messages(log))


def test_notify_failure_is_logged(session, transport, log):
    transport.notify_error = RuntimeError("descriptor write failed")
    start(session)
    assert session.state is SessionState.CONNECTED
    assert any("Enabling notifications failed" in m for m in messages(log))


def test_connect_failure_leaves_session_connecting(session, transport, log):
    transport.connect_error = TimeoutError("no response")
    start(session)
    assert session.state is SessionState.CONNECTING
    assert not session.connect_pending
    assert any(m.startswith("connect failed") for m in messages(log))
    assert transport.count("connect") == 1


def test_transport_disconnect_resets_reading(session, transport, store, log):
    start(session)
    transport.links[0].notify(READING)

    transport.links[0].drop(19)

    assert session.state is SessionState.DISCONNECTED
    assert store.value == DISCONNECTED_READING
    assert "Disconnected from GATT (status=19)" in messages(log)


def test_transport_disconnect_while_connecting(session, store):
    session.begin()
    session.on_disconnected(8)
    assert session.state is SessionState.DISCONNECTED
    assert store.value == DISCONNECTED_READING


def test_transport_disconnect_after_close_is_ignored(session, transport, store):
    start(session)
    asyncio.run(session.close())
    store.set(Reading(10, "T", "active"))

    transport.links[0].drop(0)

    assert store.value == Reading(10, "T", "active")


def test_notification_after_disconnect_is_dropped(session, transport, store, log):
    start(session)
    link = transport.links[0]
    link.drop(0)

    link.notify(READING)

    assert store.value == DISCONNECTED_READING
    assert any(m.startswith("Dropped notification") for m in messages(log))


def test_notification_before_subscription_is_dropped(session, store):
    session.begin()
    session.on_notification(READING)
    assert store.value == UNKNOWN_READING


def test_close_releases_link(session, transport):
    start(session)
    asyncio.run(session.close())
    assert session.state is SessionState.DISCONNECTED
    assert transport.count("close", DEVICE_A.address) == 1
    assert not transport.links[0].connected


def test_close_failure_is_logged_not_raised(session, transport, log):
    start(session)
    transport.close_error = OSError("adapter gone")
    asyncio.run(session.close())
    assert session.state is SessionState.DISCONNECTED
    assert any(m.startswith("Releasing link") for m in messages(log))


def test_close_during_connect_releases_late_link(session, transport, log):
    transport.connect_delay = 0.05

    async def scenario():
        session.begin()
        opening = asyncio.ensure_future(session.open())
        await asyncio.sleep(0)
        await session.close()
        await opening

    asyncio.run(scenario())

    assert session.state is SessionState.DISCONNECTED
    assert transport.count("close", DEVICE_A.address) == 2
    assert transport.count("start_notify") == 0
    assert any("closed during connect" in m for m in messages(log))


def test_disconnected_is_terminal(session, transport, log):
    start(session)
    asyncio.run(session.close())
    session.begin()
    asyncio.run(session.open())
    assert session.state is SessionState.DISCONNECTED
    assert transport.count("connect") == 1


def test_sessions_get_increasing_ids(transport, log, store):
    parser = NotificationParser(log, store)
    first = GattSession(DEVICE_A, transport, parser, log, store, SERVICE, CHAR)
    second = GattSession(DEVICE_A, transport, parser, log, store, SERVICE, CHAR)
    assert second.session_id > first.session_id
