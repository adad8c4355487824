import pytest

from fakes import FakeTransport, FakeConfig
from moisture_service import MoistureService
from permission_gate import StaticPermissionGate


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def gate():
    return StaticPermissionGate(True)


@pytest.fixture
def service(transport, gate):
    svc = MoistureService(FakeConfig, transport=transport, gate=gate).start()
    yield svc
    svc.shutdown()
