import pytest

from device_registry.db.session import init_db, make_engine, make_session_factory
from device_registry.services.store import DeviceStore


@pytest.fixture()
def engine(tmp_path):
    bind = make_engine(f"sqlite:///{tmp_path / 'devices.db'}")
    init_db(bind)
    yield bind
    bind.dispose()


@pytest.fixture()
def store(engine):
    return DeviceStore(session_factory=make_session_factory(engine))


@pytest.fixture()
def lamp():
    return {"id": 1, "node_id": 10, "endpoint_id": 1, "name": "Lamp", "capabilities": "{}"}
