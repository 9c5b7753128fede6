import threading
from concurrent.futures import ThreadPoolExecutor

from device_registry.core.errors import NotFoundError, ValidationError
from device_registry.db.session import make_session_factory
from device_registry.services.store import DeviceStore
from device_registry.services.locks import KeyedLocks


def _attempt(fn, *args):
    try:
        return "ok", fn(*args)
    except ValidationError as exc:
        return "invalid", exc
    except NotFoundError as exc:
        return "missing", exc


def test_concurrent_duplicate_creates_single_winner(store):
    start = threading.Barrier(6)

    def create(name):
        start.wait()
        return _attempt(store.create, {"id": 42, "node_id": 1, "endpoint_id": 1, "name": name, "capabilities": "{}"})

    with ThreadPoolExecutor(max_workers=6) as pool:
        outcomes = list(pool.map(create, [f"racer-{i}" for i in range(6)]))

    winners = [value for status, value in outcomes if status == "ok"]
    assert len(winners) == 1
    assert sum(1 for status, _ in outcomes if status == "invalid") == 5
    assert store.get(42) == winners[0]
    assert len(list(store.list_by_node(1))) == 1


def test_concurrent_deletes_single_winner(store, lamp):
    store.create(lamp)
    start = threading.Barrier(4)

    def remove(_):
        start.wait()
        return _attempt(store.delete, 1)

    with ThreadPoolExecutor(max_workers=4) as pool:
        statuses = [status for status, _ in pool.map(remove, range(4))]

    assert statuses.count("ok") == 1
    assert statuses.count("missing") == 3


def test_reads_never_see_partial_updates(store, lamp):
    store.create(lamp)
    stop = threading.Event()
    torn = []

    def write(i):
        store.update(1, {"name": f"lamp-{i}", "capabilities": {"rev": [str(i)]}})

    def read():
        while not stop.is_set():
            device = store.get(1)
            if device.name == "Lamp":
                continue
            if device.name != f"lamp-{device.capability_map()['rev'][0]}":
                torn.append(device)

    reader = threading.Thread(target=read)
    reader.start()
    try:
        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(write, range(40)))
    finally:
        stop.set()
        reader.join()

    assert torn == []
    final = store.get(1)
    assert final.name == f"lamp-{final.capability_map()['rev'][0]}"


def test_keyed_locks_serialize_same_key_and_clean_up():
    locks = KeyedLocks()
    inside = []
    overlap = []

    def work(_):
        with locks.hold("device-1"):
            inside.append(1)
            if len(inside) > 1:
                overlap.append(True)
            inside.pop()

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(work, range(200)))

    assert overlap == []
    assert len(locks) == 0


def test_keyed_locks_release_on_error():
    locks = KeyedLocks()
    try:
        with locks.hold(("id", 1)):
            raise RuntimeError("boom")
    except RuntimeError:
        pass
    assert len(locks) == 0
    with locks.hold(("id", 1)):
        assert len(locks) == 1


def test_separate_stores_race_on_same_id(engine):
    # no shared lock: the primary key decides the winner
    stores = [DeviceStore(session_factory=make_session_factory(engine)) for _ in range(2)]
    start = threading.Barrier(8)

    def create(i):
        start.wait()
        device = {"id": 9, "node_id": 1, "endpoint_id": i, "name": f"racer-{i}", "capabilities": "{}"}
        return _attempt(stores[i % 2].create, device)

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(create, range(8)))

    statuses = sorted(status for status, _ in outcomes)
    assert statuses == ["invalid"] * 7 + ["ok"]
    assert all(value.field == "id" and "None" not in value.message for status, value in outcomes if status == "invalid")
    winner = next(value for status, value in outcomes if status == "ok")
    assert stores[0].get(9) == winner
