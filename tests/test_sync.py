import threading

import database
from sync import Poller, Snapshot


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_refresh_replaces_rows_and_bumps_version():
    batches = iter([[{"id": 1}], [{"id": 2}, {"id": 3}]])
    snap = Snapshot("orders", lambda: next(batches), clock=FakeClock())
    assert snap.refresh()
    assert snap.get() == [{"id": 1}]
    assert snap.refresh()
    assert snap.get() == [{"id": 2}, {"id": 3}]
    assert snap.version == 2


def test_failed_fetch_keeps_stale_rows():
    calls = {"n": 0}

    def fetch():
        calls["n"] += 1
        if calls["n"] > 1:
            raise ConnectionError("offline")
        return [{"id": 1}]

    snap = Snapshot("orders", fetch, clock=FakeClock())
    snap.refresh()
    assert snap.refresh() is False
    assert snap.get() == [{"id": 1}]
    assert snap.version == 1


def test_get_refreshes_only_when_stale():
    clock = FakeClock()
    calls = {"n": 0}

    def fetch():
        calls["n"] += 1
        return [{"n": calls["n"]}]

    snap = Snapshot("products", fetch, clock=clock)
    assert snap.get(max_age=10) == [{"n": 1}]
    clock.now += 5
    assert snap.get(max_age=10) == [{"n": 1}]
    clock.now += 5
    assert snap.get(max_age=10) == [{"n": 2}]
    assert snap.get() == [{"n": 2}]

    snap.invalidate()
    assert snap.get() == [{"n": 3}]


def test_patch_and_drop_update_local_rows():
    snap = Snapshot("orders", lambda: [{"id": "a", "status": "Pending"}, {"id": "b", "status": "Pending"}])
    snap.refresh()
    assert snap.patch("id", "a", {"status": "Accepted"}) == 1
    assert [r["status"] for r in snap.get()] == ["Accepted", "Pending"]
    assert snap.drop("id", "b") == 1
    assert [r["id"] for r in snap.get()] == ["a"]


def test_table_snapshot_reads_from_database(db):
    database.insert(database.CATEGORIES, [{"name": "Tiles"}, {"name": "Cement"}])
    snap = Snapshot.table(database.CATEGORIES, order="name")
    assert [r["name"] for r in snap.get()] == ["Cement", "Tiles"]


def test_poller_refreshes_on_its_thread():
    fetched = threading.Event()

    def fetch():
        fetched.set()
        return [{"id": 1}]

    snap = Snapshot("orders", fetch)
    poller = Poller(0.01, [snap], name="test-poller")
    poller.start()
    try:
        assert fetched.wait(2)
        assert poller.running
    finally:
        poller.stop(timeout=2)
    assert not poller.running
    assert snap.version >= 1


def test_tick_refreshes_every_snapshot():
    a = Snapshot("a", lambda: [{"x": 1}])
    b = Snapshot("b", lambda: [{"y": 2}])
    Poller(5, [a, b]).tick()
    assert (a.version, b.version) == (1, 1)
