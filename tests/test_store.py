import threading

import pytest

from stitcher.engine.store import ResultStore


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def artifact(tmp_path):
    p = tmp_path / "final_abc.mp4"
    p.write_bytes(b"mp4")
    return p


def test_get_before_and_after_ttl_without_sweep(clock, artifact):
    store = ResultStore(clock=clock)
    entry = store.put("abc", str(artifact), ttl=1800)
    assert entry.expires_at == 2800.0

    clock.now = 2799.999
    assert store.get("abc") == entry
    clock.now = 2800.0
    assert store.get("abc") is None
    # lazy expiry does not delete anything by itself
    assert artifact.exists()


def test_unknown_id_is_absent(clock):
    assert ResultStore(clock=clock).get("never-issued") is None


def test_missing_file_counts_as_expired(clock, artifact):
    store = ResultStore(clock=clock)
    store.put("abc", str(artifact), ttl=60)
    artifact.unlink()
    assert store.get("abc") is None
    assert store.sweep() == 1
    assert len(store) == 0


def test_sweep_removes_expired_entries_and_files(clock, tmp_path):
    store = ResultStore(clock=clock)
    old = tmp_path / "old.mp4"
    new = tmp_path / "new.mp4"
    old.write_bytes(b"1")
    new.write_bytes(b"2")
    store.put("old", str(old), ttl=10)
    clock.now += 5
    store.put("new", str(new), ttl=10)

    clock.now += 6
    assert store.sweep() == 1
    assert not old.exists()
    assert new.exists()
    assert store.get("old") is None
    assert store.get("new") is not None
    assert len(store) == 1


def test_sweep_tolerates_already_deleted_file(clock, artifact):
    store = ResultStore(clock=clock)
    store.put("abc", str(artifact), ttl=1)
    artifact.unlink()
    clock.now += 2
    assert store.sweep() == 1


def test_clear_deletes_files(clock, artifact):
    store = ResultStore(clock=clock)
    store.put("abc", str(artifact))
    store.clear()
    assert len(store) == 0
    assert not artifact.exists()


def test_concurrent_puts_and_sweeps_keep_live_entries(tmp_path):
    store = ResultStore()
    files = []
    for i in range(200):
        p = tmp_path / f"final_{i}.mp4"
        p.write_bytes(b"x")
        files.append(p)

    def publish(offset):
        for i in range(offset, 200, 4):
            store.put(f"job{i}", str(files[i]), ttl=3600)

    def sweep():
        for _ in range(50):
            store.sweep()

    threads = [threading.Thread(target=publish, args=(k,)) for k in range(4)]
    threads += [threading.Thread(target=sweep) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store) == 200
    assert all(store.get(f"job{i}") is not None for i in range(200))


def test_sweeper_thread_runs_hooks(clock, artifact):
    store = ResultStore(clock=clock)
    store.put("abc", str(artifact), ttl=1)
    clock.now += 5
    ran = threading.Event()
    store.add_sweep_hook(ran.set)
    store.start_sweeper(interval=0.01)
    try:
        assert ran.wait(2.0)
    finally:
        store.stop_sweeper(timeout=2.0)
    assert not artifact.exists()
    assert len(store) == 0
