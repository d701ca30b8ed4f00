import threading
import time

import pytest

from stitcher.engine.errors import FetchError, QueueFullError
from stitcher.engine.schemas import ResultEntry, StitchRequest
from stitcher.engine.worker import JobManager


class StubPipeline:
    def __init__(self, error=None, gate=None):
        self.error = error
        self.gate = gate
        self.running = 0
        self.peak = 0
        self._lock = threading.Lock()

    def run(self, request, job_id=None, on_status=None):
        with self._lock:
            self.running += 1
            self.peak = max(self.peak, self.running)
        try:
            on_status("fetching")
            if self.gate is not None:
                self.gate.wait(5)
            if self.error is not None:
                raise self.error
            return ResultEntry(id=job_id, file_path="/tmp/final.mp4", expires_at=time.time() + 60)
        finally:
            with self._lock:
                self.running -= 1


@pytest.fixture()
def request_obj(payload):
    return StitchRequest.from_payload(payload)


def test_enqueue_and_wait_for_success(request_obj):
    manager = JobManager(StubPipeline(), workers=1)
    manager.start()
    job = manager.enqueue(request_obj)
    assert job.status == "queued"
    done = manager.wait(job.id, timeout=5)
    assert done.status == "published"
    assert done.error is None


def test_failure_is_recorded(request_obj):
    manager = JobManager(StubPipeline(error=FetchError("Failed to download x (HTTP 404)", "x", 404)), workers=1)
    manager.start()
    job = manager.enqueue(request_obj)
    done = manager.wait(job.id, timeout=5)
    assert done.status == "failed"
    assert "HTTP 404" in done.error


def test_wait_times_out_while_running(request_obj):
    gate = threading.Event()
    manager = JobManager(StubPipeline(gate=gate), workers=1)
    manager.start()
    job = manager.enqueue(request_obj)
    pending = manager.wait(job.id, timeout=0.05)
    assert pending.status in ("queued", "fetching")
    gate.set()
    assert manager.wait(job.id, timeout=5).status == "published"


def test_queue_full_rejects_submission(request_obj):
    # no workers started, so nothing drains the queue
    manager = JobManager(StubPipeline(), workers=1, max_queue=1)
    first = manager.enqueue(request_obj)
    with pytest.raises(QueueFullError):
        manager.enqueue(request_obj)
    assert manager.get(first.id) is not None
    assert len(manager.jobs) == 1


def test_worker_count_bounds_concurrency(request_obj):
    gate = threading.Event()
    pipeline = StubPipeline(gate=gate)
    manager = JobManager(pipeline, workers=2, max_queue=10)
    manager.start()
    jobs = [manager.enqueue(request_obj) for _ in range(5)]
    time.sleep(0.2)
    assert pipeline.peak <= 2
    gate.set()
    for job in jobs:
        assert manager.wait(job.id, timeout=5).status == "published"
    assert pipeline.peak == 2


def test_prune_drops_old_finished_jobs(request_obj):
    manager = JobManager(StubPipeline(), workers=1, failed_retention_sec=60)
    manager.start()
    job = manager.enqueue(request_obj)
    manager.wait(job.id, timeout=5)
    assert manager.prune() == 0
    job.updated_at -= 120
    assert manager.prune() == 1
    assert manager.get(job.id) is None


def test_unknown_job_wait_returns_none():
    manager = JobManager(StubPipeline())
    assert manager.wait("missing", timeout=0) is None


def test_stop_finishes_queued_jobs_and_ends_threads(request_obj):
    gate = threading.Event()
    manager = JobManager(StubPipeline(gate=gate), workers=2, max_queue=4)
    manager.start()
    jobs = [manager.enqueue(request_obj) for _ in range(3)]
    gate.set()
    manager.stop(timeout=5)
    assert manager.threads == []
    assert [manager.get(j.id).status for j in jobs] == ["published"] * 3


def test_stop_without_start_is_a_no_op():
    manager = JobManager(StubPipeline())
    manager.stop(timeout=1)
    assert manager.threads == []
    assert manager.q.empty()
