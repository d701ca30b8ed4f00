from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Dict, List, Optional

from .errors import QueueFullError
from .pipeline import StitchPipeline, new_job_id
from .schemas import FAILED, PUBLISHED, Job, StitchRequest

logger = logging.getLogger(__name__)


class JobManager:
    """
    Bounded worker pool in front of the pipeline. Submissions go onto a queue
    with a fixed capacity; ``workers`` threads pull from it, so at most that
    many transcodes run at once.
    """

    def __init__(self, pipeline: StitchPipeline, workers: int = 2, max_queue: int = 16,
                 failed_retention_sec: float = 30 * 60):
        self.pipeline = pipeline
        self.workers = max(workers, 1)
        self.failed_retention_sec = failed_retention_sec
        self.jobs: Dict[str, Job] = {}
        self.q: "queue.Queue[Optional[str]]" = queue.Queue(maxsize=max_queue)
        self.threads: List[threading.Thread] = []
        self._lock = threading.Lock()
        self._done: Dict[str, threading.Event] = {}

    def start(self) -> None:
        self.threads = [t for t in self.threads if t.is_alive()]
        while len(self.threads) < self.workers:
            t = threading.Thread(target=self._run, name=f"stitch-worker-{len(self.threads)}", daemon=True)
            t.start()
            self.threads.append(t)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Let queued jobs finish, then end every worker thread."""
        live = [t for t in self.threads if t.is_alive()]
        for _ in live:
            self.q.put(None)
        for t in live:
            t.join(timeout)
        self.threads = [t for t in self.threads if t.is_alive()]

    def enqueue(self, req: StitchRequest) -> Job:
        job = Job(id=new_job_id(), request=req)
        with self._lock:
            self.jobs[job.id] = job
            self._done[job.id] = threading.Event()
        try:
            self.q.put_nowait(job.id)
        except queue.Full:
            with self._lock:
                self.jobs.pop(job.id, None)
                self._done.pop(job.id, None)
            raise QueueFullError("Job queue is full, try again later") from None
        logger.info("Job %s queued", job.id)
        return job

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self.jobs.get(job_id)

    def wait(self, job_id: str, timeout: Optional[float] = None) -> Optional[Job]:
        """Block until the job finishes or ``timeout`` elapses; returns its current record."""
        with self._lock:
            done = self._done.get(job_id)
        if done is not None:
            done.wait(timeout)
        return self.get(job_id)

    def prune(self) -> int:
        """Forget finished jobs older than the retention window."""
        cutoff = time.time() - self.failed_retention_sec
        with self._lock:
            stale = [j.id for j in self.jobs.values() if j.finished and j.updated_at < cutoff]
            for job_id in stale:
                del self.jobs[job_id]
                self._done.pop(job_id, None)
        return len(stale)

    def _set_status(self, job: Job, status: str, error: Optional[str] = None) -> None:
        with self._lock:
            job.status = status
            if error is not None:
                job.error = error
            job.updated_at = time.time()

    def _run(self) -> None:
        while True:
            job_id = self.q.get()
            if job_id is None:
                self.q.task_done()
                return
            try:
                job = self.get(job_id)
                if job is not None:
                    self._process(job)
            finally:
                self.q.task_done()

    def _process(self, job: Job) -> None:
        try:
            self.pipeline.run(
                job.request,
                job_id=job.id,
                on_status=lambda status: self._set_status(job, status),
            )
            self._set_status(job, PUBLISHED)
        except Exception as e:
            # the pipeline has already logged and cleaned up
            self._set_status(job, FAILED, error=str(e))
        finally:
            with self._lock:
                done = self._done.get(job.id)
            if done is not None:
                done.set()

