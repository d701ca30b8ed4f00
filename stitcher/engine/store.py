from __future__ import annotations

import logging
import os
import threading
import time
from typing import Callable, Dict, List, Optional

from .schemas import ResultEntry
from .utils import remove_quietly

logger = logging.getLogger(__name__)

DEFAULT_TTL_SEC = 30 * 60
DEFAULT_SWEEP_INTERVAL_SEC = 60.0


class ResultStore:
    """
    In-memory map of job id -> finished artifact, each entry living for a
    fixed TTL. Expiry is checked on every read, so a stale entry is never
    served even if the sweep has not run yet. The sweep deletes the files.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: Dict[str, ResultEntry] = {}
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._sweeper: Optional[threading.Thread] = None
        self._sweep_hooks: List[Callable[[], None]] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def put(self, job_id: str, file_path: str, ttl: float = DEFAULT_TTL_SEC) -> ResultEntry:
        entry = ResultEntry(id=job_id, file_path=str(file_path), expires_at=self._clock() + ttl)
        with self._lock:
            previous = self._entries.get(job_id)
            self._entries[job_id] = entry
        if previous is not None and previous.file_path != entry.file_path:
            remove_quietly(previous.file_path)
        return entry

    def get(self, job_id: str) -> Optional[ResultEntry]:
        with self._lock:
            entry = self._entries.get(job_id)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            return None
        if not os.path.exists(entry.file_path):
            return None
        return entry

    def sweep(self) -> int:
        """Drop expired (or file-less) entries and delete their files. Returns the count."""
        now = self._clock()
        with self._lock:
            expired = [
                e for e in self._entries.values()
                if now >= e.expires_at or not os.path.exists(e.file_path)
            ]
            for e in expired:
                del self._entries[e.id]
        for e in expired:
            remove_quietly(e.file_path)
        if expired:
            logger.info("Swept %d expired result(s)", len(expired))
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            entries = list(self._entries.values())
            self._entries.clear()
        for e in entries:
            remove_quietly(e.file_path)

    def add_sweep_hook(self, hook: Callable[[], None]) -> None:
        """Run ``hook`` after every periodic sweep."""
        self._sweep_hooks.append(hook)

    def start_sweeper(self, interval: float = DEFAULT_SWEEP_INTERVAL_SEC) -> None:
        if self._sweeper and self._sweeper.is_alive():
            return
        self._stop.clear()
        self._sweeper = threading.Thread(
            target=self._run_sweeper, args=(interval,), name="result-sweeper", daemon=True
        )
        self._sweeper.start()

    def stop_sweeper(self, timeout: Optional[float] = None) -> None:
        self._stop.set()
        if self._sweeper:
            self._sweeper.join(timeout)
            self._sweeper = None

    def _run_sweeper(self, interval: float) -> None:
        while not self._stop.wait(interval):
            try:
                self.sweep()
                for hook in self._sweep_hooks:
                    hook()
            except Exception:
                # keep the sweeper alive; the next tick retries
                logger.exception("Result sweep failed")
