from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess
import threading
from dataclasses import dataclass
from typing import IO, List, Optional, Sequence

import imageio_ffmpeg

from .errors import ExitError, SpawnError, TerminatedError

logger = logging.getLogger(__name__)

DEFAULT_MAX_OUTPUT_BYTES = 64 * 1024
_READ_SIZE = 8192


@dataclass
class ProcessResult:
    args: List[str]
    returncode: int
    stdout: str
    stderr: str


def ffmpeg_bin(configured: Optional[str] = None) -> str:
    """Resolve the ffmpeg executable: explicit setting, FFMPEG_BIN, bundled binary, then PATH."""
    exe = configured or os.environ.get("FFMPEG_BIN")
    if exe:
        return exe
    try:
        return imageio_ffmpeg.get_ffmpeg_exe()
    except RuntimeError:
        # imageio-ffmpeg raises when no bundled binary exists for this platform
        return shutil.which("ffmpeg") or "ffmpeg"


class _CappedBuffer:
    """Accumulates bytes up to a limit and counts what was dropped."""

    def __init__(self, limit: int):
        self.limit = max(limit, 0)
        self.chunks: List[bytes] = []
        self.size = 0
        self.dropped = 0

    def feed(self, data: bytes) -> None:
        room = self.limit - self.size
        if room > 0:
            kept = data[:room]
            self.chunks.append(kept)
            self.size += len(kept)
            self.dropped += len(data) - len(kept)
        else:
            self.dropped += len(data)

    def text(self) -> str:
        out = b"".join(self.chunks).decode("utf-8", errors="replace")
        if self.dropped:
            out += f"\n...[truncated {self.dropped} bytes]"
        return out


def _drain(stream: IO[bytes], buf: _CappedBuffer) -> None:
    # Keep reading past the cap so the child never blocks on a full pipe
    try:
        for chunk in iter(lambda: stream.read(_READ_SIZE), b""):
            buf.feed(chunk)
    finally:
        stream.close()


def run_process(
    program: str,
    args: Sequence[str],
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
) -> ProcessResult:
    """Run ``program`` with ``args`` to completion and classify the outcome.

    stdin is closed; stdout and stderr are captured (each capped at
    ``max_output_bytes`` with a truncation marker). Exit code 0 is the only
    success. Raises SpawnError when the program cannot start, TerminatedError
    when a signal killed it and ExitError on any other non-zero exit.
    """
    cmd = [program, *args]
    logger.debug("Running %s", " ".join(cmd))
    try:
        proc = subprocess.Popen(
            cmd,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except OSError as e:
        raise SpawnError(program, e.errno, e.strerror or str(e)) from e

    out_buf = _CappedBuffer(max_output_bytes)
    err_buf = _CappedBuffer(max_output_bytes)
    readers = [
        threading.Thread(target=_drain, args=(proc.stdout, out_buf), daemon=True),
        threading.Thread(target=_drain, args=(proc.stderr, err_buf), daemon=True),
    ]
    for t in readers:
        t.start()
    returncode = proc.wait()
    for t in readers:
        t.join()

    stdout, stderr = out_buf.text(), err_buf.text()
    if returncode == 0:
        return ProcessResult(args=cmd, returncode=0, stdout=stdout, stderr=stderr)
    if returncode < 0:
        signum = -returncode
        try:
            name = signal.Signals(signum).name
        except ValueError:
            name = f"SIG{signum}"
        raise TerminatedError(program, signum, name, stderr=stderr, stdout=stdout)
    raise ExitError(program, returncode, stderr=stderr, stdout=stdout)
