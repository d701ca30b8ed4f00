from __future__ import annotations

from typing import Optional


class StitchError(Exception):
    """Base error for the stitching pipeline."""


class ValidationError(StitchError, ValueError):
    """Raised when a stitch request has the wrong shape or a bad URL."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class FetchError(StitchError):
    """Raised when a remote resource cannot be fully downloaded."""

    def __init__(self, message: str, url: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class ProcessError(StitchError):
    """Base for failures of an external program invocation."""

    def __init__(self, message: str, program: str):
        super().__init__(message)
        self.program = program


class SpawnError(ProcessError):
    """The program could not be started at all (missing binary, permissions)."""

    def __init__(self, program: str, errno: Optional[int], reason: str):
        super().__init__(f"spawn {program} failed: errno={errno} {reason}", program)
        self.errno = errno
        self.reason = reason


class TerminatedError(ProcessError):
    """The program was killed by a signal."""

    def __init__(self, program: str, signal: int, signal_name: str, stderr: str = "", stdout: str = ""):
        super().__init__(f"{program} terminated by signal {signal_name} ({signal})", program)
        self.signal = signal
        self.signal_name = signal_name
        self.stderr = stderr
        self.stdout = stdout


class ExitError(ProcessError):
    """The program ran to completion but exited non-zero."""

    def __init__(self, program: str, returncode: int, stderr: str, stdout: str):
        super().__init__(
            f"{program} exited code={returncode}\nSTDERR:\n{stderr}\nSTDOUT:\n{stdout}",
            program,
        )
        self.returncode = returncode
        self.stderr = stderr
        self.stdout = stdout


class QueueFullError(StitchError):
    """Raised when the job queue cannot accept another submission."""
