from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from dotenv import load_dotenv

from .engine.schemas import MAX_DIMENSION, MAX_FPS


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _float(env: Mapping[str, str], name: str, default: Optional[float]) -> Optional[float]:
    raw = env.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


def _bounded(env: Mapping[str, str], name: str, default: int, low: int, high: int, even: bool = False) -> int:
    value = _int(env, name, default)
    if not low <= value <= high:
        raise ValueError(f"{name} must be between {low} and {high}, got {value}")
    if even and value % 2:
        raise ValueError(f"{name} must be even, got {value}")
    return value


@dataclass
class VideoConfig:
    """Output geometry for the stitched video"""
    width: int = 1080
    height: int = 1920  # vertical 9:16
    fps: int = 30


@dataclass
class Settings:
    api_key: str = ""
    host: str = "0.0.0.0"
    port: int = 3000
    scratch_dir: str = field(default_factory=tempfile.gettempdir)
    result_ttl_sec: float = 30 * 60
    sweep_interval_sec: float = 60.0
    max_workers: int = 2
    max_queue: int = 16
    # None blocks until the job finishes
    submit_wait_sec: Optional[float] = None
    download_timeout_sec: float = 60.0
    download_chunk_bytes: int = 1024 * 1024
    fetch_backend: str = "http"
    ffmpeg_bin: Optional[str] = None
    max_process_output_bytes: int = 64 * 1024
    max_content_length: int = 10 * 1024 * 1024
    cors_origins: List[str] = field(default_factory=list)
    log_level: str = "INFO"
    video: VideoConfig = field(default_factory=VideoConfig)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from the process environment (and a .env file, if present)."""
        if env is None:
            load_dotenv()
            env = os.environ

        backend = env.get("FETCH_BACKEND", "http").strip().lower() or "http"
        if backend not in ("http", "ffmpeg"):
            raise ValueError(f"FETCH_BACKEND must be 'http' or 'ffmpeg', got {backend!r}")

        submit_wait = _float(env, "SUBMIT_WAIT_SEC", None)
        if submit_wait is not None and submit_wait <= 0:
            submit_wait = None

        return cls(
            api_key=env.get("API_KEY", ""),
            host=env.get("HOST", "0.0.0.0"),
            port=_int(env, "PORT", 3000),
            scratch_dir=env.get("SCRATCH_DIR") or tempfile.gettempdir(),
            result_ttl_sec=_float(env, "RESULT_TTL_SEC", 30 * 60),
            sweep_interval_sec=_float(env, "SWEEP_INTERVAL_SEC", 60.0),
            max_workers=max(_int(env, "MAX_WORKERS", 2), 1),
            max_queue=_bounded(env, "MAX_QUEUE", 16, 1, 100_000),
            submit_wait_sec=submit_wait,
            download_timeout_sec=_float(env, "DOWNLOAD_TIMEOUT_SEC", 60.0),
            download_chunk_bytes=_int(env, "DOWNLOAD_CHUNK_BYTES", 1024 * 1024),
            fetch_backend=backend,
            ffmpeg_bin=env.get("FFMPEG_BIN") or None,
            max_process_output_bytes=_int(env, "MAX_PROCESS_OUTPUT_BYTES", 64 * 1024),
            max_content_length=_int(env, "MAX_CONTENT_LENGTH", 10 * 1024 * 1024),
            cors_origins=[o.strip() for o in env.get("CORS_ORIGINS", "").split(",") if o.strip()],
            log_level=env.get("LOG_LEVEL", "INFO"),
            video=VideoConfig(
                width=_bounded(env, "OUTPUT_WIDTH", 1080, 2, MAX_DIMENSION, even=True),
                height=_bounded(env, "OUTPUT_HEIGHT", 1920, 2, MAX_DIMENSION, even=True),
                fps=_bounded(env, "OUTPUT_FPS", 30, 1, MAX_FPS),
            ),
        )
