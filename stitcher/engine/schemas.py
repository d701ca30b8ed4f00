from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlparse
import time

from .errors import ValidationError

VIDEO_COUNT = 3
MAX_DIMENSION = 4096
MAX_FPS = 60

# Job statuses, in pipeline order
QUEUED = "queued"
FETCHING = "fetching"
BASE_BUILD = "base_build"
FINAL_MUX = "final_mux"
CLEANUP = "cleanup"
PUBLISHED = "published"
FAILED = "failed"

TERMINAL_STATUSES = frozenset({PUBLISHED, FAILED})


def is_http_url(value: Any) -> bool:
    if not isinstance(value, str) or not value.strip():
        return False
    try:
        parsed = urlparse(value.strip())
    except ValueError:
        return False
    if any(c.isspace() for c in parsed.netloc):
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _dimension(data: Mapping[str, Any], key: str, default: int, upper: int, even: bool) -> int:
    raw = data.get(key)
    if raw is None:
        return default
    # bool is an int subclass; reject it explicitly
    if isinstance(raw, bool) or not isinstance(raw, (int, float)) or (isinstance(raw, float) and not raw.is_integer()):
        raise ValidationError(f"{key} must be an integer", field=key)
    value = int(raw)
    if value <= 0 or value > upper:
        raise ValidationError(f"{key} must be between 1 and {upper}", field=key)
    if even and value % 2:
        raise ValidationError(f"{key} must be even", field=key)
    return value


@dataclass
class StitchRequest:
    narration_url: str
    video_urls: List[str]
    width: int = 1080
    height: int = 1920
    fps: int = 30

    @classmethod
    def from_payload(
        cls,
        data: Any,
        width: int = 1080,
        height: int = 1920,
        fps: int = 30,
    ) -> "StitchRequest":
        """Validate a JSON body and build a request.

        Accepts ``{narrationUrl, videos}`` as well as ``{audioUrl, videoUrls}``.
        Raises ValidationError before anything is downloaded or spawned.
        """
        if not isinstance(data, Mapping):
            raise ValidationError("request body must be a JSON object")

        narration = data.get("narrationUrl")
        if narration is None:
            narration = data.get("audioUrl")
        videos = data.get("videos")
        if videos is None:
            videos = data.get("videoUrls")

        if not is_http_url(narration):
            raise ValidationError("narrationUrl/audioUrl missing/invalid", field="narrationUrl")
        if not isinstance(videos, list) or len(videos) != VIDEO_COUNT:
            raise ValidationError(
                f"videos/videoUrls must be an array of exactly {VIDEO_COUNT} URLs", field="videos"
            )
        for idx, url in enumerate(videos):
            if not is_http_url(url):
                raise ValidationError(f"videos[{idx}] is not a valid http(s) URL", field=f"videos[{idx}]")

        return cls(
            narration_url=narration.strip(),
            video_urls=[v.strip() for v in videos],
            width=_dimension(data, "width", width, MAX_DIMENSION, even=True),
            height=_dimension(data, "height", height, MAX_DIMENSION, even=True),
            fps=_dimension(data, "fps", fps, MAX_FPS, even=False),
        )


@dataclass(frozen=True)
class ResultEntry:
    id: str
    file_path: str
    expires_at: float


@dataclass
class Job:
    id: str
    request: StitchRequest
    status: str = QUEUED
    created_at: float = field(default_factory=lambda: time.time())
    updated_at: float = field(default_factory=lambda: time.time())
    error: Optional[str] = None

    @property
    def finished(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status,
            "error": self.error,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
