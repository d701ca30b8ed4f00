from __future__ import annotations

import logging
import secrets
from pathlib import Path
from typing import Callable, Optional, Union

from .errors import StitchError
from .media import HttpFetcher, media_suffix
from .process import DEFAULT_MAX_OUTPUT_BYTES
from .render import build_base_clip, mux_narration
from .schemas import (
    BASE_BUILD,
    CLEANUP,
    FAILED,
    FETCHING,
    FINAL_MUX,
    PUBLISHED,
    ResultEntry,
    StitchRequest,
)
from .scratch import ScratchSpace
from .store import DEFAULT_TTL_SEC, ResultStore

logger = logging.getLogger(__name__)

StatusCallback = Callable[[str], None]


def new_job_id() -> str:
    """128 random bits, hex encoded; not guessable and safe in file names."""
    return secrets.token_hex(16)


class StitchPipeline:
    """
    Runs one job: fetch the three clips and the narration, build a normalized
    silent base clip, loop it under the narration, publish the result.

    Stages are strictly sequential. Any failure deletes every scratch file
    the job created and re-raises the original error; nothing is published.
    """

    def __init__(
        self,
        store: ResultStore,
        scratch_dir: Union[str, Path],
        fetcher=None,
        ffmpeg: Optional[str] = None,
        ttl: float = DEFAULT_TTL_SEC,
        max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
    ):
        self.store = store
        self.scratch_dir = Path(scratch_dir)
        self.fetcher = fetcher or HttpFetcher()
        self.ffmpeg = ffmpeg
        self.ttl = ttl
        self.max_output_bytes = max_output_bytes

    def run(
        self,
        request: StitchRequest,
        job_id: Optional[str] = None,
        on_status: Optional[StatusCallback] = None,
    ) -> ResultEntry:
        job_id = job_id or new_job_id()
        scratch = ScratchSpace(self.scratch_dir, job_id)

        def advance(status: str) -> None:
            logger.info("Job %s: %s", job_id, status)
            if on_status is not None:
                on_status(status)

        try:
            advance(FETCHING)
            videos = []
            for idx, url in enumerate(request.video_urls, start=1):
                dest = scratch.path(f"v{idx}", media_suffix(url, ".mp4"))
                videos.append(self.fetcher.fetch(url, dest))
            narration = self.fetcher.fetch(
                request.narration_url,
                scratch.path("narration", media_suffix(request.narration_url, ".mp3")),
            )

            advance(BASE_BUILD)
            base = scratch.path("base")
            build_base_clip(
                videos,
                scratch.path("list", ".txt"),
                base,
                width=request.width,
                height=request.height,
                fps=request.fps,
                ffmpeg=self.ffmpeg,
                max_output_bytes=self.max_output_bytes,
            )
            scratch.release("v1", "v2", "v3", "list")

            advance(FINAL_MUX)
            final = scratch.path("final")
            mux_narration(
                base,
                narration,
                final,
                ffmpeg=self.ffmpeg,
                max_output_bytes=self.max_output_bytes,
            )

            advance(CLEANUP)
            scratch.cleanup(keep=("final",))
        except Exception as e:
            if isinstance(e, StitchError):
                logger.error("Job %s failed (%s): %s", job_id, type(e).__name__, e)
            else:
                logger.exception("Job %s failed unexpectedly", job_id)
            scratch.cleanup()
            if on_status is not None:
                on_status(FAILED)
            raise

        # once stored the file belongs to the result store, not to this job
        entry = self.store.put(job_id, str(final), ttl=self.ttl)
        advance(PUBLISHED)
        return entry
