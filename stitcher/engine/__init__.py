"""
Stitching engine: fetch three clips and a narration track, build a vertical
base clip with ffmpeg, loop it under the narration and keep the result
retrievable for a limited time.
"""

from .pipeline import StitchPipeline
from .schemas import StitchRequest
from .store import ResultStore
from .worker import JobManager

__all__ = ["JobManager", "ResultStore", "StitchPipeline", "StitchRequest"]
