import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .process import DEFAULT_MAX_OUTPUT_BYTES, ProcessResult, ffmpeg_bin, run_process

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

X264_ARGS = ["-c:v", "libx264", "-preset", "veryfast", "-crf", "28", "-pix_fmt", "yuv420p"]
AUDIO_BITRATE = "192k"


def escape_concat_path(path: PathLike) -> str:
    """Quote a path for a concat list entry: ``'`` becomes ``'\\''`` inside single quotes."""
    return "'" + str(path).replace("'", "'\\''") + "'"


def concat_list(paths: Iterable[PathLike]) -> str:
    """Serialize ordered inputs as an ffconcat list."""
    lines = ["ffconcat version 1.0"]
    for p in paths:
        lines.append(f"file {escape_concat_path(Path(p).resolve().as_posix())}")
    return "\n".join(lines) + "\n"


def write_concat_list(list_path: PathLike, inputs: Iterable[PathLike]) -> str:
    list_path = str(list_path)
    with open(list_path, "w", encoding="utf-8") as f:
        f.write(concat_list(inputs))
    return list_path


def fill_crop_filter(width: int = 1080, height: int = 1920, fps: int = 30) -> str:
    """Scale to cover the frame keeping aspect, crop the overflow, square pixels, fixed rate."""
    return (
        f"scale={width}:{height}:force_original_aspect_ratio=increase,"
        f"crop={width}:{height},"
        "setsar=1,"
        f"fps={fps}"
    )


def base_clip_args(list_path: PathLike, out_path: PathLike, width: int = 1080, height: int = 1920,
                   fps: int = 30) -> List[str]:
    return [
        "-y", "-nostdin", "-hide_banner", "-loglevel", "error",
        # concat list as input (no looping here)
        "-f", "concat",
        "-safe", "0",
        "-i", str(list_path),
        "-vf", fill_crop_filter(width, height, fps),
        "-an",
        *X264_ARGS,
        "-movflags", "+faststart",
        str(out_path),
    ]


def final_mux_args(base_path: PathLike, narration_path: PathLike, out_path: PathLike) -> List[str]:
    return [
        "-y", "-nostdin", "-hide_banner", "-loglevel", "error",
        "-stream_loop", "-1",
        "-i", str(base_path),
        "-i", str(narration_path),
        "-map", "0:v:0",
        "-map", "1:a:0",
        # the base loops forever, so the narration decides the length
        "-shortest",
        # without these the muxer keeps buffered video past the end of the audio
        "-fflags", "+shortest",
        "-max_interleave_delta", "0",
        *X264_ARGS,
        "-c:a", "aac",
        "-b:a", AUDIO_BITRATE,
        "-movflags", "+faststart",
        str(out_path),
    ]


def build_base_clip(
    inputs: List[PathLike],
    list_path: PathLike,
    out_path: PathLike,
    width: int = 1080,
    height: int = 1920,
    fps: int = 30,
    ffmpeg: Optional[str] = None,
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
) -> ProcessResult:
    """
    Concatenate ``inputs`` in order with hard cuts into one silent clip,
    fill-cropped to ``width`` x ``height`` at ``fps``.
    """
    write_concat_list(list_path, inputs)
    args = base_clip_args(list_path, out_path, width=width, height=height, fps=fps)
    return run_process(ffmpeg_bin(ffmpeg), args, max_output_bytes=max_output_bytes)


def mux_narration(
    base_path: PathLike,
    narration_path: PathLike,
    out_path: PathLike,
    ffmpeg: Optional[str] = None,
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES,
) -> ProcessResult:
    """Loop the base clip under the narration and stop when the narration ends."""
    args = final_mux_args(base_path, narration_path, out_path)
    return run_process(ffmpeg_bin(ffmpeg), args, max_output_bytes=max_output_bytes)
