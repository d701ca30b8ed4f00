import logging
from pathlib import Path
from typing import Optional, Union
from urllib.parse import urlparse

import requests

from .errors import ExitError, FetchError
from .process import DEFAULT_MAX_OUTPUT_BYTES, ffmpeg_bin, run_process
from .utils import ensure_dir

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 1024 * 1024
MEDIA_SUFFIXES = {".mp4", ".mov", ".m4v", ".webm", ".mkv", ".mp3", ".m4a", ".aac", ".wav", ".ogg"}


def media_suffix(url: str, default: str) -> str:
    """File extension for a scratch copy of ``url``, falling back to ``default``."""
    suffix = Path(urlparse(url).path).suffix.lower()
    return suffix if suffix in MEDIA_SUFFIXES else default


def fetch_to_path(
    url: str,
    dest: Union[str, Path],
    timeout: float = 60.0,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    session: Optional[requests.Session] = None,
) -> Path:
    """
    Stream ``url`` into ``dest``, following redirects. The body is written in
    chunks so memory stays flat regardless of size.

    Raises FetchError on a non-2xx status, an empty body, a transport error or
    a short read. ``dest`` may be left partially written on failure.
    """
    dest = Path(dest)
    ensure_dir(dest.parent)
    http = session or requests
    try:
        with http.get(url, stream=True, timeout=timeout, allow_redirects=True) as r:
            if not r.ok:
                raise FetchError(
                    f"Failed to download {url} (HTTP {r.status_code})", url, status_code=r.status_code
                )
            expected = r.headers.get("Content-Length")
            written = 0
            with open(dest, "wb") as f:
                for chunk in r.iter_content(chunk_size=chunk_size):
                    if chunk:
                        f.write(chunk)
                        written += len(chunk)
    except requests.RequestException as e:
        raise FetchError(f"Failed to download {url}: {e}", url) from e

    if written == 0:
        raise FetchError(f"No response body for {url}", url, status_code=r.status_code)
    # Content-Length is the encoded size; only trust it for identity responses
    if expected and expected.isdigit() and not r.headers.get("Content-Encoding"):
        if written < int(expected):
            raise FetchError(
                f"Truncated download for {url}: got {written} of {expected} bytes", url,
                status_code=r.status_code,
            )
    logger.debug("Fetched %s -> %s (%d bytes)", url, dest, written)
    return dest


class HttpFetcher:
    """Direct streaming download with ``requests``."""

    def __init__(self, timeout: float = 60.0, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.timeout = timeout
        self.chunk_size = chunk_size
        self.session = requests.Session()

    def fetch(self, url: str, dest: Union[str, Path]) -> Path:
        return fetch_to_path(url, dest, timeout=self.timeout, chunk_size=self.chunk_size, session=self.session)


class FfmpegFetcher:
    """
    Lets ffmpeg pull the resource (stream copy, no re-encode). Useful for
    sources plain HTTP cannot read, e.g. HLS playlists.
    """

    def __init__(self, ffmpeg: Optional[str] = None, max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES):
        self.ffmpeg = ffmpeg
        self.max_output_bytes = max_output_bytes

    def fetch(self, url: str, dest: Union[str, Path]) -> Path:
        dest = Path(dest)
        ensure_dir(dest.parent)
        args = [
            "-y", "-nostdin", "-hide_banner", "-loglevel", "error",
            "-i", url,
            "-c", "copy",
            str(dest),
        ]
        try:
            run_process(ffmpeg_bin(self.ffmpeg), args, max_output_bytes=self.max_output_bytes)
        except ExitError as e:
            raise FetchError(f"Failed to download {url}: {e.stderr.strip()}", url) from e
        if not dest.exists() or dest.stat().st_size == 0:
            raise FetchError(f"No data downloaded for {url}", url)
        return dest


def make_fetcher(backend: str = "http", timeout: float = 60.0, chunk_size: int = DEFAULT_CHUNK_SIZE,
                 ffmpeg: Optional[str] = None, max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES):
    if backend == "ffmpeg":
        return FfmpegFetcher(ffmpeg=ffmpeg, max_output_bytes=max_output_bytes)
    return HttpFetcher(timeout=timeout, chunk_size=chunk_size)
