import hmac
import logging
from typing import Optional

from flask import Blueprint, Flask, current_app, jsonify, request, send_file, url_for
from flask_cors import CORS

from .config import Settings
from .engine.errors import QueueFullError, ValidationError
from .engine.media import make_fetcher
from .engine.pipeline import StitchPipeline
from .engine.schemas import FAILED, PUBLISHED, StitchRequest
from .engine.store import ResultStore
from .engine.utils import ensure_dir
from .engine.worker import JobManager

logger = logging.getLogger(__name__)

bp = Blueprint("stitcher", __name__)


class Engine:
    """The long-lived pieces one app instance owns."""

    def __init__(self, settings: Settings, store: Optional[ResultStore] = None, fetcher=None):
        self.settings = settings
        self.store = store or ResultStore()
        self.pipeline = StitchPipeline(
            store=self.store,
            scratch_dir=settings.scratch_dir,
            fetcher=fetcher or make_fetcher(
                settings.fetch_backend,
                timeout=settings.download_timeout_sec,
                chunk_size=settings.download_chunk_bytes,
                ffmpeg=settings.ffmpeg_bin,
                max_output_bytes=settings.max_process_output_bytes,
            ),
            ffmpeg=settings.ffmpeg_bin,
            ttl=settings.result_ttl_sec,
            max_output_bytes=settings.max_process_output_bytes,
        )
        self.jobs = JobManager(
            self.pipeline,
            workers=settings.max_workers,
            max_queue=settings.max_queue,
            failed_retention_sec=settings.result_ttl_sec,
        )
        self.store.add_sweep_hook(self.jobs.prune)

    def start(self) -> None:
        ensure_dir(self.settings.scratch_dir)
        self.jobs.start()
        self.store.start_sweeper(self.settings.sweep_interval_sec)

    def stop(self) -> None:
        self.jobs.stop(timeout=10)
        self.store.stop_sweeper()


def _engine() -> Engine:
    return current_app.extensions["stitcher"]


def _authorized() -> bool:
    api_key = _engine().settings.api_key
    if not api_key:
        return True
    got = request.headers.get("x-api-key", "")
    return hmac.compare_digest(got.encode("utf-8"), api_key.encode("utf-8"))


def _result_url(job_id: str) -> str:
    return url_for("stitcher.get_result", job_id=job_id, _external=True)


@bp.route("/", methods=["GET"])
def root():
    return "OK", 200


@bp.route("/health", methods=["GET"])
def health_check():
    """Liveness check"""
    return jsonify({"ok": True}), 200


@bp.route("/stitch", methods=["POST"])
def create_stitch_job():
    """
    Accepts either:
     - { audioUrl, videoUrls: [..3..] }
     - { narrationUrl, videos: [..3..] }
    plus optional width/height/fps.

    Blocks until the job finishes (or SUBMIT_WAIT_SEC elapses, in which case
    the job keeps running and 202 points at its status).
    """
    if not _authorized():
        return jsonify({"error": "Unauthorized"}), 401

    engine = _engine()
    video = engine.settings.video
    data = request.get_json(silent=True)
    logger.debug("Stitch request body: %s", data)
    try:
        req = StitchRequest.from_payload(data, width=video.width, height=video.height, fps=video.fps)
    except ValidationError as e:
        return jsonify({"error": str(e), "field": e.field}), 400

    try:
        job = engine.jobs.enqueue(req)
    except QueueFullError as e:
        return jsonify({"error": str(e)}), 503

    job = engine.jobs.wait(job.id, engine.settings.submit_wait_sec)
    if job is None:
        return jsonify({"error": "Job record lost"}), 500
    if job.status == PUBLISHED:
        return jsonify({"ok": True, "id": job.id, "resultUrl": _result_url(job.id)}), 200
    if job.status == FAILED:
        return jsonify({"error": job.error or "Stitch failed", "id": job.id}), 500
    return (
        jsonify({
            "ok": True,
            "id": job.id,
            "status": job.status,
            "statusUrl": url_for("stitcher.get_job", job_id=job.id, _external=True),
        }),
        202,
    )


@bp.route("/jobs/<job_id>", methods=["GET"])
def get_job(job_id: str):
    if not _authorized():
        return jsonify({"error": "Unauthorized"}), 401
    job = _engine().jobs.get(job_id)
    if job is None:
        return jsonify({"error": "Job not found"}), 404
    resp = job.to_dict()
    resp["resultUrl"] = _result_url(job.id) if job.status == PUBLISHED else None
    return jsonify(resp), 200


@bp.route("/result/<job_id>", methods=["GET"])
def get_result(job_id: str):
    """Download a finished video. Unknown and expired ids look the same."""
    missing = (jsonify({"error": "Not found (expired or missing)"}), 404)
    entry = _engine().store.get(job_id)
    if entry is None:
        return missing
    try:
        return send_file(
            entry.file_path,
            mimetype="video/mp4",
            as_attachment=True,
            download_name=f"final_{job_id}.mp4",
            conditional=True,
        )
    except FileNotFoundError:
        # swept between the lookup and the open
        return missing


def too_large(e):
    return jsonify({"error": "Request body too large"}), 413


def not_found(e):
    return jsonify({"error": "Endpoint not found"}), 404


def internal_error(e):
    return jsonify({"error": "Internal server error"}), 500


def create_app(settings: Optional[Settings] = None, store: Optional[ResultStore] = None,
               fetcher=None, start: bool = True) -> Flask:
    settings = settings or Settings.from_env()

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_content_length
    if settings.cors_origins:
        CORS(
            app,
            origins=settings.cors_origins,
            allow_headers=["Content-Type", "x-api-key"],
            methods=["GET", "POST", "OPTIONS"],
        )
    app.register_blueprint(bp)
    app.register_error_handler(413, too_large)
    app.register_error_handler(404, not_found)
    app.register_error_handler(500, internal_error)

    engine = Engine(settings, store=store, fetcher=fetcher)
    app.extensions["stitcher"] = engine
    if start:
        engine.start()
    return app
