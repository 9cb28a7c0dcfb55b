from __future__ import annotations

from pathlib import Path
import time
from uuid import uuid4

from dotenv import load_dotenv
from flask import Flask, g, jsonify, request
from pydantic import ValidationError
from werkzeug.exceptions import HTTPException

load_dotenv()

from .config import Config, DEFAULT_INSTANCE_ROOT
from .errors import ExportError
from .logging_utils import setup_logging
from .routes.api import bp as api_bp
from .routes.tts import tts_bp
from .services.audio_decoder import AudioDecoder, DurationResolver
from .services.narration_cache import InMemoryNarrationStore, NarrationCache, RedisNarrationStore
from .services.tts_service import SpeechSynthesisClient
from .services.video_exporter import NarratedVideoExporter
from .task_queue import get_redis_connection, init_task_queue


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, static_folder=None, instance_path=str(DEFAULT_INSTANCE_ROOT))
    app.config.from_object(Config)

    if test_config:
        app.config.update(test_config)

    Path(app.instance_path).mkdir(parents=True, exist_ok=True)

    setup_logging(app)
    _register_request_hooks(app)

    init_task_queue(app)
    _configure_services(app)

    app.register_blueprint(api_bp, url_prefix="/api")
    app.register_blueprint(tts_bp, url_prefix="/api")

    _register_error_handlers(app)

    return app


def _configure_services(app: Flask) -> None:
    if "SPEECH_CLIENT" not in app.config:
        app.config["SPEECH_CLIENT"] = SpeechSynthesisClient(
            app.config.get("ELEVENLABS_API_KEY"),
            base_url=app.config.get("TTS_API_URL"),
            model_id=app.config.get("TTS_MODEL_ID"),
            timeout=float(app.config.get("TTS_TIMEOUT_SECONDS", 60)),
        )

    sample_rate = int(app.config.get("AUDIO_SAMPLE_RATE", 44100))

    if "NARRATION_CACHE" not in app.config:
        if app.config.get("NARRATION_CACHE_BACKEND") == "redis":
            store = RedisNarrationStore(
                get_redis_connection(app),
                ttl_seconds=int(app.config.get("NARRATION_CACHE_TTL_SECONDS", 43200)),
            )
        else:
            store = InMemoryNarrationStore()
        app.config["NARRATION_CACHE"] = NarrationCache(
            app.config["SPEECH_CLIENT"],
            store,
            DurationResolver(AudioDecoder(sample_rate=sample_rate)),
        )

    if "VIDEO_EXPORTER" not in app.config:
        app.config["VIDEO_EXPORTER"] = NarratedVideoExporter(
            app.config["NARRATION_CACHE"],
            sample_rate=sample_rate,
            transition_gap_ms=float(app.config.get("TRANSITION_GAP_MS", 2000)),
            empty_slide_duration_ms=float(app.config.get("EMPTY_SLIDE_DURATION_MS", 3000)),
            video_size=(int(app.config.get("VIDEO_WIDTH", 1920)), int(app.config.get("VIDEO_HEIGHT", 1080))),
            fps=int(app.config.get("VIDEO_FPS", 30)),
            realtime=bool(app.config.get("EXPORT_REALTIME")),
            max_buffer_bytes=int(app.config.get("MAX_MIX_BUFFER_BYTES", 512 * 1024 * 1024)),
        )


def _register_request_hooks(app: Flask) -> None:
    request_id_header = app.config.get("REQUEST_ID_HEADER", "X-Request-ID")

    @app.before_request
    def _start_request_timer():
        g.request_id = request.headers.get(request_id_header) or uuid4().hex
        g.request_started_at = time.perf_counter()

    @app.after_request
    def _log_request(response):
        start = getattr(g, "request_started_at", None)
        duration_ms = None
        if start is not None:
            duration_ms = round((time.perf_counter() - start) * 1000, 3)

        request_id = getattr(g, "request_id", uuid4().hex)
        response.headers.setdefault(request_id_header, request_id)
        if duration_ms is not None:
            response.headers.setdefault("X-Response-Time", f"{duration_ms}ms")

        app.logger.info(
            "request_completed",
            extra={
                "status_code": response.status_code,
                "duration": duration_ms,
            },
        )
        return response


def _register_error_handlers(app: Flask) -> None:
    def _json_error(message: str, status_code: int, **extra):
        payload = {"error": message, "status_code": status_code, **extra}
        request_id = getattr(g, "request_id", None)
        if request_id:
            payload["request_id"] = request_id
        return jsonify(payload), status_code

    @app.errorhandler(ExportError)
    def _handle_export_error(error: ExportError):
        log_fn = app.logger.warning if error.status_code < 500 else app.logger.error
        log_fn(
            "export_error",
            extra={"status_code": error.status_code, "error": error.message, "kind": type(error).__name__},
        )
        return _json_error(error.message, error.status_code)

    @app.errorhandler(ValidationError)
    def _handle_validation_error(error: ValidationError):
        details = [
            {"field": ".".join(str(part) for part in item["loc"]), "message": item["msg"]}
            for item in error.errors()
        ]
        app.logger.warning("validation_error", extra={"status_code": 400, "errors": details})
        return _json_error("Invalid export request.", 400, details=details)

    @app.errorhandler(HTTPException)
    def _handle_http_exception(error: HTTPException):
        status_code = error.code or 500
        message = error.description or "Request failed."
        log_fn = app.logger.warning if status_code < 500 else app.logger.error
        log_fn(
            "http_error",
            extra={"status_code": status_code, "error": message},
        )
        return _json_error(message, status_code)

    @app.errorhandler(Exception)
    def _handle_uncaught_exception(error: Exception):
        if isinstance(error, HTTPException):
            return _handle_http_exception(error)
        app.logger.exception("unhandled_exception")
        return _json_error("An unexpected error occurred.", 500)
