from __future__ import annotations

import json
import logging
from logging.config import dictConfig
from pathlib import Path
from typing import Any, Iterable

from flask import g, has_request_context, request

REQUEST_FIELDS = ("request_id", "method", "path", "remote_addr", "status_code", "duration")

_RESERVED_RECORD_FIELDS = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "exc_info",
    "exc_text",
    "stack_info",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "process",
    "processName",
    "taskName",
    "message",
    "asctime",
    "stacklevel",
    *REQUEST_FIELDS,
}


class RequestContextFilter(logging.Filter):
    """Injects request specific metadata into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key in REQUEST_FIELDS:
            setattr(record, key, getattr(record, key, None))

        if has_request_context():
            record.request_id = getattr(g, "request_id", None) or record.request_id or "n/a"
            record.method = request.method
            record.path = request.full_path.rstrip("?")
            record.remote_addr = request.headers.get("X-Forwarded-For", request.remote_addr)
        else:
            record.request_id = record.request_id or "system"

        return True


class JsonFormatter(logging.Formatter):
    """Formats log records as JSON, including the ``extra=`` fields pipeline code attaches."""

    default_time_format = "%Y-%m-%dT%H:%M:%S"
    default_msec_format = "%s.%03dZ"

    def __init__(self, *, excluded_keys: Iterable[str] | None = None):
        super().__init__()
        self._excluded_keys = set(excluded_keys or ())

    def format(self, record: logging.LogRecord) -> str:
        log_record: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key in REQUEST_FIELDS:
            value = getattr(record, key, None)
            if value is not None and key not in self._excluded_keys:
                log_record[key] = value

        for key, value in record.__dict__.items():
            if key in _RESERVED_RECORD_FIELDS or key in log_record or key.startswith("_"):
                continue
            if key in self._excluded_keys:
                continue
            log_record[key] = _coerce_json_value(value)

        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log_record, default=_serialize_default, ensure_ascii=True)


def _coerce_json_value(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, dict):
        return {str(key): _coerce_json_value(val) for key, val in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_coerce_json_value(item) for item in value]
    return str(value)


def _serialize_default(value: Any) -> Any:
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


def _resolve_log_level(level: Any) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        normalized = level.strip()
        if not normalized:
            return logging.INFO
        if normalized.isdigit():
            return int(normalized)
        return getattr(logging, normalized.upper(), logging.INFO)
    return logging.INFO


def _clear_logger_handlers(*loggers: logging.Logger) -> None:
    for logger in loggers:
        if not logger:
            continue
        for handler in list(logger.handlers):
            handler.close()
            logger.removeHandler(handler)


def setup_logging(app) -> None:
    """Configure structured logging with selectable verbosity profiles."""

    log_format = str(app.config.get("LOG_FORMAT", "json")).lower()
    log_to_stdout = bool(app.config.get("LOG_TO_STDOUT", True))
    log_to_file = bool(app.config.get("LOG_TO_FILE", True))
    max_bytes = int(app.config.get("LOG_FILE_MAX_BYTES", 10 * 1024 * 1024))
    backup_count = int(app.config.get("LOG_FILE_BACKUP_COUNT", 5))
    verbosity = str(app.config.get("LOG_VERBOSITY", "essential")).strip().lower()

    logging.disable(logging.NOTSET)

    if verbosity not in {"none", "essential", "verbose"}:
        verbosity = "essential"

    if verbosity == "none":
        _clear_logger_handlers(logging.getLogger(), logging.getLogger("werkzeug"), app.logger)
        logging.disable(logging.CRITICAL)
        app.logger.disabled = True
        return

    app.logger.disabled = False

    log_level_value = _resolve_log_level(app.config.get("LOG_LEVEL", "INFO"))
    if verbosity == "essential":
        log_level_value = max(log_level_value, logging.WARNING)
    log_level = logging.getLevelName(log_level_value)

    handler_names: list[str] = []
    handlers: dict[str, Any] = {}

    if log_format == "json":
        formatter_config: dict[str, Any] = {"()": "deckcast.logging_utils.JsonFormatter"}
    else:
        formatter_config = {
            "format": "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        }

    if log_to_stdout:
        handler_names.append("console")
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": "standard",
            "filters": ["request_meta"],
        }

    if log_to_file:
        log_dir_cfg = app.config.get("LOG_DIR")
        log_dir = Path(log_dir_cfg) if log_dir_cfg else Path(app.instance_path) / "logs"
        log_dir.mkdir(parents=True, exist_ok=True)
        log_file = Path(app.config.get("LOG_FILE") or log_dir / "deckcast.log")
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler_names.append("file")
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": log_level,
            "formatter": "standard",
            "filename": str(log_file),
            "maxBytes": max_bytes,
            "backupCount": backup_count,
            "encoding": "utf-8",
            "filters": ["request_meta"],
        }

    if not handler_names:
        handler_names.append("console")
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "level": log_level,
            "formatter": "standard",
            "filters": ["request_meta"],
        }

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "request_meta": {"()": "deckcast.logging_utils.RequestContextFilter"},
            },
            "formatters": {"standard": formatter_config},
            "handlers": handlers,
            "root": {
                "level": log_level,
                "handlers": handler_names,
            },
            "loggers": {
                "werkzeug": {
                    "level": "WARNING",
                    "handlers": handler_names,
                    "propagate": False,
                }
            },
        }
    )


__all__ = ["JsonFormatter", "RequestContextFilter", "setup_logging"]
