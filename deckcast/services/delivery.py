from __future__ import annotations

import re
import time

DEFAULT_BASENAME = "presentation"
MAX_BASENAME_LENGTH = 50

_UNSAFE_CHARS = re.compile(r"[^a-z0-9؀-ۿ\s-]")
_WHITESPACE = re.compile(r"\s+")


def sanitize_subject(subject: str | None) -> str:
    cleaned = _UNSAFE_CHARS.sub("", (subject or "").lower())
    cleaned = _WHITESPACE.sub("-", cleaned)[:MAX_BASENAME_LENGTH]
    return cleaned or DEFAULT_BASENAME


def build_export_filename(subject: str | None, extension: str = "mp4", now_ms: int | None = None) -> str:
    """``<sanitized-subject>-<epoch-ms>.<ext>``, e.g. ``solar-power-1700000000000.mp4``."""
    stamp = int(now_ms if now_ms is not None else time.time() * 1000)
    return f"{sanitize_subject(subject)}-{stamp}.{extension.lstrip('.')}"


__all__ = ["build_export_filename", "sanitize_subject"]
