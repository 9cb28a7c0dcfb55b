from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from .task_queue import get_redis_connection

JOB_PREFIX = "exportjob:v1:"
BLOB_PREFIX = "exportjobblob:v1:"
CANCEL_PREFIX = "exportjobcancel:v1:"

STATUS_QUEUED = "queued"
STATUS_PROCESSING = "processing"
STATUS_READY = "ready"
STATUS_FAILED = "failed"
STATUS_CANCELLED = "cancelled"
TERMINAL_STATUSES = {STATUS_READY, STATUS_FAILED, STATUS_CANCELLED}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _job_key(job_id: str) -> str:
    return f"{JOB_PREFIX}{job_id}"


def _blob_key(job_id: str) -> str:
    return f"{BLOB_PREFIX}{job_id}"


def _cancel_key(job_id: str) -> str:
    return f"{CANCEL_PREFIX}{job_id}"


def job_ttl(app) -> int:
    return int(app.config.get("EXPORT_JOB_TTL_SECONDS", 7200))


def save_job(app, job_id: str, payload: dict[str, Any]) -> dict[str, Any]:
    conn = get_redis_connection(app)
    payload = dict(payload)
    payload.setdefault("job_id", job_id)
    timestamp = _now_iso()
    payload.setdefault("requested_at", timestamp)
    payload["updated_at"] = timestamp
    conn.setex(_job_key(job_id), job_ttl(app), json.dumps(payload))
    return payload


def update_job(app, job_id: str, **fields: Any) -> dict[str, Any]:
    existing = fetch_job(app, job_id) or {"job_id": job_id}
    existing.update(fields)
    return save_job(app, job_id, existing)


def fetch_job(app, job_id: str) -> dict[str, Any] | None:
    data = get_redis_connection(app).get(_job_key(job_id))
    if not data:
        return None
    try:
        return json.loads(data)
    except json.JSONDecodeError:
        app.logger.warning("export_job_payload_corrupt", extra={"job_id": job_id})
        return None


def save_blob(app, job_id: str, data: bytes) -> None:
    get_redis_connection(app).setex(_blob_key(job_id), job_ttl(app), data)


def fetch_blob(app, job_id: str) -> bytes | None:
    return get_redis_connection(app).get(_blob_key(job_id))


def delete_blob(app, job_id: str) -> None:
    get_redis_connection(app).delete(_blob_key(job_id))


def request_cancel(app, job_id: str) -> None:
    get_redis_connection(app).setex(_cancel_key(job_id), job_ttl(app), b"1")


def cancel_requested(app, job_id: str) -> bool:
    return bool(get_redis_connection(app).get(_cancel_key(job_id)))


def clear_cancel(app, job_id: str) -> None:
    get_redis_connection(app).delete(_cancel_key(job_id))


__all__ = [
    "save_job",
    "update_job",
    "fetch_job",
    "save_blob",
    "fetch_blob",
    "delete_blob",
    "request_cancel",
    "cancel_requested",
    "clear_cancel",
    "job_ttl",
    "STATUS_QUEUED",
    "STATUS_PROCESSING",
    "STATUS_READY",
    "STATUS_FAILED",
    "STATUS_CANCELLED",
    "TERMINAL_STATUSES",
]
