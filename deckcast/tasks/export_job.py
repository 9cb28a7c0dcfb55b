from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..errors import ExportCancelled
from ..export_jobs import (
    STATUS_CANCELLED,
    STATUS_FAILED,
    STATUS_PROCESSING,
    STATUS_READY,
    cancel_requested,
    clear_cancel,
    delete_blob,
    save_blob,
    update_job,
)
from ..schemas import ExportRequest
from .utils import export_app_context


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def process_export_job(job_id: str, *, payload: dict[str, Any]) -> None:
    with export_app_context() as app:
        _run_export(app, job_id, payload)


def _run_export(app, job_id: str, payload: dict[str, Any]) -> None:
    try:
        request_model = ExportRequest.model_validate(payload)
        presentation = request_model.to_presentation(app.config.get("DEFAULT_THEME", "professional"))
        update_job(app, job_id, status=STATUS_PROCESSING, started_at=_now_iso())

        def _progress(current: int, total: int, message: str) -> None:
            update_job(app, job_id, progress={"current": current, "total": total, "message": message})

        def _should_cancel() -> bool:
            return cancel_requested(app, job_id)

        exporter = app.config["VIDEO_EXPORTER"]
        artifact = exporter.export(presentation, progress=_progress, should_cancel=_should_cancel)
        save_blob(app, job_id, artifact.data)
        update_job(
            app,
            job_id,
            status=STATUS_READY,
            completed_at=_now_iso(),
            suggested_filename=artifact.filename,
            mimetype=artifact.mimetype,
            file_size=len(artifact.data),
            duration_ms=artifact.timeline.total_duration_ms,
            warnings=list(artifact.warnings),
        )
        app.logger.info("export_job_ready", extra={"job_id": job_id, "file_size": len(artifact.data)})
    except ExportCancelled:
        delete_blob(app, job_id)
        update_job(app, job_id, status=STATUS_CANCELLED, completed_at=_now_iso())
        app.logger.info("export_job_cancelled", extra={"job_id": job_id})
    except Exception as exc:
        delete_blob(app, job_id)
        message = getattr(exc, "message", None) or str(exc)
        app.logger.exception("export_job_failed", extra={"job_id": job_id, "error": message})
        update_job(app, job_id, status=STATUS_FAILED, error=message, completed_at=_now_iso())
        raise
    finally:
        clear_cancel(app, job_id)


__all__ = ["process_export_job"]
