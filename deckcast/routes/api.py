from __future__ import annotations

from io import BytesIO
from uuid import uuid4

from flask import Blueprint, current_app, jsonify, request, send_file

from ..errors import DeliveryFailure
from ..export_jobs import (
    STATUS_FAILED,
    STATUS_QUEUED,
    STATUS_READY,
    TERMINAL_STATUSES,
    fetch_blob,
    fetch_job,
    request_cancel,
    save_job,
    update_job,
)
from ..schemas import ExportRequest
from ..services.video_exporter import ExportArtifact
from ..task_queue import get_task_queue, is_task_queue_healthy

bp = Blueprint("api", __name__)

WARNINGS_HEADER = "X-Deckcast-Export-Warnings"


def _get_exporter():
    return current_app.config["VIDEO_EXPORTER"]


def _parse_export_request() -> ExportRequest:
    return ExportRequest.model_validate(request.get_json(silent=True) or {})


def _presentation_from_request():
    return _parse_export_request().to_presentation(current_app.config.get("DEFAULT_THEME", "professional"))


def _should_use_queue() -> bool:
    if current_app.config.get("ENABLE_SYNC_EXPORT"):
        return False
    return is_task_queue_healthy(current_app)


def _attachment_response(data: bytes, filename: str, mimetype: str, warnings=()):
    try:
        response = send_file(
            BytesIO(data),
            mimetype=mimetype,
            as_attachment=True,
            download_name=filename,
            max_age=0,
        )
    except (OSError, ValueError) as exc:
        raise DeliveryFailure(f"Could not deliver {filename}: {exc}") from exc
    response.headers["Cache-Control"] = "no-store"
    if warnings:
        response.headers[WARNINGS_HEADER] = " | ".join(warnings)
    return response


def _artifact_response(artifact: ExportArtifact):
    return _attachment_response(artifact.data, artifact.filename, artifact.mimetype, artifact.warnings)


def _start_export_job(export_request: ExportRequest):
    job_id = uuid4().hex
    payload = export_request.model_dump(mode="json")
    job_payload = save_job(
        current_app,
        job_id,
        {
            "status": STATUS_QUEUED,
            "subject": export_request.subject,
            "slide_count": len(export_request.slides),
            "progress": {"current": 0, "total": len(export_request.slides), "message": "Queued"},
        },
    )

    queue = get_task_queue(current_app) if _should_use_queue() else None
    if queue is not None:
        try:
            queue.enqueue(
                "deckcast.tasks.export_job.process_export_job",
                job_id,
                payload=payload,
                job_id=job_id,
                job_timeout=int(current_app.config.get("WORK_QUEUE_TIMEOUT", 1800)),
            )
        except Exception as exc:  # pragma: no cover - enqueue failure
            current_app.logger.exception("export_job_enqueue_failed", extra={"job_id": job_id, "error": str(exc)})
            update_job(current_app, job_id, status=STATUS_FAILED, error="Failed to enqueue the export job.")
            return None
        current_app.logger.info("export_job_enqueued", extra={"job_id": job_id, "queue": queue.name})
        return job_payload
    return _process_export_inline(job_id, payload)


def _process_export_inline(job_id: str, payload: dict):
    from ..tasks.export_job import process_export_job

    try:
        process_export_job(job_id, payload=payload)
    except Exception as exc:
        current_app.logger.warning("export_job_inline_failed", extra={"job_id": job_id, "error": str(exc)})
    return fetch_job(current_app, job_id)


def _job_response(job: dict | None, status_code: int = 200):
    if job is None:
        return jsonify({"error": "Export job could not be created."}), 503
    return jsonify({"job": job}), status_code


@bp.route("/exports", methods=["POST"])
def create_export():
    export_request = _parse_export_request()
    if _should_use_queue():
        return _job_response(_start_export_job(export_request), 202)

    presentation = export_request.to_presentation(current_app.config.get("DEFAULT_THEME", "professional"))
    artifact = _get_exporter().export(presentation)
    return _artifact_response(artifact)


@bp.route("/exports/wav", methods=["POST"])
def export_wav():
    artifact = _get_exporter().export_wav(_presentation_from_request())
    return _artifact_response(artifact)


@bp.route("/exports/jobs", methods=["POST"])
def create_export_job():
    export_request = _parse_export_request()
    job = _start_export_job(export_request)
    status_code = 202 if job and job.get("status") not in TERMINAL_STATUSES else 200
    return _job_response(job, status_code)


@bp.route("/exports/jobs/<job_id>", methods=["GET"])
def get_export_job(job_id: str):
    job = fetch_job(current_app, job_id)
    if not job:
        return jsonify({"error": "Export job not found."}), 404
    return jsonify({"job": job})


@bp.route("/exports/jobs/<job_id>", methods=["DELETE"])
def cancel_export_job(job_id: str):
    job = fetch_job(current_app, job_id)
    if not job:
        return jsonify({"error": "Export job not found."}), 404
    if job.get("status") in TERMINAL_STATUSES:
        return jsonify({"error": f"Export job is already {job.get('status')}.", "job": job}), 409
    request_cancel(current_app, job_id)
    job = update_job(current_app, job_id, cancel_requested=True)
    current_app.logger.info("export_job_cancel_requested", extra={"job_id": job_id})
    return jsonify({"job": job}), 202


@bp.route("/exports/jobs/<job_id>/file", methods=["GET"])
def download_export_job(job_id: str):
    job = fetch_job(current_app, job_id)
    if not job:
        return jsonify({"error": "Export job not found."}), 404
    if job.get("status") != STATUS_READY:
        return jsonify({"error": "Export is not ready yet.", "job": job}), 409
    blob = fetch_blob(current_app, job_id)
    if not blob:
        return jsonify({"error": "Export file expired. Please export again."}), 410
    return _attachment_response(
        blob,
        job.get("suggested_filename") or f"{job_id}.mp4",
        job.get("mimetype") or "video/mp4",
        job.get("warnings") or (),
    )


@bp.route("/narration/timeline", methods=["POST"])
def narration_timeline():
    presentation = _presentation_from_request()
    exporter = _get_exporter()
    if request.args.get("mode") == "cached":
        durations = exporter.playback_durations(presentation)
        return jsonify({"durations_ms": durations, "total_duration_ms": sum(durations)})
    timeline = exporter.build_timeline(presentation)
    return jsonify({"timeline": timeline.to_dict()})


__all__ = ["bp"]
