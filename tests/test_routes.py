from deckcast.export_jobs import cancel_requested, fetch_job, save_job
from deckcast.services.stream_recorder import StreamRecorder


def test_sync_export_streams_attachment(client, export_payload):
    response = client.post("/api/exports", json=export_payload, headers={"X-Request-ID": "req-1"})

    assert response.status_code == 200
    assert response.mimetype == "video/mp4"
    disposition = response.headers["Content-Disposition"]
    assert disposition.startswith("attachment")
    assert "solar-power-101-" in disposition and ".mp4" in disposition
    assert response.headers["Cache-Control"] == "no-store"
    assert response.headers["X-Request-ID"] == "req-1"
    assert "X-Response-Time" in response.headers
    assert "X-Deckcast-Export-Warnings" not in response.headers
    assert response.data[4:8] == b"ftyp"


def test_export_reports_silent_slides(client, export_payload, speech_client):
    speech_client.failing.add("Solar Power. An overview")
    response = client.post("/api/exports", json=export_payload)
    assert response.status_code == 200
    assert "Slide 1" in response.headers["X-Deckcast-Export-Warnings"]


def test_apply_voice_to_all_overrides_slide_voices(client, export_payload, speech_client):
    export_payload["applyVoiceToAll"] = "female"
    client.post("/api/exports/wav", json=export_payload)
    assert {call[2] for call in speech_client.calls} == {"female"}


def test_wav_export(client, export_payload):
    response = client.post("/api/exports/wav", json=export_payload)
    assert response.status_code == 200
    assert response.mimetype == "audio/wav"
    assert response.data[:4] == b"RIFF"
    assert ".wav" in response.headers["Content-Disposition"]


def test_invalid_payload_returns_400(client):
    response = client.post("/api/exports", json={"subject": "x", "slides": []})
    assert response.status_code == 400
    body = response.get_json()
    assert body["status_code"] == 400
    assert body["details"]
    assert "request_id" in body


def test_buffer_too_large_maps_to_413(app, client, export_payload):
    app.config["VIDEO_EXPORTER"].mixer.max_buffer_bytes = 16
    response = client.post("/api/exports", json=export_payload)
    assert response.status_code == 413
    assert "byte limit" in response.get_json()["error"]


def test_recorder_failure_maps_to_503(app, client, export_payload):
    app.config["VIDEO_EXPORTER"].recorder_factory = lambda: StreamRecorder(fps=5, video_codecs=("nope",))
    response = client.post("/api/exports", json=export_payload)
    assert response.status_code == 503


def test_inline_job_lifecycle(client, export_payload):
    created = client.post("/api/exports/jobs", json=export_payload)
    assert created.status_code == 200
    job = created.get_json()["job"]
    assert job["status"] == "ready"
    assert job["suggested_filename"].endswith(".mp4")
    assert job["progress"]["message"] == "Recording video"

    status = client.get(f"/api/exports/jobs/{job['job_id']}")
    assert status.get_json()["job"]["status"] == "ready"

    download = client.get(f"/api/exports/jobs/{job['job_id']}/file")
    assert download.status_code == 200
    assert download.mimetype == "video/mp4"
    assert download.data[4:8] == b"ftyp"

    cancel = client.delete(f"/api/exports/jobs/{job['job_id']}")
    assert cancel.status_code == 409


def test_missing_job_is_404(client):
    assert client.get("/api/exports/jobs/nope").status_code == 404
    assert client.delete("/api/exports/jobs/nope").status_code == 404
    assert client.get("/api/exports/jobs/nope/file").status_code == 404


def test_cancel_queued_job(app, client):
    with app.app_context():
        save_job(app, "queued-1", {"status": "queued"})

    response = client.delete("/api/exports/jobs/queued-1")

    assert response.status_code == 202
    assert response.get_json()["job"]["cancel_requested"] is True
    with app.app_context():
        assert cancel_requested(app, "queued-1")
        assert fetch_job(app, "queued-1")["status"] == "queued"


def test_file_for_unfinished_job_is_409(app, client):
    with app.app_context():
        save_job(app, "busy", {"status": "processing"})
    assert client.get("/api/exports/jobs/busy/file").status_code == 409


def test_timeline_endpoint(client, export_payload):
    response = client.post("/api/narration/timeline", json=export_payload)
    timeline = response.get_json()["timeline"]
    assert [entry["slide_index"] for entry in timeline["entries"]] == [0, 1]
    assert timeline["entries"][1]["start_ms"] == timeline["entries"][0]["duration_ms"]


def test_cached_timeline_does_not_synthesize(client, export_payload, speech_client):
    response = client.post("/api/narration/timeline?mode=cached", json=export_payload)
    body = response.get_json()
    assert speech_client.calls == []
    assert body["durations_ms"] == [5000.0, 5000.0]
    assert body["total_duration_ms"] == 10000.0


def test_tts_preview(client, speech_client):
    response = client.post("/api/tts", json={"text": "Hello", "language": "ar", "gender": "female"})
    assert response.status_code == 200
    assert response.mimetype == "audio/mpeg"
    assert speech_client.calls == [("Hello", "ar", "female")]


def test_tts_preview_failure_is_502(client, speech_client):
    speech_client.failing.add("Hello")
    response = client.post("/api/tts", json={"text": "Hello"})
    assert response.status_code == 502
    assert response.get_json()["error"]


def test_tts_preview_requires_text(client):
    assert client.post("/api/tts", json={"text": "   "}).status_code == 400


def test_unknown_route_is_json_404(client):
    response = client.get("/api/does-not-exist")
    assert response.status_code == 404
    assert response.get_json()["status_code"] == 404
