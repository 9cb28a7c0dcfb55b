from io import BytesIO

from flask import Blueprint, current_app, request, send_file

from ..schemas import NarrationPreviewRequest

tts_bp = Blueprint("tts", __name__)


@tts_bp.post("/tts")
def tts_generate():
    preview = NarrationPreviewRequest.model_validate(request.get_json(silent=True) or {})
    client = current_app.config["SPEECH_CLIENT"]
    audio_bytes = client.synthesize(preview.text, preview.language, preview.gender)

    buffer = BytesIO(audio_bytes)
    buffer.seek(0)

    return send_file(
        buffer,
        mimetype="audio/mpeg",
        as_attachment=False,
        download_name="narration.mp3",
    )
