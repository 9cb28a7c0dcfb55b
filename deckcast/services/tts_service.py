from __future__ import annotations

import logging

import requests

from ..errors import SynthesisFailure
from ..models import VoiceGender

LOGGER = logging.getLogger(__name__)

DEFAULT_TTS_URL = "https://api.elevenlabs.io/v1/text-to-speech"
DEFAULT_MODEL_ID = "eleven_multilingual_v2"

VOICE_MAP = {
    "ar_male": "G1QUjBCuRBbLbAmYlTgl",
    "ar_female": "u0TsaWvt0v8migutHM3M",
    "en_male": "uju3wxzG5OhpWcoi3SMy",
    "en_female": "gh8WokH7VR2QkmMmwWHS",
}

VOICE_SETTINGS = {
    "stability": 1.0,
    "similarity_boost": 1.0,
    "style": 0.5,
    "use_speaker_boost": True,
}


def resolve_voice_id(language: str | None, voice: str | VoiceGender | None) -> str:
    lang = "ar" if (language or "").strip().lower().startswith("ar") else "en"
    gender = VoiceGender.coerce(voice).value
    return VOICE_MAP.get(f"{lang}_{gender}", VOICE_MAP["en_male"])


class SpeechSynthesisClient:
    """Requests narration audio from an ElevenLabs-compatible speech endpoint."""

    def __init__(
        self,
        api_key: str | None,
        *,
        base_url: str = DEFAULT_TTS_URL,
        model_id: str = DEFAULT_MODEL_ID,
        timeout: float = 60.0,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key or ""
        self.base_url = (base_url or DEFAULT_TTS_URL).rstrip("/")
        self.model_id = model_id or DEFAULT_MODEL_ID
        self.timeout = timeout
        self._session = session or requests.Session()

    def synthesize(self, text: str, language: str, voice: str | VoiceGender) -> bytes:
        """Return raw compressed audio for ``text``; raises SynthesisFailure."""
        cleaned = (text or "").strip()
        if not cleaned:
            raise SynthesisFailure("Missing or empty narration text.")
        if not self.api_key:
            raise SynthesisFailure("Speech synthesis API key is not configured.")

        voice_id = resolve_voice_id(language, voice)
        headers = {
            "Accept": "audio/mpeg",
            "Content-Type": "application/json",
            "xi-api-key": self.api_key,
        }
        payload = {
            "text": cleaned,
            "model_id": self.model_id,
            "voice_settings": VOICE_SETTINGS,
        }
        try:
            resp = self._session.post(
                f"{self.base_url}/{voice_id}",
                json=payload,
                headers=headers,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise SynthesisFailure(f"Speech service unreachable: {exc}") from exc

        if resp.status_code != 200:
            raise SynthesisFailure(f"Speech service error {resp.status_code}: {resp.text[:500]}")
        if not resp.content:
            raise SynthesisFailure("Speech service returned no audio.")

        LOGGER.info(
            "narration_synthesized",
            extra={"voice_id": voice_id, "text_length": len(cleaned), "audio_size": len(resp.content)},
        )
        return resp.content


__all__ = ["SpeechSynthesisClient", "resolve_voice_id", "VOICE_MAP"]
