from __future__ import annotations

from pathlib import Path
from typing import Any

import numpy as np
import pytest

import sys

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from deckcast import create_app
from deckcast.errors import SynthesisFailure
from deckcast.models import Slide, SlideRole, VoiceGender
from deckcast.services.audio_mixer import CombinedAudioBuffer
from deckcast.services.wav_writer import encode_wav

SAMPLE_RATE = 44100


def make_wav_bytes(duration_ms: float, *, sample_rate: int = SAMPLE_RATE, channels: int = 1, freq: float = 440.0) -> bytes:
    count = int(round(duration_ms * sample_rate / 1000.0))
    t = np.arange(count, dtype=np.float32) / sample_rate
    tone = (0.25 * np.sin(2 * np.pi * freq * t)).astype(np.float32)
    samples = np.vstack([tone] * channels)
    return encode_wav(CombinedAudioBuffer(samples=samples, sample_rate=sample_rate))


def make_slide(idx: int = 1, **overrides) -> Slide:
    fields: dict[str, Any] = {
        "id": f"s{idx}",
        "slide_number": idx,
        "role": SlideRole.CONTENT,
        "title": f"Slide {idx}",
        "subtitle": "",
        "bullets": (),
        "voice_gender": VoiceGender.MALE,
    }
    fields.update(overrides)
    return Slide(**fields)


class DummySpeechClient:
    """Returns short tone WAVs; durations are looked up by narration text."""

    def __init__(self, default_ms: float = 1000.0) -> None:
        self.default_ms = default_ms
        self.durations: dict[str, float] = {}
        self.failing: set[str] = set()
        self.raw: dict[str, bytes] = {}
        self.calls: list[tuple[str, str, str]] = []

    def synthesize(self, text: str, language: str, voice) -> bytes:
        self.calls.append((text, language, VoiceGender.coerce(voice).value))
        if text in self.failing:
            raise SynthesisFailure("speech service unavailable")
        if text in self.raw:
            return self.raw[text]
        return make_wav_bytes(self.durations.get(text, self.default_ms))


@pytest.fixture
def speech_client() -> DummySpeechClient:
    return DummySpeechClient()


@pytest.fixture
def slide_factory():
    return make_slide


@pytest.fixture
def app(tmp_path: Path, speech_client: DummySpeechClient):
    app = create_app(
        {
            "TESTING": True,
            "DEPLOY_PROFILE": "test",
            "REDIS_URL": "",
            "LOG_TO_FILE": False,
            "LOG_DIR": str(tmp_path / "logs"),
            "SPEECH_CLIENT": speech_client,
            "VIDEO_WIDTH": 160,
            "VIDEO_HEIGHT": 90,
            "VIDEO_FPS": 5,
        }
    )
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def export_payload() -> dict[str, Any]:
    return {
        "subject": "Solar Power 101",
        "language": "en",
        "theme": "academic",
        "slides": [
            {"id": "cover", "slideNumber": 1, "role": "cover", "title": "Solar Power", "subtitle": "An overview"},
            {
                "id": "body",
                "slideNumber": 2,
                "role": "content",
                "title": "Why it matters",
                "bullets": ["Cheap", "Clean"],
                "voiceGender": "female",
            },
        ],
    }
