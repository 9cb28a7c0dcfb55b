from types import SimpleNamespace

import pytest
import requests

from deckcast.errors import SynthesisFailure
from deckcast.services.tts_service import VOICE_MAP, SpeechSynthesisClient, resolve_voice_id


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def _response(status_code=200, content=b"ID3audio", text=""):
    return SimpleNamespace(status_code=status_code, content=content, text=text)


def test_voice_resolution():
    assert resolve_voice_id("en", "male") == VOICE_MAP["en_male"]
    assert resolve_voice_id("ar", "female") == VOICE_MAP["ar_female"]
    assert resolve_voice_id("ar-SA", "female") == VOICE_MAP["ar_female"]
    assert resolve_voice_id("fr", "unknown") == VOICE_MAP["en_male"]


def test_synthesize_posts_expected_payload():
    session = FakeSession(_response())
    client = SpeechSynthesisClient("secret", base_url="https://tts.example/v1/", session=session, timeout=5)

    audio = client.synthesize("  Hello there ", "en", "female")

    assert audio == b"ID3audio"
    url, kwargs = session.calls[0]
    assert url == f"https://tts.example/v1/{VOICE_MAP['en_female']}"
    assert kwargs["headers"]["xi-api-key"] == "secret"
    assert kwargs["json"]["text"] == "Hello there"
    assert kwargs["json"]["model_id"] == "eleven_multilingual_v2"
    assert kwargs["json"]["voice_settings"]["style"] == 0.5
    assert kwargs["timeout"] == 5


@pytest.mark.parametrize(
    "session",
    [
        FakeSession(_response(status_code=500, text="boom")),
        FakeSession(_response(content=b"")),
        FakeSession(error=requests.ConnectionError("offline")),
    ],
)
def test_failures_raise_synthesis_failure(session):
    client = SpeechSynthesisClient("secret", session=session)
    with pytest.raises(SynthesisFailure):
        client.synthesize("Hello", "en", "male")


def test_missing_key_or_text_fails_without_request():
    session = FakeSession(_response())
    with pytest.raises(SynthesisFailure):
        SpeechSynthesisClient("", session=session).synthesize("Hello", "en", "male")
    with pytest.raises(SynthesisFailure):
        SpeechSynthesisClient("key", session=session).synthesize("   ", "en", "male")
    assert session.calls == []
