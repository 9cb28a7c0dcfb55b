from __future__ import annotations

import io
import logging
import subprocess
from dataclasses import dataclass

import av
import numpy as np
from av.error import FFmpegError

from ..errors import DecodeFailure

LOGGER = logging.getLogger(__name__)

DEFAULT_SAMPLE_RATE = 44100
HEURISTIC_FLOOR_MS = 3000.0
CHARS_PER_WORD = 5
WORDS_PER_MINUTE = 150


@dataclass(frozen=True)
class DecodedAudio:
    samples: np.ndarray  # float32, shape (channels, sample_count)
    sample_rate: int

    @property
    def channels(self) -> int:
        return int(self.samples.shape[0])

    @property
    def sample_count(self) -> int:
        return int(self.samples.shape[1])

    @property
    def duration_ms(self) -> float:
        return self.sample_count / self.sample_rate * 1000.0


@dataclass(frozen=True)
class ResolvedAudio:
    duration_ms: float
    decoded: DecodedAudio | None

    @property
    def estimated(self) -> bool:
        return self.decoded is None


def estimate_duration_ms(text: str) -> float:
    """Reading-speed estimate used when narration audio cannot be measured."""
    words = len(text or "") / CHARS_PER_WORD
    return max(HEURISTIC_FLOOR_MS, words / WORDS_PER_MINUTE * 60_000.0)


class AudioDecoder:
    def __init__(self, sample_rate: int = DEFAULT_SAMPLE_RATE) -> None:
        self.sample_rate = sample_rate

    def decode(self, audio_bytes: bytes) -> DecodedAudio:
        if not audio_bytes:
            raise DecodeFailure("No audio bytes to decode.")
        samples = self._decode_with_pyav(audio_bytes)
        if samples is None or not samples.shape[1]:
            samples = self._decode_via_ffmpeg(audio_bytes)
        if samples is None or not samples.shape[1]:
            raise DecodeFailure()
        return DecodedAudio(samples=samples, sample_rate=self.sample_rate)

    def _decode_with_pyav(self, audio_bytes: bytes) -> np.ndarray | None:
        try:
            container = av.open(io.BytesIO(audio_bytes))
        except (FFmpegError, ValueError):
            return None
        try:
            if not container.streams.audio:
                return None
            stream = container.streams.audio[0]
            layout = "mono" if len(stream.codec_context.layout.channels) == 1 else "stereo"
            resampler = av.audio.resampler.AudioResampler(
                format="fltp",
                layout=layout,
                rate=self.sample_rate,
            )
            chunks: list[np.ndarray] = []
            for frame in container.decode(stream):
                frame.pts = None
                for chunk in resampler.resample(frame):
                    chunks.append(chunk.to_ndarray().astype(np.float32))
            for chunk in resampler.resample(None):
                chunks.append(chunk.to_ndarray().astype(np.float32))
            if not chunks:
                return None
            return np.concatenate(chunks, axis=1)
        except FFmpegError:
            return None
        finally:
            container.close()

    def _decode_via_ffmpeg(self, audio_bytes: bytes) -> np.ndarray | None:
        cmd = [
            "ffmpeg",
            "-hide_banner",
            "-loglevel",
            "error",
            "-i",
            "pipe:0",
            "-f",
            "s16le",
            "-ac",
            "1",
            "-ar",
            str(self.sample_rate),
            "pipe:1",
        ]
        try:
            result = subprocess.run(cmd, input=audio_bytes, capture_output=True, check=True)
        except FileNotFoundError:
            LOGGER.warning("ffmpeg binary missing; cannot decode narration audio fallback.")
            return None
        except subprocess.CalledProcessError as exc:
            LOGGER.warning("ffmpeg decode failed: %s", exc)
            return None
        data = result.stdout
        if not data:
            return None
        pcm = np.frombuffer(data, dtype=np.int16).astype(np.float32)
        if not len(pcm):
            return None
        pcm /= 32768.0
        return pcm.reshape(1, -1)


class DurationResolver:
    """Measures narration clips to the sample, falling back to a reading estimate."""

    def __init__(self, decoder: AudioDecoder | None = None) -> None:
        self.decoder = decoder or AudioDecoder()

    def resolve(self, audio_bytes: bytes | None, text: str = "") -> ResolvedAudio:
        try:
            decoded = self.decoder.decode(audio_bytes or b"")
        except DecodeFailure as exc:
            estimate = estimate_duration_ms(text)
            LOGGER.warning(
                "narration_decode_failed",
                extra={"error": exc.message, "estimated_ms": estimate, "audio_size": len(audio_bytes or b"")},
            )
            return ResolvedAudio(duration_ms=estimate, decoded=None)
        return ResolvedAudio(duration_ms=decoded.duration_ms, decoded=decoded)


__all__ = [
    "AudioDecoder",
    "DecodedAudio",
    "DurationResolver",
    "ResolvedAudio",
    "estimate_duration_ms",
]
