from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from ..errors import BufferTooLarge, DecodeFailure
from ..models import Slide, Timeline
from .audio_decoder import DEFAULT_SAMPLE_RATE, AudioDecoder, DecodedAudio

LOGGER = logging.getLogger(__name__)

OUTPUT_CHANNELS = 2
BYTES_PER_FLOAT = 4
DEFAULT_MAX_BUFFER_BYTES = 512 * 1024 * 1024


@dataclass(frozen=True)
class CombinedAudioBuffer:
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


def sample_offset(ms: float, sample_rate: int) -> int:
    return int(round(ms * sample_rate / 1000.0))


class AudioMixer:
    def __init__(
        self,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        *,
        decoder: AudioDecoder | None = None,
        max_buffer_bytes: int = DEFAULT_MAX_BUFFER_BYTES,
    ) -> None:
        self.sample_rate = sample_rate
        self.decoder = decoder or AudioDecoder(sample_rate=sample_rate)
        self.max_buffer_bytes = max_buffer_bytes

    def total_samples(self, timeline: Timeline) -> int:
        return int(math.ceil(timeline.total_duration_ms * self.sample_rate / 1000.0))

    def mix(
        self,
        slides: Sequence[Slide],
        clips: Sequence[bytes | DecodedAudio | None],
        timeline: Timeline,
    ) -> CombinedAudioBuffer:
        """Place every slide's narration at its timeline offset in one stereo buffer.

        Missing or undecodable clips leave their interval silent. Samples are
        copied as-is; nothing is summed, clipped or normalized.
        """
        if len(clips) != len(timeline):
            raise ValueError("Expected one audio clip slot per timeline entry.")
        total = self.total_samples(timeline)
        required = total * OUTPUT_CHANNELS * BYTES_PER_FLOAT
        if required > self.max_buffer_bytes:
            raise BufferTooLarge(
                f"Combined narration needs {required} bytes, above the {self.max_buffer_bytes} byte limit."
            )

        buffer = np.zeros((OUTPUT_CHANNELS, total), dtype=np.float32)
        for entry in timeline:
            decoded = self._as_decoded(clips[entry.slide_index], slides, entry.slide_index)
            if decoded is None:
                continue
            start = sample_offset(entry.start_ms, self.sample_rate)
            stop = min(total, sample_offset(entry.end_ms, self.sample_rate))
            length = min(decoded.sample_count, stop - start)
            if length <= 0:
                continue
            left = decoded.samples[0, :length]
            right = decoded.samples[1, :length] if decoded.channels > 1 else left
            buffer[0, start : start + length] = left
            buffer[1, start : start + length] = right
        return CombinedAudioBuffer(samples=buffer, sample_rate=self.sample_rate)

    def _as_decoded(self, clip, slides: Sequence[Slide], index: int) -> DecodedAudio | None:
        if clip is None:
            return None
        if isinstance(clip, DecodedAudio):
            decoded = clip
        else:
            if not len(clip):
                return None
            try:
                decoded = self.decoder.decode(clip)
            except DecodeFailure as exc:
                slide_id = slides[index].id if index < len(slides) else "unknown"
                LOGGER.warning("mix_clip_decode_failed", extra={"slide_id": slide_id, "error": exc.message})
                return None
        if decoded.sample_rate != self.sample_rate:
            LOGGER.warning(
                "mix_clip_sample_rate_mismatch",
                extra={"expected": self.sample_rate, "actual": decoded.sample_rate},
            )
            return None
        return decoded


__all__ = ["AudioMixer", "CombinedAudioBuffer", "sample_offset"]
