from __future__ import annotations

import struct

import numpy as np

from .audio_mixer import CombinedAudioBuffer

WAV_HEADER_SIZE = 44
PCM_FORMAT = 1
BIT_DEPTH = 16

_HEADER = struct.Struct("<4sI4s4sIHHIIHH4sI")


def encode_wav(buffer: CombinedAudioBuffer) -> bytes:
    """Serialize ``buffer`` as a canonical 16-bit PCM RIFF/WAVE file."""
    channels = buffer.channels
    bytes_per_sample = BIT_DEPTH // 8
    block_align = channels * bytes_per_sample
    data_length = buffer.sample_count * block_align

    header = _HEADER.pack(
        b"RIFF",
        WAV_HEADER_SIZE + data_length - 8,
        b"WAVE",
        b"fmt ",
        16,
        PCM_FORMAT,
        channels,
        buffer.sample_rate,
        buffer.sample_rate * block_align,
        block_align,
        BIT_DEPTH,
        b"data",
        data_length,
    )
    return header + _quantize(buffer.samples).tobytes()


def _quantize(samples: np.ndarray) -> np.ndarray:
    # Asymmetric scale so -1.0 maps to -32768 and 1.0 to 32767, truncated toward zero.
    clipped = np.clip(samples.astype(np.float64), -1.0, 1.0)
    scaled = np.where(clipped < 0, clipped * 0x8000, clipped * 0x7FFF)
    pcm = np.trunc(scaled).astype("<i2")
    return np.ascontiguousarray(pcm.T).reshape(-1)


__all__ = ["encode_wav", "WAV_HEADER_SIZE"]
