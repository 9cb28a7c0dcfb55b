from __future__ import annotations

import io
import logging
import math
from enum import Enum
from fractions import Fraction
from typing import Callable, Iterable

import av
import numpy as np
from av.error import FFmpegError

from ..errors import ExportCancelled, ExportError, RecorderAcquisitionFailure
from ..models import Timeline
from .audio_mixer import CombinedAudioBuffer, sample_offset
from .clock import Clock, SteppedClock
from .realtime_renderer import RealtimeRenderer

LOGGER = logging.getLogger(__name__)

VIDEO_CODEC_CANDIDATES = ("libx264", "h264", "mpeg4")
AUDIO_CODEC = "aac"
AUDIO_BLOCK_SAMPLES = 1024
AUDIO_BIT_RATE = 128_000
CONTAINER_FORMAT = "mp4"
MIMETYPE = "video/mp4"


class RecorderState(str, Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    RECORDING = "recording"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


def frame_index(elapsed_ms: float, fps: int) -> int:
    # Small epsilon keeps exact frame boundaries from rounding down a frame.
    return int(math.floor(elapsed_ms * fps / 1000.0 + 1e-6))


def _open_mp4(buffer: io.BytesIO):
    return av.open(buffer, mode="w", format=CONTAINER_FORMAT)


class AudioPlayback:
    """Play cursor over the combined narration buffer.

    The cursor only ever moves forward, by whole blocks, to the sample that
    corresponds to the elapsed recording time.
    """

    def __init__(self, buffer: CombinedAudioBuffer, block_size: int = AUDIO_BLOCK_SAMPLES) -> None:
        self.buffer = buffer
        self.block_size = block_size
        self.position = 0
        self.playing = False

    @property
    def sample_rate(self) -> int:
        return self.buffer.sample_rate

    def start(self) -> None:
        self.position = 0
        self.playing = True

    def stop(self) -> None:
        self.playing = False

    def read_until(self, elapsed_ms: float, *, final: bool = False) -> list[np.ndarray]:
        if not self.playing:
            return []
        target = min(self.buffer.sample_count, sample_offset(elapsed_ms, self.sample_rate))
        blocks: list[np.ndarray] = []
        while self.position + self.block_size <= target:
            blocks.append(self.buffer.samples[:, self.position : self.position + self.block_size])
            self.position += self.block_size
        if final and self.position < target:
            blocks.append(self.buffer.samples[:, self.position : target])
            self.position = target
        return blocks


class StreamRecorder:
    """Records the rendered slides and the narration track into one MP4.

    ``record`` walks the state machine idle -> preparing -> recording ->
    finalizing -> done, or ends in failed. Picture and sound are both keyed
    off the same clock reading on every tick.
    """

    def __init__(
        self,
        *,
        fps: int = 30,
        clock: Clock | None = None,
        container_factory: Callable[[io.BytesIO], object] | None = None,
        video_codecs: Iterable[str] = VIDEO_CODEC_CANDIDATES,
    ) -> None:
        self.fps = int(fps)
        self.clock = clock or SteppedClock()
        self.container_factory = container_factory or _open_mp4
        self.video_codecs = tuple(video_codecs)
        self.state = RecorderState.IDLE
        self.video_codec: str | None = None
        self.frames_written = 0

    def record(
        self,
        timeline: Timeline,
        renderer: RealtimeRenderer,
        audio: CombinedAudioBuffer,
        *,
        should_cancel: Callable[[], bool] | None = None,
    ) -> bytes:
        if self.state is not RecorderState.IDLE:
            raise RuntimeError("A StreamRecorder records exactly once.")
        self._transition(RecorderState.PREPARING)
        output = io.BytesIO()
        container = None
        playback = AudioPlayback(audio)
        try:
            try:
                container = self.container_factory(output)
                video_stream = self._add_video_stream(container, renderer.size)
                audio_stream = self._add_audio_stream(container, audio)
            except (FFmpegError, OSError, ValueError) as exc:
                raise RecorderAcquisitionFailure(f"Could not set up the video recorder: {exc}") from exc

            self._transition(RecorderState.RECORDING)
            total_ms = timeline.total_duration_ms
            frame_interval = 1000.0 / self.fps
            start = self.clock.now_ms()
            playback.start()
            last_pts = -1
            while True:
                if should_cancel is not None and should_cancel():
                    raise ExportCancelled()
                elapsed = self.clock.now_ms() - start
                if elapsed >= total_ms:
                    break
                pts = frame_index(elapsed, self.fps)
                if pts != last_pts:
                    self._encode_frame(container, video_stream, renderer.frame_at(elapsed), pts)
                    last_pts = pts
                self._encode_audio(container, audio_stream, playback.read_until(elapsed))
                wait = (pts + 1) * frame_interval - elapsed
                self.clock.sleep_ms(wait if wait > 0 else frame_interval)

            self._transition(RecorderState.FINALIZING)
            self._encode_audio(container, audio_stream, playback.read_until(total_ms, final=True))
            playback.stop()
            for stream in (video_stream, audio_stream):
                for packet in stream.encode():
                    container.mux(packet)
            container.close()
            container = None
            data = output.getvalue()
            self._transition(RecorderState.DONE)
            return data
        except ExportError as exc:
            self._fail(exc)
            raise
        except FFmpegError as exc:
            self._fail(exc)
            raise ExportError(f"Video encoding failed: {exc}") from exc
        except Exception as exc:
            self._fail(exc)
            raise
        finally:
            playback.stop()
            if container is not None:
                self._close_quietly(container)
            output.close()

    def _add_video_stream(self, container, size: tuple[int, int]):
        last_error: Exception | None = None
        for codec in self.video_codecs:
            try:
                stream = container.add_stream(codec, rate=self.fps)
            except (FFmpegError, ValueError) as exc:
                last_error = exc
                LOGGER.debug("video_codec_unavailable", extra={"codec": codec, "error": str(exc)})
                continue
            stream.width = size[0]
            stream.height = size[1]
            stream.pix_fmt = "yuv420p"
            if codec == "libx264":
                stream.options = {"preset": "ultrafast", "profile": "main"}
            self.video_codec = codec
            LOGGER.info("video_codec_selected", extra={"codec": codec})
            return stream
        raise RecorderAcquisitionFailure(
            f"No supported video encoder among {', '.join(self.video_codecs)}: {last_error}"
        )

    def _add_audio_stream(self, container, audio: CombinedAudioBuffer):
        stream = container.add_stream(AUDIO_CODEC, rate=audio.sample_rate)
        stream.codec_context.layout = "stereo" if audio.channels > 1 else "mono"
        stream.codec_context.bit_rate = AUDIO_BIT_RATE
        return stream

    def _encode_frame(self, container, stream, pixels: np.ndarray, pts: int) -> None:
        frame = av.VideoFrame.from_ndarray(pixels, format="rgb24")
        frame.pts = pts
        frame.time_base = Fraction(1, self.fps)
        for packet in stream.encode(frame):
            container.mux(packet)
        self.frames_written += 1

    def _encode_audio(self, container, stream, blocks: list[np.ndarray]) -> None:
        for block in blocks:
            layout = "stereo" if block.shape[0] > 1 else "mono"
            frame = av.AudioFrame.from_ndarray(
                np.ascontiguousarray(block, dtype=np.float32), format="fltp", layout=layout
            )
            frame.sample_rate = stream.codec_context.sample_rate
            for packet in stream.encode(frame):
                container.mux(packet)

    def _transition(self, state: RecorderState) -> None:
        LOGGER.info("recorder_state", extra={"from_state": self.state.value, "to_state": state.value})
        self.state = state

    def _fail(self, exc: Exception) -> None:
        LOGGER.warning(
            "recorder_failed",
            extra={"from_state": self.state.value, "error": str(exc), "frames_written": self.frames_written},
        )
        self.state = RecorderState.FAILED

    def _close_quietly(self, container) -> None:
        try:
            container.close()
        except (FFmpegError, OSError, ValueError) as exc:
            LOGGER.debug("recorder_close_failed", extra={"error": str(exc)})


__all__ = [
    "AudioPlayback",
    "RecorderState",
    "StreamRecorder",
    "frame_index",
    "MIMETYPE",
]
