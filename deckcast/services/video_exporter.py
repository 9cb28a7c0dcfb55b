from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from ..errors import DeliveryFailure, ExportCancelled, SynthesisFailure
from ..models import NarrationUnit, Presentation, Timeline
from .audio_decoder import DEFAULT_SAMPLE_RATE, estimate_duration_ms
from .audio_mixer import AudioMixer, CombinedAudioBuffer
from .clock import Clock, MonotonicClock, SteppedClock
from .delivery import build_export_filename
from .narration_cache import NarrationCache
from .narration_text import build_narration_text
from .realtime_renderer import RealtimeRenderer
from .slide_painter import DEFAULT_SIZE, SlidePainter
from .stream_recorder import MIMETYPE, StreamRecorder
from .timeline import EMPTY_SLIDE_DURATION_MS, TRANSITION_GAP_MS, compose_timeline
from .wav_writer import encode_wav

LOGGER = logging.getLogger(__name__)

WAV_MIMETYPE = "audio/wav"

ProgressCallback = Callable[[int, int, str], None]
CancelCheck = Callable[[], bool]


@dataclass(frozen=True)
class NarrationPlan:
    units: tuple[NarrationUnit, ...]
    timeline: Timeline
    warnings: tuple[str, ...]


@dataclass(frozen=True)
class ExportArtifact:
    data: bytes
    filename: str
    mimetype: str
    timeline: Timeline
    warnings: tuple[str, ...] = ()
    wav_bytes: bytes | None = None


class NarratedVideoExporter:
    """Runs the full export: narration, timeline, mix, recording, naming."""

    def __init__(
        self,
        narration_cache: NarrationCache,
        *,
        sample_rate: int = DEFAULT_SAMPLE_RATE,
        transition_gap_ms: float = TRANSITION_GAP_MS,
        empty_slide_duration_ms: float = EMPTY_SLIDE_DURATION_MS,
        video_size: tuple[int, int] = DEFAULT_SIZE,
        fps: int = 30,
        realtime: bool = False,
        max_buffer_bytes: int | None = None,
        image_fetcher: Callable[[str], bytes] | None = None,
        recorder_factory: Callable[[], StreamRecorder] | None = None,
    ) -> None:
        self.narration_cache = narration_cache
        self.sample_rate = sample_rate
        self.transition_gap_ms = transition_gap_ms
        self.empty_slide_duration_ms = empty_slide_duration_ms
        self.video_size = video_size
        self.fps = fps
        self.realtime = realtime
        mixer_kwargs = {"max_buffer_bytes": max_buffer_bytes} if max_buffer_bytes else {}
        self.mixer = AudioMixer(sample_rate, **mixer_kwargs)
        self.image_fetcher = image_fetcher
        self.recorder_factory = recorder_factory or self._default_recorder

    # ------------------------------------------------------------------
    # Narration and timeline
    # ------------------------------------------------------------------
    def collect_narration(
        self,
        presentation: Presentation,
        *,
        progress: ProgressCallback | None = None,
        should_cancel: CancelCheck | None = None,
    ) -> NarrationPlan:
        """Resolve every slide's narration one at a time, in slide order."""
        slides = presentation.slides
        total = len(slides)
        units: list[NarrationUnit] = []
        warnings: list[str] = []
        for idx, slide in enumerate(slides):
            if should_cancel is not None and should_cancel():
                raise ExportCancelled()
            if progress is not None:
                progress(idx + 1, total, f"Generating audio for slide {idx + 1}/{total}")

            text = build_narration_text(slide)
            if not text:
                units.append(NarrationUnit(slide_index=idx, text="", audio_bytes=None, duration_ms=None))
                continue

            try:
                cached = self.narration_cache.get_or_fetch(slide, slide.voice_gender, presentation.language)
            except SynthesisFailure as exc:
                LOGGER.warning(
                    "narration_synthesis_failed",
                    extra={"slide_id": slide.id, "slide_index": idx, "error": exc.message},
                )
                warnings.append(f"Slide {idx + 1}: narration unavailable, exported silent.")
                units.append(
                    NarrationUnit(slide_index=idx, text=text, audio_bytes=None, duration_ms=estimate_duration_ms(text))
                )
                continue

            if cached.audio_bytes is None:
                warnings.append(f"Slide {idx + 1}: narration audio could not be decoded, exported silent.")
            units.append(
                NarrationUnit(
                    slide_index=idx,
                    text=text,
                    audio_bytes=cached.audio_bytes,
                    duration_ms=cached.duration_ms,
                )
            )

        timeline = compose_timeline(
            slides,
            [unit.duration_ms for unit in units],
            transition_gap_ms=self.transition_gap_ms,
            empty_slide_duration_ms=self.empty_slide_duration_ms,
        )
        return NarrationPlan(units=tuple(units), timeline=timeline, warnings=tuple(warnings))

    def build_timeline(self, presentation: Presentation, *, progress: ProgressCallback | None = None) -> Timeline:
        return self.collect_narration(presentation, progress=progress).timeline

    def playback_durations(self, presentation: Presentation) -> list[float]:
        """On-screen time per slide using only what is already cached.

        Uncached narrated slides fall back to the reading estimate; no
        synthesis request is made.
        """
        durations: list[float] = []
        for slide in presentation.slides:
            text = build_narration_text(slide)
            if not text:
                durations.append(self.empty_slide_duration_ms)
                continue
            cached = self.narration_cache.cached_duration_ms(slide, presentation.language)
            narration_ms = cached if cached is not None else estimate_duration_ms(text)
            durations.append(narration_ms + self.transition_gap_ms)
        return durations

    # ------------------------------------------------------------------
    # Export
    # ------------------------------------------------------------------
    def mix(self, presentation: Presentation, plan: NarrationPlan) -> CombinedAudioBuffer:
        return self.mixer.mix(presentation.slides, [unit.audio_bytes for unit in plan.units], plan.timeline)

    def export(
        self,
        presentation: Presentation,
        *,
        progress: ProgressCallback | None = None,
        should_cancel: CancelCheck | None = None,
        include_wav: bool = False,
        now_ms: int | None = None,
    ) -> ExportArtifact:
        started = time.perf_counter()
        plan = self.collect_narration(presentation, progress=progress, should_cancel=should_cancel)
        combined = self.mix(presentation, plan)
        wav_bytes = encode_wav(combined) if include_wav else None

        total = len(presentation.slides)
        if progress is not None:
            progress(total, total, "Recording video")
        painter = SlidePainter(self.video_size, presentation.theme, image_fetcher=self.image_fetcher)
        renderer = RealtimeRenderer(plan.timeline, presentation.slides, painter)
        recorder = self.recorder_factory()
        data = recorder.record(plan.timeline, renderer, combined, should_cancel=should_cancel)
        if not data:
            raise DeliveryFailure("The recorder produced an empty video.")

        filename = build_export_filename(presentation.subject, "mp4", now_ms)
        LOGGER.info(
            "video_exported",
            extra={
                "slides": total,
                "duration_ms": plan.timeline.total_duration_ms,
                "bytes": len(data),
                "codec": recorder.video_codec,
                "warnings": len(plan.warnings),
                "elapsed_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return ExportArtifact(
            data=data,
            filename=filename,
            mimetype=MIMETYPE,
            timeline=plan.timeline,
            warnings=plan.warnings,
            wav_bytes=wav_bytes,
        )

    def export_wav(
        self,
        presentation: Presentation,
        *,
        progress: ProgressCallback | None = None,
        should_cancel: CancelCheck | None = None,
        now_ms: int | None = None,
    ) -> ExportArtifact:
        plan = self.collect_narration(presentation, progress=progress, should_cancel=should_cancel)
        data = encode_wav(self.mix(presentation, plan))
        return ExportArtifact(
            data=data,
            filename=build_export_filename(presentation.subject, "wav", now_ms),
            mimetype=WAV_MIMETYPE,
            timeline=plan.timeline,
            warnings=plan.warnings,
            wav_bytes=data,
        )

    def _default_recorder(self) -> StreamRecorder:
        clock: Clock = MonotonicClock() if self.realtime else SteppedClock()
        return StreamRecorder(fps=self.fps, clock=clock)


__all__ = ["NarratedVideoExporter", "ExportArtifact", "NarrationPlan", "WAV_MIMETYPE"]
