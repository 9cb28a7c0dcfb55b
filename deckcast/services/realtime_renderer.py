from __future__ import annotations

from typing import Sequence

import numpy as np

from ..models import Slide, Timeline, TimelineEntry
from .slide_painter import SlidePainter


class RealtimeRenderer:
    """Maps elapsed recording time to a fully painted frame.

    Every call repaints from the slide model; nothing from a previous frame
    is reused, so frames are a pure function of ``elapsed_ms``.
    """

    def __init__(self, timeline: Timeline, slides: Sequence[Slide], painter: SlidePainter) -> None:
        if len(slides) != len(timeline):
            raise ValueError("Expected one slide per timeline entry.")
        self.timeline = timeline
        self.slides = tuple(slides)
        self.painter = painter

    @property
    def size(self) -> tuple[int, int]:
        return self.painter.size

    def entry_at(self, elapsed_ms: float) -> TimelineEntry:
        return self.timeline.entry_at(elapsed_ms)

    def slide_at(self, elapsed_ms: float) -> Slide:
        return self.slides[self.entry_at(elapsed_ms).slide_index]

    def frame_at(self, elapsed_ms: float) -> np.ndarray:
        image = self.painter.paint(self.slide_at(elapsed_ms))
        return np.asarray(image, dtype=np.uint8)


__all__ = ["RealtimeRenderer"]
