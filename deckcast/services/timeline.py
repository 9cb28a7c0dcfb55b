from __future__ import annotations

from typing import Sequence

from ..models import Slide, Timeline, TimelineEntry

TRANSITION_GAP_MS = 2000.0
EMPTY_SLIDE_DURATION_MS = 3000.0


def compose_timeline(
    slides: Sequence[Slide],
    durations: Sequence[float | None],
    *,
    transition_gap_ms: float = TRANSITION_GAP_MS,
    empty_slide_duration_ms: float = EMPTY_SLIDE_DURATION_MS,
) -> Timeline:
    """Lay slides end to end.

    ``durations[i]`` is the resolved narration length of slide ``i``, or None
    when the slide has no narration text; such slides hold the screen for
    ``empty_slide_duration_ms`` with no extra gap.
    """
    if not slides:
        raise ValueError("Cannot compose a timeline without slides.")
    if len(durations) != len(slides):
        raise ValueError("Expected one duration per slide.")

    entries: list[TimelineEntry] = []
    start_ms = 0.0
    for idx, narration_ms in enumerate(durations):
        if narration_ms is None:
            duration_ms = float(empty_slide_duration_ms)
        else:
            duration_ms = max(0.0, float(narration_ms)) + transition_gap_ms
        entries.append(TimelineEntry(slide_index=idx, start_ms=start_ms, duration_ms=duration_ms))
        start_ms = start_ms + duration_ms
    return Timeline(entries=tuple(entries))


__all__ = ["compose_timeline", "TRANSITION_GAP_MS", "EMPTY_SLIDE_DURATION_MS"]
