import pytest

from deckcast.models import Timeline, TimelineEntry
from deckcast.services.timeline import compose_timeline


def test_three_slide_example(slide_factory):
    slides = [slide_factory(i) for i in range(1, 4)]
    timeline = compose_timeline(slides, [4000.0, 6000.0, 3000.0], transition_gap_ms=2000.0)

    assert [entry.start_ms for entry in timeline] == [0.0, 6000.0, 14000.0]
    assert [entry.duration_ms for entry in timeline] == [6000.0, 8000.0, 5000.0]
    assert timeline.total_duration_ms == 19000.0


def test_slide_without_narration_uses_fixed_duration(slide_factory):
    slides = [slide_factory(1), slide_factory(2), slide_factory(3)]
    timeline = compose_timeline(slides, [1000.0, None, 500.0])

    assert timeline[1].duration_ms == 3000.0
    assert timeline[2].start_ms == 3000.0 + 3000.0
    assert timeline.total_duration_ms == sum(entry.duration_ms for entry in timeline)


def test_entries_are_contiguous(slide_factory):
    slides = [slide_factory(i) for i in range(5)]
    timeline = compose_timeline(slides, [1234.5, None, 0.0, 99.9, 3000.0])
    for previous, current in zip(timeline.entries, timeline.entries[1:]):
        assert current.start_ms == previous.end_ms


def test_rejects_empty_slide_list():
    with pytest.raises(ValueError):
        compose_timeline([], [])


def test_rejects_duration_mismatch(slide_factory):
    with pytest.raises(ValueError):
        compose_timeline([slide_factory(1)], [1000.0, 2000.0])


def test_entry_lookup_covers_transition_gap(slide_factory):
    timeline = compose_timeline([slide_factory(1), slide_factory(2)], [1000.0, 1000.0])

    assert timeline.entry_at(0).slide_index == 0
    # 1000 ms of narration plus the 2000 ms gap still shows the first slide.
    assert timeline.entry_at(2999.0).slide_index == 0
    assert timeline.entry_at(3000.0).slide_index == 1
    assert timeline.entry_at(-5).slide_index == 0
    assert timeline.entry_at(10_000).slide_index == 1


def test_timeline_requires_entries():
    with pytest.raises(ValueError):
        Timeline(entries=())


def test_timeline_to_dict():
    timeline = Timeline(entries=(TimelineEntry(0, 0.0, 1500.0),))
    assert timeline.to_dict() == {
        "total_duration_ms": 1500.0,
        "entries": [{"slide_index": 0, "start_ms": 0.0, "duration_ms": 1500.0}],
    }
