from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable


class SlideRole(str, Enum):
    COVER = "cover"
    CONTENT = "content"
    THANK_YOU = "thank_you"


class VoiceGender(str, Enum):
    MALE = "male"
    FEMALE = "female"

    @classmethod
    def coerce(cls, value: str | VoiceGender | None) -> VoiceGender:
        if isinstance(value, VoiceGender):
            return value
        normalized = (value or "").strip().lower()
        if normalized == cls.FEMALE.value:
            return cls.FEMALE
        return cls.MALE


@dataclass(frozen=True)
class Slide:
    id: str
    slide_number: int
    role: SlideRole = SlideRole.CONTENT
    title: str = ""
    subtitle: str = ""
    bullets: tuple[str, ...] = ()
    background: str | None = None
    image_url: str | None = None
    voice_gender: VoiceGender = VoiceGender.MALE
    layout_variant: str = "text_left"

    @property
    def is_centered(self) -> bool:
        return self.role in {SlideRole.COVER, SlideRole.THANK_YOU}


@dataclass(frozen=True)
class Presentation:
    subject: str
    slides: tuple[Slide, ...]
    language: str = "en"
    theme: str = "professional"


def apply_voice_to_all(slides: Iterable[Slide], voice: str | VoiceGender) -> list[Slide]:
    """Return copies of ``slides`` annotated with one narrator voice."""
    gender = VoiceGender.coerce(voice)
    return [replace(slide, voice_gender=gender) for slide in slides]


@dataclass(frozen=True)
class CachedNarration:
    audio_bytes: bytes | None
    duration_ms: float


@dataclass(frozen=True)
class NarrationUnit:
    slide_index: int
    text: str
    audio_bytes: bytes | None
    duration_ms: float | None

    @property
    def has_narration(self) -> bool:
        return bool(self.text)

    @property
    def has_audio(self) -> bool:
        return bool(self.audio_bytes)


@dataclass(frozen=True)
class TimelineEntry:
    slide_index: int
    start_ms: float
    duration_ms: float

    @property
    def end_ms(self) -> float:
        return self.start_ms + self.duration_ms

    def contains(self, elapsed_ms: float) -> bool:
        return self.start_ms <= elapsed_ms < self.end_ms


@dataclass(frozen=True)
class Timeline:
    entries: tuple[TimelineEntry, ...]
    _starts: tuple[float, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.entries:
            raise ValueError("A timeline needs at least one entry.")
        object.__setattr__(self, "_starts", tuple(entry.start_ms for entry in self.entries))

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def __getitem__(self, index: int) -> TimelineEntry:
        return self.entries[index]

    @property
    def total_duration_ms(self) -> float:
        return sum(entry.duration_ms for entry in self.entries)

    def entry_at(self, elapsed_ms: float) -> TimelineEntry:
        """Entry whose [start, end) interval holds ``elapsed_ms``, clamped to the ends."""
        if elapsed_ms <= 0:
            return self.entries[0]
        idx = bisect_right(self._starts, elapsed_ms) - 1
        return self.entries[max(0, min(idx, len(self.entries) - 1))]

    def to_dict(self) -> dict:
        return {
            "total_duration_ms": self.total_duration_ms,
            "entries": [
                {
                    "slide_index": entry.slide_index,
                    "start_ms": entry.start_ms,
                    "duration_ms": entry.duration_ms,
                }
                for entry in self.entries
            ],
        }


__all__ = [
    "SlideRole",
    "VoiceGender",
    "Slide",
    "Presentation",
    "apply_voice_to_all",
    "CachedNarration",
    "NarrationUnit",
    "TimelineEntry",
    "Timeline",
]
