from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Protocol, runtime_checkable

from ..models import CachedNarration, Slide, VoiceGender
from .audio_decoder import DurationResolver
from .narration_text import build_narration_text

LOGGER = logging.getLogger(__name__)

CACHE_PREFIX = "narration:v1:"


def narration_cache_key(text: str, voice: str | VoiceGender, language: str) -> str:
    gender = VoiceGender.coerce(voice).value
    serialized = json.dumps([text, gender, (language or "").strip().lower()], ensure_ascii=False)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


@runtime_checkable
class NarrationStore(Protocol):
    def get(self, key: str) -> CachedNarration | None: ...

    def put(self, key: str, value: CachedNarration) -> None: ...


@runtime_checkable
class SpeechSource(Protocol):
    def synthesize(self, text: str, language: str, voice: str | VoiceGender) -> bytes: ...


class InMemoryNarrationStore:
    """Append-only store; lives as long as the process."""

    def __init__(self) -> None:
        self._entries: dict[str, CachedNarration] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> CachedNarration | None:
        return self._entries.get(key)

    def put(self, key: str, value: CachedNarration) -> None:
        self._entries.setdefault(key, value)


@runtime_checkable
class RedisLike(Protocol):
    def hgetall(self, name: str) -> Any: ...

    def hset(self, name: str, key: Any = None, value: Any = None, mapping: Any = None) -> Any: ...

    def expire(self, name: str, time: int) -> Any: ...

    def exists(self, *names: str) -> Any: ...


class RedisNarrationStore:
    def __init__(self, connection: RedisLike, *, ttl_seconds: int = 12 * 60 * 60) -> None:
        self._conn = connection
        self._ttl = max(1, int(ttl_seconds))

    def get(self, key: str) -> CachedNarration | None:
        data = self._conn.hgetall(f"{CACHE_PREFIX}{key}")
        if not data:
            return None
        audio = data.get(b"audio") or None
        try:
            duration = float(data.get(b"duration_ms", b"0"))
        except (TypeError, ValueError):
            return None
        return CachedNarration(audio_bytes=audio, duration_ms=duration)

    def put(self, key: str, value: CachedNarration) -> None:
        redis_key = f"{CACHE_PREFIX}{key}"
        if self._conn.exists(redis_key):
            return
        self._conn.hset(
            redis_key,
            mapping={
                "audio": value.audio_bytes or b"",
                "duration_ms": repr(float(value.duration_ms)),
            },
        )
        self._conn.expire(redis_key, self._ttl)


class NarrationCache:
    """Content-addressed narration lookup in front of the speech service."""

    def __init__(
        self,
        source: SpeechSource,
        store: NarrationStore | None = None,
        resolver: DurationResolver | None = None,
    ) -> None:
        self.source = source
        self.store = store if store is not None else InMemoryNarrationStore()
        self.resolver = resolver or DurationResolver()

    def get_or_fetch(
        self,
        slide: Slide,
        voice: str | VoiceGender | None,
        language: str,
    ) -> CachedNarration | None:
        """Cached clip for ``slide``; None when the slide has nothing to say.

        SynthesisFailure from the speech source propagates and nothing is cached.
        """
        text = build_narration_text(slide)
        if not text:
            return None
        gender = VoiceGender.coerce(voice if voice is not None else slide.voice_gender)
        key = narration_cache_key(text, gender, language)
        cached = self.store.get(key)
        if cached is not None:
            LOGGER.debug("narration_cache_hit", extra={"slide_id": slide.id, "cache_key": key})
            return cached

        audio_bytes = self.source.synthesize(text, language, gender)
        resolved = self.resolver.resolve(audio_bytes, text)
        entry = CachedNarration(
            audio_bytes=None if resolved.estimated else audio_bytes,
            duration_ms=resolved.duration_ms,
        )
        self.store.put(key, entry)
        LOGGER.info(
            "narration_cached",
            extra={"slide_id": slide.id, "cache_key": key, "duration_ms": entry.duration_ms},
        )
        return entry

    def cached_duration_ms(
        self,
        slide: Slide,
        language: str,
        voice: str | VoiceGender | None = None,
    ) -> float | None:
        text = build_narration_text(slide)
        if not text:
            return None
        gender = VoiceGender.coerce(voice if voice is not None else slide.voice_gender)
        cached = self.store.get(narration_cache_key(text, gender, language))
        return cached.duration_ms if cached is not None else None


__all__ = [
    "NarrationCache",
    "NarrationStore",
    "InMemoryNarrationStore",
    "RedisNarrationStore",
    "narration_cache_key",
]
