from __future__ import annotations

import time
from typing import Protocol, runtime_checkable


@runtime_checkable
class Clock(Protocol):
    def now_ms(self) -> float: ...

    def sleep_ms(self, duration_ms: float) -> None: ...


class MonotonicClock:
    """Wall-clock time; sleeping really waits."""

    def now_ms(self) -> float:
        return time.monotonic() * 1000.0

    def sleep_ms(self, duration_ms: float) -> None:
        if duration_ms > 0:
            time.sleep(duration_ms / 1000.0)


class SteppedClock:
    """Deterministic clock that only moves when asked to sleep or advance."""

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now = float(start_ms)

    def now_ms(self) -> float:
        return self._now

    def sleep_ms(self, duration_ms: float) -> None:
        if duration_ms > 0:
            self._now += duration_ms

    def advance(self, duration_ms: float) -> None:
        self._now += max(0.0, duration_ms)


__all__ = ["Clock", "MonotonicClock", "SteppedClock"]
