from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock abstraction.

    Mode sessions depend on this interface rather than calling real time directly.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class RealClock:
    """Production clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


class Stopwatch:
    """Elapsed-time tracker that excludes paused intervals.

    pause()/resume() are idempotent: a second pause while paused, or a resume
    while running, changes nothing.
    """

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._started_at_s: float | None = None
        self._stopped_at_s: float | None = None
        self._paused_at_s: float | None = None
        self._paused_total_s = 0.0

    @property
    def running(self) -> bool:
        return self._started_at_s is not None and self._stopped_at_s is None

    @property
    def paused(self) -> bool:
        return self._paused_at_s is not None

    @property
    def paused_total_s(self) -> float:
        return self._paused_total_s

    def start(self) -> None:
        self._started_at_s = self._clock.now()
        self._stopped_at_s = None
        self._paused_at_s = None
        self._paused_total_s = 0.0

    def pause(self) -> None:
        if not self.running or self._paused_at_s is not None:
            return
        self._paused_at_s = self._clock.now()

    def resume(self) -> None:
        if not self.running or self._paused_at_s is None:
            return
        self._paused_total_s += max(0.0, self._clock.now() - self._paused_at_s)
        self._paused_at_s = None

    def stop(self) -> float:
        if self.running:
            # An open pause is closed at the stop instant.
            self.resume()
            self._stopped_at_s = self._clock.now()
        return self.elapsed_s()

    def elapsed_s(self) -> float:
        if self._started_at_s is None:
            return 0.0
        end = self._stopped_at_s
        if end is None:
            end = self._paused_at_s if self._paused_at_s is not None else self._clock.now()
        return max(0.0, end - self._started_at_s - self._paused_total_s)
