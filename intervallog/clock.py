from __future__ import annotations

from datetime import datetime, timedelta, timezone
import time
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        ...

    def sleep(self, seconds: float) -> None:
        ...


class RealClock:
    def __init__(self) -> None:
        self._last: datetime | None = None

    def now(self) -> datetime:
        current = datetime.now().astimezone()
        # Wall clock adjustments must not move deadlines backwards.
        if self._last is not None and current < self._last:
            return self._last
        self._last = current
        return current

    def sleep(self, seconds: float) -> None:
        time.sleep(max(0.0, seconds))


class FakeClock:
    def __init__(
        self,
        start: datetime | None = None,
        interrupt_on_sleep_call: int | None = None,
    ) -> None:
        base = start or datetime(2026, 1, 1, tzinfo=timezone.utc)
        if base.tzinfo is None:
            base = base.replace(tzinfo=timezone.utc)
        self._start = base
        self._current = base
        self._interrupt_on_sleep_call = interrupt_on_sleep_call
        self._sleep_calls = 0

    def now(self) -> datetime:
        return self._current

    def at(self, offset_seconds: float) -> datetime:
        return self._start + timedelta(seconds=offset_seconds)

    def advance(self, seconds: float) -> datetime:
        self._current += timedelta(seconds=max(0.0, seconds))
        return self._current

    def set(self, moment: datetime | float) -> datetime:
        """Jump to an absolute moment, or to an offset in seconds from the start."""
        target = self.at(moment) if isinstance(moment, (int, float)) else moment
        if target < self._current:
            raise ValueError("FakeClock cannot move backwards")
        self._current = target
        return self._current

    def sleep(self, seconds: float) -> None:
        self._sleep_calls += 1
        if (
            self._interrupt_on_sleep_call is not None
            and self._sleep_calls >= self._interrupt_on_sleep_call
        ):
            raise KeyboardInterrupt
        self.advance(seconds)
