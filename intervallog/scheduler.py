from __future__ import annotations

from contextlib import nullcontext
from dataclasses import dataclass, field
from datetime import datetime, timedelta
import heapq
import itertools
import logging
from typing import Callable, ContextManager

from .clock import Clock
from .timer import IntervalTimer, TickReport, TimerPhase

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, dict[str, object]], None]


@dataclass(order=True)
class Job:
    when: datetime
    seq: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)


class Scheduler:
    """Runs callbacks at or after a wall-clock moment, never before it."""

    def __init__(self, clock: Clock) -> None:
        self.clock = clock
        self._jobs: list[Job] = []
        self._seq = itertools.count()

    def call_at(self, when: datetime, callback: Callable[[], None]) -> Job:
        job = Job(when=when, seq=next(self._seq), callback=callback)
        heapq.heappush(self._jobs, job)
        return job

    def call_later(self, seconds: float, callback: Callable[[], None]) -> Job:
        return self.call_at(self.clock.now() + timedelta(seconds=max(0.0, seconds)), callback)

    def cancel(self, job: Job) -> None:
        job.cancelled = True

    def next_deadline(self) -> datetime | None:
        while self._jobs and self._jobs[0].cancelled:
            heapq.heappop(self._jobs)
        return self._jobs[0].when if self._jobs else None

    def run_pending(self) -> int:
        now = self.clock.now()
        ran = 0
        while self._jobs and self._jobs[0].when <= now:
            job = heapq.heappop(self._jobs)
            if job.cancelled:
                continue
            try:
                job.callback()
            except Exception:
                logger.exception("Scheduled job scheduled for %s failed", job.when.isoformat())
            ran += 1
        return ran

    def __len__(self) -> int:
        return sum(1 for job in self._jobs if not job.cancelled)


class TickLoop:
    """Drives an IntervalTimer from a scheduler at a nominal cadence.

    A tick that runs much later than planned means the process was suspended
    (sleeping laptop, stopped process); it is delivered as ``resume()`` so the
    timer catches up from its absolute deadlines.
    """

    def __init__(
        self,
        clock: Clock,
        timer: IntervalTimer,
        scheduler: Scheduler | None = None,
        tick_seconds: float = 1.0,
        suspend_threshold: float = 5.0,
        progress_callback: ProgressCallback | None = None,
        before_tick: Callable[[], None] | None = None,
        guard: ContextManager[object] | None = None,
    ) -> None:
        if tick_seconds <= 0:
            raise ValueError(f"tick_seconds must be > 0, got {tick_seconds}")
        self.clock = clock
        self.timer = timer
        self.scheduler = scheduler or Scheduler(clock)
        self.tick_seconds = tick_seconds
        self.suspend_threshold = suspend_threshold
        self.progress_callback = progress_callback
        self.before_tick = before_tick
        self.last_report: TickReport | None = None
        self._guard = guard
        self._job: Job | None = None
        self._expected_at: datetime | None = None
        self._stop_requested = False

    def request_stop(self) -> None:
        self._stop_requested = True

    def start(self) -> None:
        if self._job is None:
            self._schedule(self.clock.now())

    def run_once(self) -> int:
        self.start()
        return self.scheduler.run_pending()

    def run(self) -> bool:
        """Block until stopped. Returns True when interrupted with Ctrl-C."""
        self._stop_requested = False
        self.start()
        try:
            while not self._stop_requested:
                self.scheduler.run_pending()
                if self._stop_requested:
                    break
                deadline = self.scheduler.next_deadline()
                wait = self.tick_seconds
                if deadline is not None:
                    wait = min(wait, max(0.0, (deadline - self.clock.now()).total_seconds()))
                self.clock.sleep(wait)
        except KeyboardInterrupt:
            logger.info("Tick loop interrupted")
            return True
        finally:
            if self._job is not None:
                self.scheduler.cancel(self._job)
                self._job = None
        return False

    def _schedule(self, when: datetime) -> None:
        self._expected_at = when
        self._job = self.scheduler.call_at(when, self._on_tick)

    def _on_tick(self) -> None:
        now = self.clock.now()
        expected = self._expected_at or now
        lateness = (now - expected).total_seconds()
        guard = self._guard if self._guard is not None else nullcontext()
        try:
            with guard:
                if self.before_tick is not None:
                    self.before_tick()
                if lateness > self.suspend_threshold:
                    logger.debug("Tick ran %.1fs late; treating as resume", lateness)
                    event = "resume"
                    report = self.timer.resume()
                else:
                    event = "tick"
                    report = self.timer.tick()
            self.last_report = report
            self._emit(event, report)
        finally:
            # The loop must keep ticking even when this tick failed.
            self._schedule(now + timedelta(seconds=self.tick_seconds))

    def _emit(self, event: str, report: TickReport) -> None:
        if self.progress_callback is None:
            return
        try:
            self.progress_callback(event, report.to_dict())
            if report.transitioned and report.phase is TimerPhase.CAPTURING:
                self.progress_callback("capture_open", report.to_dict())
            if report.auto_saved is not None:
                self.progress_callback("log_saved", report.auto_saved.to_dict())
        except Exception:
            logger.exception("Progress callback failed for %s event", event)
