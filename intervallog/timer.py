from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
import logging
from typing import Any

from .alerts import AlertContext, AlertDispatcher
from .clock import Clock
from .errors import TimerStateError
from .ledger import LogEntry, LogLedger, normalize_content

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 15 * 60
DEFAULT_CAPTURE_SECONDS = 50
ALERT_ICON = "speaker_icon.png"


class TimerPhase(str, Enum):
    RUNNING = "running"
    CAPTURING = "capturing"


@dataclass(frozen=True)
class TimerConfig:
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS
    capture_seconds: float = DEFAULT_CAPTURE_SECONDS
    task_title: str = ""

    def __post_init__(self) -> None:
        if self.interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be > 0, got {self.interval_seconds}")
        if self.capture_seconds <= 0:
            raise ValueError(f"capture_seconds must be > 0, got {self.capture_seconds}")


@dataclass(frozen=True)
class TickReport:
    phase: TimerPhase
    interval: int
    remaining_sec: float
    elapsed_sec: float
    capture_remaining_sec: float | None
    end_at: datetime
    capture_deadline: datetime | None
    logs_saved: int
    transitioned: bool = False
    auto_saved: LogEntry | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "interval": self.interval,
            "remaining_sec": self.remaining_sec,
            "elapsed_sec": self.elapsed_sec,
            "capture_remaining_sec": self.capture_remaining_sec,
            "end_at": self.end_at.isoformat(),
            "capture_deadline": self.capture_deadline.isoformat() if self.capture_deadline else None,
            "logs_saved": self.logs_saved,
            "transitioned": self.transitioned,
            "auto_saved": self.auto_saved.to_dict() if self.auto_saved else None,
        }


def minutes_to_seconds(minutes: float) -> int:
    if minutes <= 0:
        return 0
    seconds = int(round(minutes * 60))
    return max(1, seconds)


def format_countdown(seconds: float) -> str:
    total = max(0, int(seconds + 0.999))
    minutes, sec = divmod(total, 60)
    hours, minutes = divmod(minutes, 60)
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{sec:02d}"
    return f"{minutes:02d}:{sec:02d}"


def format_elapsed(seconds: float) -> str:
    total = max(0, int(round(seconds)))
    hours, rest = divmod(total, 3600)
    minutes, sec = divmod(rest, 60)
    if hours > 0:
        return f"{hours}h {minutes}m {sec}s"
    return f"{minutes}m {sec}s"


def progress_percent(remaining_sec: float, interval_seconds: float) -> float:
    if interval_seconds <= 0:
        return 100.0
    done = (interval_seconds - remaining_sec) / interval_seconds
    return round(min(1.0, max(0.0, done)) * 100, 1)


class IntervalTimer:
    """Countdown / alert / log-capture cycle driven by absolute deadlines.

    ``tick()`` may be called at any cadence, including in bursts or after long
    gaps: remaining time is always recomputed from ``end_at`` and the clock, so
    skipped or throttled ticks never shift the schedule. ``resolve()`` is the
    only way out of the capture phase, both for a manual save and for the
    auto-save that ``tick()`` performs once the capture deadline has passed.
    """

    def __init__(
        self,
        clock: Clock,
        config: TimerConfig | None = None,
        alerts: AlertDispatcher | None = None,
        ledger: LogLedger | None = None,
        start_time: datetime | None = None,
    ) -> None:
        self.clock = clock
        self.config = config or TimerConfig()
        self.alerts = alerts
        self.ledger = ledger if ledger is not None else LogLedger()
        now = clock.now()
        self.start_time = start_time or now
        self.phase = TimerPhase.RUNNING
        self.interval = 1
        self.end_at = now + self._interval_delta
        self.capture_deadline: datetime | None = None
        self.alerts_fired = 0
        self._alert_armed = False

    @property
    def _interval_delta(self) -> timedelta:
        return timedelta(seconds=self.config.interval_seconds)

    @property
    def _capture_delta(self) -> timedelta:
        return timedelta(seconds=self.config.capture_seconds)

    def tick(self) -> TickReport:
        now = self.clock.now()
        if self.phase is TimerPhase.RUNNING:
            if self.end_at > now:
                return self._report(now)
            self._begin_capture(now)
            return self._report(now, transitioned=True)

        deadline = self.capture_deadline
        if deadline is None or now < deadline:
            return self._report(now)

        entry = self.resolve(auto=True)
        next_boundary = deadline + self._interval_delta
        if now >= next_boundary:
            # Suspended past the capture deadline and the following boundary:
            # count missed boundaries from the boundary the capture would have led to.
            self.end_at = next_boundary
            self._begin_capture(now)
        return self._report(self.clock.now(), transitioned=True, auto_saved=entry)

    def resume(self) -> TickReport:
        logger.info("Execution resumed; catching up (phase=%s, interval=%d)", self.phase.value, self.interval)
        return self.tick()

    def resolve(self, content: str | None = "", *, auto: bool = False) -> LogEntry:
        if self.phase is not TimerPhase.CAPTURING:
            raise TimerStateError("no log capture is open; the interval is still running")

        now = self.clock.now()
        entry = self._record(now, content, auto)
        self.interval += 1
        self.end_at = now + self._interval_delta
        self.capture_deadline = None
        self.phase = TimerPhase.RUNNING
        logger.info(
            "Interval %d logged (%s); interval %d ends at %s",
            entry.interval,
            "auto-saved" if auto else "saved",
            self.interval,
            self.end_at.isoformat(),
        )
        if self.alerts is not None:
            try:
                self.alerts.dismiss_banner()
            except Exception:
                logger.exception("Failed to dismiss alert banner")
        return entry

    def report(self) -> TickReport:
        """Current countdown values without driving any transition."""
        return self._report(self.clock.now())

    def snapshot(self) -> tuple[LogEntry, ...]:
        return self.ledger.snapshot()

    def _begin_capture(self, now: datetime) -> None:
        overdue = (now - self.end_at).total_seconds()
        cycle = self.config.interval_seconds + self.config.capture_seconds
        missed = int(overdue // cycle)
        if missed > 0:
            # Collapse the backlog: one placeholder for the oldest unlogged
            # interval, then skip the ordinal ahead to the current boundary.
            logger.warning(
                "%d extra interval boundaries passed while suspended; collapsing into one entry",
                missed,
            )
            self._record(now, "", auto=True)
            self.interval += missed

        self.phase = TimerPhase.CAPTURING
        self.capture_deadline = now + self._capture_delta
        self.end_at = now + self._interval_delta
        self._alert_armed = True
        logger.info(
            "Interval %d reached its boundary; capture open until %s",
            self.interval,
            self.capture_deadline.isoformat(),
        )
        self._fire_alert()

    def _fire_alert(self) -> None:
        if not self._alert_armed:
            return
        self._alert_armed = False
        self.alerts_fired += 1
        if self.alerts is None:
            return
        context = AlertContext(
            title=self._alert_title(),
            body=self._alert_body(),
            icon=ALERT_ICON,
            interval=self.interval,
        )
        try:
            self.alerts.fire(context)
        except Exception:
            logger.exception("Alert dispatch failed for interval %d", self.interval)

    def _alert_title(self) -> str:
        seconds = self.config.interval_seconds
        if seconds % 60 == 0:
            minutes = int(seconds // 60)
            return f"{minutes} Minute{'s' if minutes != 1 else ''} Complete!"
        return f"{int(seconds)} Seconds Complete!"

    def _alert_body(self) -> str:
        if self.config.task_title:
            return f'Time to log your progress on "{self.config.task_title}"'
        return "Time to log your progress"

    def _record(self, now: datetime, content: str | None, auto: bool) -> LogEntry:
        entry = LogEntry(
            interval=self.interval,
            captured_at=now,
            content=normalize_content(content),
            auto_saved=auto,
        )
        self.ledger.append(entry)
        return entry

    def _report(
        self,
        now: datetime,
        transitioned: bool = False,
        auto_saved: LogEntry | None = None,
    ) -> TickReport:
        capture_remaining: float | None = None
        if self.phase is TimerPhase.CAPTURING and self.capture_deadline is not None:
            capture_remaining = max(0.0, (self.capture_deadline - now).total_seconds())
        return TickReport(
            phase=self.phase,
            interval=self.interval,
            remaining_sec=max(0.0, (self.end_at - now).total_seconds()),
            elapsed_sec=max(0.0, (now - self.start_time).total_seconds()),
            capture_remaining_sec=capture_remaining,
            end_at=self.end_at,
            capture_deadline=self.capture_deadline,
            logs_saved=len(self.ledger),
            transitioned=transitioned,
            auto_saved=auto_saved,
        )
