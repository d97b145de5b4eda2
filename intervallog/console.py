from __future__ import annotations

import logging
import queue
import sys
from threading import Thread
from typing import TextIO

from .clock import Clock
from .config import AppConfig
from .errors import SessionSaveError, TimerStateError, ValidationError
from .models import SessionSummary
from .scheduler import TickLoop
from .session import ActiveSession, SessionManager
from .timer import TimerPhase, format_countdown, format_elapsed, progress_percent

logger = logging.getLogger(__name__)

END_COMMANDS = {"end", "quit", "q"}
TEST_COMMANDS = {"alert", "test"}


def read_lines(source: TextIO, lines: queue.Queue[str | None]) -> None:
    for raw in source:
        lines.put(raw.rstrip("\r\n"))
    lines.put(None)


def start_reader(source: TextIO | None = None) -> queue.Queue[str | None]:
    lines: queue.Queue[str | None] = queue.Queue()
    Thread(target=read_lines, args=(source or sys.stdin, lines), daemon=True).start()
    return lines


class ConsoleSession:
    """Runs one work session in the terminal: countdown line, log prompts, save."""

    def __init__(
        self,
        manager: SessionManager,
        clock: Clock,
        config: AppConfig,
        lines: queue.Queue[str | None],
        stream: TextIO | None = None,
    ) -> None:
        self.manager = manager
        self.clock = clock
        self.config = config
        self.lines = lines
        self.stream = stream or sys.stdout
        self.active: ActiveSession | None = None
        self.loop: TickLoop | None = None
        self._input_closed = False

    def run(self, task_title: str, folder: str, description: str = "") -> int:
        active = self.manager.start(task_title, folder, description)
        self.active = active
        session = active.session
        self.stream.write(
            f"Work session #{session.session_number} - {session.folder} / {session.task_title}\n"
            f"Intervals of {format_countdown(self.config.interval_seconds)}; type 'end' to finish.\n"
        )
        self.stream.flush()

        self.loop = TickLoop(
            self.clock,
            active.timer,
            tick_seconds=self.config.tick_seconds,
            suspend_threshold=self.config.suspend_threshold,
            progress_callback=self._on_event,
            before_tick=self._drain_input,
        )
        interrupted = self.loop.run()
        self._clear_line()

        summary = self.manager.end(active)
        self.stream.write(
            f"Session complete: {format_elapsed(summary.total_seconds)}, {len(summary.logs)} log entries.\n"
        )
        self.stream.flush()
        code = self._save_with_retry(summary)
        if code == 0 and interrupted:
            return 130
        return code

    def _save_with_retry(self, summary: SessionSummary) -> int:
        while True:
            try:
                outcome = self.manager.save_and_publish(summary)
            except ValidationError as exc:
                self.stream.write(f"Cannot save session: {exc}\n")
                self.stream.flush()
                return 2
            except SessionSaveError as exc:
                self.stream.write(f"Error while {exc.stage}: {exc.cause}\n")
                self.stream.flush()
                if self._ask("Retry saving and publishing? [y/N] "):
                    continue
                self.stream.write("Ended without saving.\n")
                self.stream.flush()
                return 1

            self.stream.write(f"Session saved: {outcome.path}\n")
            if outcome.publish is not None:
                self.stream.write(f"{outcome.publish.message}\n")
            self.stream.flush()
            return 0

    def _ask(self, prompt: str) -> bool:
        self.stream.write(prompt)
        self.stream.flush()
        if self._input_closed:
            self.stream.write("\n")
            return False
        answer = self.lines.get()
        if answer is None:
            self._input_closed = True
            return False
        return answer.strip().lower() in {"y", "yes"}

    def _drain_input(self) -> None:
        if self.active is None or self.loop is None:
            return
        timer = self.active.timer
        while True:
            try:
                line = self.lines.get_nowait()
            except queue.Empty:
                return
            if line is None:
                self._input_closed = True
                continue

            command = line.strip().lower()
            if timer.phase is TimerPhase.CAPTURING:
                try:
                    entry = timer.resolve(line)
                except TimerStateError:
                    logger.exception("Log capture closed before the entry was saved")
                    continue
                self.stream.write(f"Saved log for interval {entry.interval}.\n")
            elif command in END_COMMANDS:
                self.loop.request_stop()
            elif command in TEST_COMMANDS:
                if timer.alerts is not None:
                    timer.alerts.test()
            elif command:
                self.stream.write("\nNo log is open yet; type 'end' to finish or 'alert' to test alerts.\n")
            self.stream.flush()

    def _on_event(self, event: str, payload: dict[str, object]) -> None:
        if event == "capture_open":
            self._clear_line()
            self.stream.write(
                f"\n=== {self._banner_title()} ===\n"
                f"Interval #{payload['interval']}: what did you accomplish? "
                f"(auto-saves in {int(self.config.capture_seconds)}s)\n> "
            )
        elif event == "log_saved":
            self.stream.write(f"\nNo entry received; interval {payload['interval']} auto-saved.\n")
        elif event in {"tick", "resume"} and payload.get("phase") == TimerPhase.RUNNING.value:
            self._render(payload)
            return
        else:
            return
        self.stream.flush()

    def _banner_title(self) -> str:
        alerts = self.active.timer.alerts if self.active is not None else None
        if alerts is not None and alerts.banner is not None:
            current = alerts.banner.current()
            if current is not None:
                return current.title
        return "Interval complete"

    def _render(self, payload: dict[str, object]) -> None:
        remaining = float(payload.get("remaining_sec", 0.0))  # type: ignore[arg-type]
        elapsed = float(payload.get("elapsed_sec", 0.0))  # type: ignore[arg-type]
        self.stream.write(
            f"\rInterval {payload.get('interval')} | {format_countdown(remaining)} left "
            f"({progress_percent(remaining, self.config.interval_seconds):.0f}%) | "
            f"total {format_elapsed(elapsed)} | logs {payload.get('logs_saved')}"
        )
        self.stream.flush()

    def _clear_line(self) -> None:
        self.stream.write("\r" + (" " * 80) + "\r")
        self.stream.flush()
