from __future__ import annotations

import io
import queue
import unittest

from intervallog.clock import FakeClock
from intervallog.config import AppConfig
from intervallog.console import ConsoleSession, read_lines
from intervallog.errors import PublishError
from intervallog.ledger import PLACEHOLDER_CONTENT
from intervallog.publish import PublishResult
from intervallog.session import SessionManager
from intervallog.storage import SessionStore
from intervallog.tests.test_helpers import RecordingAlerts, local_time, local_tmp_dir


class TypingClock(FakeClock):
    """Puts a line on the input queue once the clock reaches a given offset."""

    def __init__(self, lines: queue.Queue, typed_at: float, text: str, **kwargs) -> None:
        super().__init__(**kwargs)
        self.lines = lines
        self.typed_at = typed_at
        self.text = text

    def sleep(self, seconds: float) -> None:
        super().sleep(seconds)
        if self.now() == self.at(self.typed_at):
            self.lines.put(self.text)


class OfflinePublisher:
    """Fails the first push; the user's answer to the retry prompt arrives with the failure."""

    def __init__(self, lines: queue.Queue, reply: str | None) -> None:
        self.lines = lines
        self.reply = reply
        self.calls = 0

    def publish(self, folder: str, session_number: int, task_title: str, date: str) -> PublishResult:
        self.calls += 1
        if self.calls == 1:
            self.lines.put(self.reply)
            raise PublishError("push", "Failed to push to remote")
        return PublishResult(success=True, message="Successfully pushed", committed=True)


class TestConsoleSession(unittest.TestCase):
    config = AppConfig(interval_seconds=3, capture_seconds=2, tick_seconds=1)

    def make_console(self, tmp, clock, lines, publisher=None):
        manager = SessionManager(
            SessionStore(tmp),
            clock,
            publisher=publisher,
            config=self.config,
            alerts=RecordingAlerts(),
        )
        output = io.StringIO()
        return ConsoleSession(manager, clock, self.config, lines, stream=output), output

    def test_unanswered_prompt_is_auto_saved(self) -> None:
        with local_tmp_dir() as tmp:
            clock = FakeClock(start=local_time(2026, 2, 13, 9, 0), interrupt_on_sleep_call=7)
            console, output = self.make_console(tmp, clock, queue.Queue())

            code = console.run("Write report", "alpha")

            self.assertEqual(code, 130)
            self.assertEqual(len(console.manager.alerts.fired), 1)
            text = (tmp / "alpha" / "session_1_2026-02-13.md").read_text(encoding="utf-8")
            self.assertIn("### Interval 1 - 9:00:05 AM", text)
            self.assertIn(PLACEHOLDER_CONTENT, text)
            self.assertIn("Interval 1 | 00:01 left (67%) | total 0m 2s", output.getvalue())
            self.assertIn("interval 1 auto-saved", output.getvalue())
            self.assertIn("Session saved:", output.getvalue())

    def test_typed_line_resolves_open_capture(self) -> None:
        with local_tmp_dir() as tmp:
            lines: queue.Queue = queue.Queue()
            clock = TypingClock(
                lines,
                typed_at=4,
                text="Outlined sections",
                start=local_time(2026, 2, 13, 9, 0),
                interrupt_on_sleep_call=6,
            )
            console, output = self.make_console(tmp, clock, lines)

            code = console.run("Write report", "alpha")

            self.assertEqual(code, 130)
            logs = console.active.timer.snapshot()
            self.assertEqual(len(logs), 1)
            self.assertEqual(logs[0].content, "Outlined sections")
            self.assertFalse(logs[0].auto_saved)
            self.assertEqual(console.active.timer.end_at, clock.at(7))
            self.assertIn("Saved log for interval 1.", output.getvalue())

    def test_end_command_stops_cleanly(self) -> None:
        with local_tmp_dir() as tmp:
            lines: queue.Queue = queue.Queue()
            lines.put("end")
            clock = FakeClock(start=local_time(2026, 2, 13, 9, 0))
            console, _ = self.make_console(tmp, clock, lines)

            code = console.run("Write report", "alpha", "Finish the draft")

            self.assertEqual(code, 0)
            text = (tmp / "alpha" / "session_1_2026-02-13.md").read_text(encoding="utf-8")
            self.assertIn("*No logs recorded during this session.*", text)

    def test_retry_after_publish_failure(self) -> None:
        with local_tmp_dir() as tmp:
            lines: queue.Queue = queue.Queue()
            lines.put("end")
            publisher = OfflinePublisher(lines, "y")
            clock = FakeClock(start=local_time(2026, 2, 13, 9, 0))
            console, output = self.make_console(tmp, clock, lines, publisher=publisher)

            code = console.run("Write report", "alpha")

            self.assertEqual(code, 0)
            self.assertEqual(publisher.calls, 2)
            self.assertIn("Error while pushing: Failed to push to remote", output.getvalue())
            self.assertIn("Successfully pushed", output.getvalue())

    def test_declined_retry_ends_without_saving(self) -> None:
        with local_tmp_dir() as tmp:
            lines: queue.Queue = queue.Queue()
            lines.put("end")
            clock = FakeClock(start=local_time(2026, 2, 13, 9, 0))
            console, output = self.make_console(tmp, clock, lines, publisher=OfflinePublisher(lines, None))

            code = console.run("Write report", "alpha")

            self.assertEqual(code, 1)
            self.assertIn("Ended without saving.", output.getvalue())


class TestReadLines(unittest.TestCase):
    def test_lines_end_with_none(self) -> None:
        lines: queue.Queue = queue.Queue()
        read_lines(io.StringIO("first\r\nsecond\n"), lines)

        self.assertEqual([lines.get_nowait() for _ in range(3)], ["first", "second", None])


if __name__ == "__main__":
    unittest.main()
