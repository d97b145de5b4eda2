from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterator

from .errors import ValidationError

PLACEHOLDER_CONTENT = "[No log entered]"


def format_clock_time(value: datetime, with_seconds: bool = True) -> str:
    """12-hour clock label such as ``9:05:07 AM``."""
    pattern = "%I:%M:%S %p" if with_seconds else "%I:%M %p"
    text = value.strftime(pattern)
    return text[1:] if text.startswith("0") else text


def normalize_content(content: str | None) -> str:
    text = (content or "").strip()
    return text or PLACEHOLDER_CONTENT


@dataclass(frozen=True)
class LogEntry:
    interval: int
    captured_at: datetime
    content: str
    auto_saved: bool = False

    @property
    def timestamp(self) -> str:
        return format_clock_time(self.captured_at.astimezone())

    def to_dict(self) -> dict[str, Any]:
        return {
            "interval": self.interval,
            "captured_at": self.captured_at.isoformat(),
            "timestamp": self.timestamp,
            "content": self.content,
            "auto_saved": self.auto_saved,
        }


class LogLedger:
    """Append-only record of the log entries captured during one session."""

    def __init__(self) -> None:
        self._entries: list[LogEntry] = []

    def append(self, entry: LogEntry) -> None:
        if not entry.content:
            raise ValidationError("log entry content cannot be empty")
        last = self.last
        if last is not None and entry.interval <= last.interval:
            raise ValidationError(
                f"log entry for interval {entry.interval} would follow interval {last.interval}"
            )
        self._entries.append(entry)

    def snapshot(self) -> tuple[LogEntry, ...]:
        return tuple(self._entries)

    @property
    def last(self) -> LogEntry | None:
        return self._entries[-1] if self._entries else None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(self.snapshot())
