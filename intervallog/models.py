from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from .ledger import LogEntry

DEFAULT_DESCRIPTION = "No description provided"


@dataclass(frozen=True)
class WorkSession:
    task_title: str
    folder: str
    session_number: int
    start_time: datetime
    description: str = DEFAULT_DESCRIPTION

    @property
    def date_label(self) -> str:
        return self.start_time.astimezone().strftime("%Y-%m-%d")

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_title": self.task_title,
            "folder": self.folder,
            "session_number": self.session_number,
            "start_time": self.start_time.isoformat(),
            "description": self.description,
        }


@dataclass(frozen=True)
class SessionSummary:
    session: WorkSession
    end_time: datetime
    total_seconds: int
    logs: tuple[LogEntry, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "session": self.session.to_dict(),
            "end_time": self.end_time.isoformat(),
            "total_seconds": self.total_seconds,
            "logs": [entry.to_dict() for entry in self.logs],
        }
