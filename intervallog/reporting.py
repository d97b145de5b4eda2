from __future__ import annotations

from datetime import datetime

from .ledger import format_clock_time
from .models import SessionSummary

NO_LOGS_LINE = "*No logs recorded during this session.*"


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def format_duration(seconds: int) -> str:
    total = max(0, int(seconds))
    minutes, sec = divmod(total, 60)
    hours, minutes = divmod(minutes, 60)

    parts: list[str] = []
    if hours > 0:
        parts.append(_plural(hours, "hour"))
    if minutes > 0:
        parts.append(_plural(minutes, "minute"))
    if sec > 0 or not parts:
        parts.append(_plural(sec, "second"))
    return ", ".join(parts)


def format_long_date(value: datetime) -> str:
    return f"{value:%A}, {value:%B} {value.day}, {value.year}"


def session_file_name(session_number: int, start_time: datetime) -> str:
    return f"session_{session_number}_{start_time.astimezone().strftime('%Y-%m-%d')}.md"


def render_session_markdown(summary: SessionSummary) -> str:
    session = summary.session
    start = session.start_time.astimezone()
    end = summary.end_time.astimezone()
    start_text = format_clock_time(start, with_seconds=False)
    end_text = format_clock_time(end, with_seconds=False)

    lines: list[str] = []
    lines.append(f"# Work Session #{session.session_number} - {session.task_title}")
    lines.append(f"**Date:** {format_long_date(start)}")
    lines.append(f"**Time:** {start_text} - {end_text}")
    lines.append(f"**Duration:** {format_duration(summary.total_seconds)}")
    lines.append(f"**Folder:** {session.folder}")
    lines.append(f"**Description:** {session.description}")
    lines.append("---")
    lines.append("## Session Logs")

    if not summary.logs:
        lines.append(NO_LOGS_LINE)
    for entry in summary.logs:
        lines.append(f"### Interval {entry.interval} - {entry.timestamp}")
        lines.append(entry.content)

    lines.append("---")
    lines.append(f"*Session ended at {end_text}*")
    return "\n\n".join(lines) + "\n"
