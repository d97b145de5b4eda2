from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path

from .alerts import AlertDispatcher, Banner, Dispatch, Notifier, SoundPlayer
from .clock import Clock
from .config import AppConfig
from .errors import CollaboratorError, SessionSaveError, ValidationError
from .models import DEFAULT_DESCRIPTION, SessionSummary, WorkSession
from .publish import GitPublisher, PublishResult
from .reporting import render_session_markdown, session_file_name
from .storage import SessionStore, validate_path_component
from .timer import IntervalTimer

logger = logging.getLogger(__name__)


def build_alerts(config: AppConfig, clock: Clock, dispatch: Dispatch | None = None) -> AlertDispatcher:
    sound = SoundPlayer(config.sound_path, volume=config.volume, muted=config.muted)
    if config.sound_path is not None:
        sound.start_loading()
    notifier = Notifier(enabled=config.notify)
    notifier.request_permission()
    return AlertDispatcher(
        sound=sound,
        notifier=notifier,
        banner=Banner(clock, config.banner_seconds),
        dispatch=dispatch,
    )


@dataclass
class ActiveSession:
    session: WorkSession
    timer: IntervalTimer


@dataclass(frozen=True)
class SessionOutcome:
    path: Path
    publish: PublishResult | None


class SessionManager:
    """Starts work sessions and turns a finished one into a saved, published report."""

    def __init__(
        self,
        store: SessionStore,
        clock: Clock,
        publisher: GitPublisher | None = None,
        config: AppConfig | None = None,
        alerts: AlertDispatcher | None = None,
    ) -> None:
        self.store = store
        self.clock = clock
        self.publisher = publisher
        self.config = config or AppConfig()
        self.alerts = alerts

    def next_session_number(self, folder: str) -> int:
        return self.store.count_session_files(folder) + 1

    def start(self, task_title: str, folder: str, description: str = "") -> ActiveSession:
        title = (task_title or "").strip()
        if not title:
            raise ValidationError("Task title is required")
        folder_name = validate_path_component(folder, field_name="folder")

        session = WorkSession(
            task_title=title,
            folder=folder_name,
            session_number=self.next_session_number(folder_name),
            start_time=self.clock.now(),
            description=(description or "").strip() or DEFAULT_DESCRIPTION,
        )
        timer = IntervalTimer(
            self.clock,
            self.config.timer_config(title),
            alerts=self.alerts,
            start_time=session.start_time,
        )
        logger.info("Session #%d started in %s: %s", session.session_number, folder_name, title)
        return ActiveSession(session=session, timer=timer)

    def end(self, active: ActiveSession) -> SessionSummary:
        end_time = self.clock.now()
        total = int(round((end_time - active.session.start_time).total_seconds()))
        summary = SessionSummary(
            session=active.session,
            end_time=end_time,
            total_seconds=max(0, total),
            logs=active.timer.snapshot(),
        )
        logger.info(
            "Session #%d ended after %ds with %d log entries",
            active.session.session_number,
            summary.total_seconds,
            len(summary.logs),
        )
        return summary

    def save_and_publish(self, summary: SessionSummary) -> SessionOutcome:
        """Write the report, then publish it. Retrying always repeats both steps."""
        session = summary.session
        content = render_session_markdown(summary)
        file_name = session_file_name(session.session_number, session.start_time)

        try:
            path = self.store.write_session_file(session.folder, file_name, content)
        except CollaboratorError as exc:
            logger.error("Saving session #%d failed: %s", session.session_number, exc)
            raise SessionSaveError("saving", exc) from exc

        if self.publisher is None:
            return SessionOutcome(path=path, publish=None)

        try:
            result = self.publisher.publish(
                folder=session.folder,
                session_number=session.session_number,
                task_title=session.task_title,
                date=session.date_label,
            )
        except CollaboratorError as exc:
            logger.error("Publishing session #%d failed: %s", session.session_number, exc)
            raise SessionSaveError("pushing", exc) from exc
        return SessionOutcome(path=path, publish=result)
