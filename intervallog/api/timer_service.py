from __future__ import annotations

from dataclasses import dataclass, field
import logging
import queue
from threading import Lock, Thread
from typing import Any

from ..alerts import Dispatch
from ..clock import Clock, RealClock
from ..config import AppConfig
from ..errors import SessionSaveError, TimerStateError, ValidationError
from ..models import SessionSummary
from ..publish import GitPublisher
from ..scheduler import TickLoop
from ..session import ActiveSession, SessionManager, build_alerts
from ..storage import SessionStore

logger = logging.getLogger(__name__)


@dataclass
class TimerState:
    status: str = "idle"
    detail: str = "Waiting for a session"
    session: dict[str, Any] | None = None
    report: dict[str, Any] | None = None
    banner: dict[str, Any] | None = None
    logs: list[dict[str, Any]] = field(default_factory=list)
    outcome: dict[str, Any] | None = None
    last_event: dict[str, Any] = field(default_factory=dict)


class TimerService:
    """Owns the one active session and drives its timer on a background loop."""

    def __init__(
        self,
        clock: Clock | None = None,
        autorun: bool = True,
        dispatch: Dispatch | None = None,
    ) -> None:
        self._lock = Lock()
        self._dispatch = dispatch
        self._clock = clock or RealClock()
        self._autorun = autorun
        self._config = AppConfig()
        self._active: ActiveSession | None = None
        self._loop: TickLoop | None = None
        self._worker: Thread | None = None
        self._summary: SessionSummary | None = None
        self._state = TimerState()
        self._subscribers: list[queue.Queue[dict[str, Any]]] = []
        self.configure(self._config)

    def configure(self, config: AppConfig) -> None:
        with self._lock:
            self._config = config
            sessions_root = config.resolved_sessions_root()
            self.store = SessionStore(sessions_root)
            self.publisher = GitPublisher(config.resolved_repo_root(), sessions_root, push=config.push)
            self.alerts = build_alerts(config, self._clock, dispatch=self._dispatch)
            self.manager = SessionManager(
                self.store,
                self._clock,
                publisher=self.publisher,
                config=config,
                alerts=self.alerts,
            )

    @property
    def config(self) -> AppConfig:
        return self._config

    def state(self) -> TimerState:
        with self._lock:
            return self._snapshot_locked()

    def start(self, task_title: str, folder: str, description: str = "") -> TimerState:
        with self._lock:
            if self._active is not None:
                raise TimerStateError("a session is already running")
            if self._summary is not None:
                raise TimerStateError("the previous session has not been saved or discarded")

            active = self.manager.start(task_title, folder, description)
            self._active = active
            self._loop = TickLoop(
                self._clock,
                active.timer,
                tick_seconds=self._config.tick_seconds,
                suspend_threshold=self._config.suspend_threshold,
                progress_callback=self._on_event,
                guard=self._lock,
            )
            self._state = TimerState(status="running", detail="Interval running")
            if self._autorun:
                self._worker = Thread(target=self._loop.run, daemon=True)
                self._worker.start()
            self._broadcast({"event": "state", "status": "running"})
            return self._snapshot_locked()

    def pump(self) -> int:
        """Run any due ticks on the caller's thread (used when autorun is off)."""
        loop = self._loop
        if loop is None:
            return 0
        return loop.run_once()

    def log(self, content: str) -> dict[str, Any]:
        with self._lock:
            active = self._require_active()
            entry = active.timer.resolve(content)
            self._state.status = "running"
            self._state.detail = f"Interval {entry.interval} logged"
            payload = entry.to_dict()
            self._broadcast({"event": "log_saved", **payload})
            return payload

    def resume(self) -> TimerState:
        with self._lock:
            active = self._require_active()
            report = active.timer.resume()
            self._apply_report(report.to_dict())
            self._broadcast({"event": "resume", **report.to_dict()})
            return self._snapshot_locked()

    def set_volume(self, volume: float | None = None, muted: bool | None = None) -> dict[str, Any]:
        with self._lock:
            sound = self.alerts.sound
            if sound is None:
                return {"volume": 0.0, "muted": True}
            if volume is not None:
                sound.set_volume(volume)
            if muted is not None:
                sound.set_muted(muted)
            return {"volume": sound.volume, "muted": sound.muted}

    def test_alert(self) -> None:
        self.alerts.test()

    def end(self) -> TimerState:
        with self._lock:
            active = self._require_active()
            loop, worker = self._loop, self._worker
            if loop is not None:
                loop.request_stop()

        if worker is not None:
            worker.join(timeout=5.0)

        with self._lock:
            self._summary = self.manager.end(active)
            self._active = None
            self._loop = None
            self._worker = None
            self._state.report = None
        return self._save()

    def retry(self) -> TimerState:
        with self._lock:
            if self._summary is None:
                raise TimerStateError("there is no finished session to save")
        return self._save()

    def discard(self) -> TimerState:
        with self._lock:
            if self._summary is not None:
                logger.warning(
                    "Discarding unsaved session #%d", self._summary.session.session_number
                )
            self._summary = None
            self._state = TimerState(status="idle", detail="Session discarded")
            self._broadcast({"event": "state", "status": "idle"})
            return self._snapshot_locked()

    def subscribe(self) -> queue.Queue[dict[str, Any]]:
        q: queue.Queue[dict[str, Any]] = queue.Queue(maxsize=200)
        with self._lock:
            self._subscribers.append(q)
        return q

    def unsubscribe(self, q: queue.Queue[dict[str, Any]]) -> None:
        with self._lock:
            self._subscribers = [item for item in self._subscribers if item is not q]

    def _save(self) -> TimerState:
        with self._lock:
            summary = self._summary
            if summary is None:
                raise TimerStateError("there is no finished session to save")
            self._state.status = "saving"
            self._state.detail = "Saving session file"
            self._broadcast({"event": "state", "status": "saving"})

        try:
            outcome = self.manager.save_and_publish(summary)
        except SessionSaveError as exc:
            with self._lock:
                self._state.status = "error"
                self._state.detail = str(exc)
                self._state.outcome = {"stage": exc.stage, "error": str(exc.cause)}
                self._broadcast({"event": "state", "status": "error", "stage": exc.stage})
                return self._snapshot_locked()
        except ValidationError as exc:
            logger.error("Session #%d cannot be saved: %s", summary.session.session_number, exc)
            with self._lock:
                self._state.status = "error"
                self._state.detail = str(exc)
                self._state.outcome = {"stage": "saving", "error": str(exc)}
                self._broadcast({"event": "state", "status": "error", "stage": "saving"})
                return self._snapshot_locked()

        with self._lock:
            self._summary = None
            publish = outcome.publish
            self._state = TimerState(
                status="saved",
                detail=publish.message if publish is not None else "Session saved",
                session=summary.session.to_dict(),
                logs=[entry.to_dict() for entry in summary.logs],
                outcome={"path": str(outcome.path), "published": publish is not None},
            )
            self._broadcast({"event": "state", "status": "saved"})
            return self._snapshot_locked()

    def _require_active(self) -> ActiveSession:
        if self._active is None:
            raise TimerStateError("no session is running")
        return self._active

    def _snapshot_locked(self) -> TimerState:
        active = self._active
        if active is not None:
            self._state.session = active.session.to_dict()
            self._apply_report(active.timer.report().to_dict())
            self._state.logs = [entry.to_dict() for entry in active.timer.snapshot()]
        elif self._summary is not None:
            self._state.session = self._summary.session.to_dict()
            self._state.logs = [entry.to_dict() for entry in self._summary.logs]
        banner = self.alerts.banner
        current = banner.current() if banner is not None else None
        self._state.banner = (
            {"title": current.title, "message": current.message, "hide_at": current.hide_at.isoformat()}
            if current is not None
            else None
        )
        return TimerState(**vars(self._state))

    def _apply_report(self, report: dict[str, Any]) -> None:
        self._state.report = report
        self._state.status = str(report.get("phase", "running"))
        if self._state.status == "capturing":
            self._state.detail = "Log your progress"
        else:
            self._state.detail = "Interval running"

    def _broadcast(self, event: dict[str, Any]) -> None:
        alive: list[queue.Queue[dict[str, Any]]] = []
        for q in self._subscribers:
            try:
                q.put_nowait(event)
                alive.append(q)
            except queue.Full:
                continue
        self._subscribers = alive

    def _on_event(self, event: str, payload: dict[str, Any]) -> None:
        with self._lock:
            normalized = {"event": event, **payload}
            self._state.last_event = normalized
            if event in {"tick", "resume"} and self._active is not None:
                self._apply_report(payload)
            self._broadcast(normalized)


timer_service = TimerService()
