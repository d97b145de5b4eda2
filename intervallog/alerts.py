from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
import logging
from pathlib import Path
import platform
import shutil
import subprocess
import sys
from threading import Lock, Thread
from typing import Callable, TextIO

from .clock import Clock

logger = logging.getLogger(__name__)

Dispatch = Callable[[Callable[[], None]], None]

PERMISSION_DEFAULT = "default"
PERMISSION_GRANTED = "granted"
PERMISSION_DENIED = "denied"


@dataclass(frozen=True)
class AlertContext:
    title: str
    body: str
    icon: str | None = None
    interval: int | None = None


def _spawn_daemon(action: Callable[[], None]) -> None:
    Thread(target=action, daemon=True).start()


class SoundPlayer:
    """Plays the boundary cue through whatever audio player the platform offers."""

    def __init__(
        self,
        sound_path: Path | None = None,
        volume: float = 0.7,
        muted: bool = False,
        stream: TextIO | None = None,
    ) -> None:
        self.sound_path = Path(sound_path) if sound_path else None
        self.volume = min(1.0, max(0.0, float(volume)))
        self.muted = muted
        self.stream = stream or sys.stdout
        self._loaded = False
        self._lock = Lock()

    @property
    def ready(self) -> bool:
        return self._loaded

    def set_volume(self, volume: float) -> None:
        self.volume = min(1.0, max(0.0, float(volume)))
        if self.volume > 0:
            self.muted = False

    def set_muted(self, muted: bool) -> None:
        self.muted = muted

    def load(self) -> bool:
        if self.sound_path is None:
            return False
        try:
            data = self.sound_path.read_bytes()
        except OSError:
            logger.exception("Failed to load sound file %s", self.sound_path)
            return False
        with self._lock:
            self._loaded = bool(data)
        logger.debug("Sound file %s loaded (%d bytes)", self.sound_path, len(data))
        return self._loaded

    def start_loading(self, dispatch: Dispatch = _spawn_daemon) -> None:
        dispatch(self.load)

    def play(self) -> bool:
        if self.muted or self.volume <= 0:
            return False
        if self.sound_path is None:
            self.stream.write("\a")
            self.stream.flush()
            return True
        if not self.ready:
            logger.debug("Sound not loaded yet; skipping audible cue")
            return False

        system_name = platform.system().lower()
        if system_name == "windows":
            import winsound

            winsound.PlaySound(str(self.sound_path), winsound.SND_FILENAME | winsound.SND_ASYNC)
            return True

        command = self._player_command(system_name)
        if command is None:
            self.stream.write("\a")
            self.stream.flush()
            return True
        subprocess.Popen(command, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        return True

    def _player_command(self, system_name: str) -> list[str] | None:
        path = str(self.sound_path)
        if system_name == "darwin" and shutil.which("afplay"):
            return ["afplay", "-v", f"{self.volume:.2f}", path]
        if system_name == "linux":
            if shutil.which("paplay"):
                return ["paplay", f"--volume={int(self.volume * 65536)}", path]
            if shutil.which("aplay"):
                return ["aplay", "-q", path]
        return None


class Notifier:
    def __init__(
        self,
        stream: TextIO | None = None,
        enabled: bool = True,
        timeout_seconds: float = 5.0,
    ) -> None:
        self.stream = stream or sys.stdout
        self.enabled = enabled
        self.timeout_seconds = timeout_seconds
        self.permission = PERMISSION_DEFAULT

    def request_permission(self) -> str:
        if not self.enabled:
            self.permission = PERMISSION_DENIED
        elif self._backend() is not None:
            self.permission = PERMISSION_GRANTED
        else:
            self.permission = PERMISSION_DENIED
        logger.debug("Notification permission: %s", self.permission)
        return self.permission

    def notify(self, title: str, message: str, icon: str | None = None) -> bool:
        if self.permission != PERMISSION_GRANTED:
            return False

        sent = False
        backend = self._backend()
        try:
            if backend == "darwin":
                script = (
                    "display notification "
                    f"\"{self._escape(message)}\" with title \"{self._escape(title)}\""
                )
                result = subprocess.run(
                    ["osascript", "-e", script],
                    check=False,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                    timeout=self.timeout_seconds,
                )
                sent = result.returncode == 0
            elif backend == "linux":
                command = ["notify-send", "--urgency=critical"]
                if icon:
                    command.extend(["--icon", icon])
                command.extend([title, message])
                result = subprocess.run(
                    command,
                    check=False,
                    stdout=subprocess.DEVNULL,
                    stderr=subprocess.DEVNULL,
                    timeout=self.timeout_seconds,
                )
                sent = result.returncode == 0
        except (OSError, subprocess.SubprocessError):
            logger.exception("System notification failed")
            sent = False

        if not sent:
            self.stream.write(f"[notification] {title}: {message}\n")
            self.stream.flush()
        return sent

    def _backend(self) -> str | None:
        system_name = platform.system().lower()
        if system_name == "darwin" and shutil.which("osascript"):
            return "darwin"
        if system_name == "linux" and shutil.which("notify-send"):
            return "linux"
        return None

    @staticmethod
    def _escape(text: str) -> str:
        return text.replace("\\", "\\\\").replace('"', '\\"')


@dataclass(frozen=True)
class BannerState:
    title: str
    message: str
    shown_at: datetime
    hide_at: datetime


class Banner:
    """In-app banner that hides itself once its display deadline passes."""

    def __init__(self, clock: Clock, duration_seconds: float = 8.0) -> None:
        self.clock = clock
        self.duration_seconds = duration_seconds
        self._state: BannerState | None = None

    def show(self, title: str, message: str) -> BannerState:
        now = self.clock.now()
        self._state = BannerState(
            title=title,
            message=message,
            shown_at=now,
            hide_at=now + timedelta(seconds=self.duration_seconds),
        )
        return self._state

    def dismiss(self) -> None:
        self._state = None

    def current(self) -> BannerState | None:
        state = self._state
        if state is not None and self.clock.now() >= state.hide_at:
            self._state = None
            return None
        return state

    @property
    def visible(self) -> bool:
        return self.current() is not None


class AlertDispatcher:
    def __init__(
        self,
        sound: SoundPlayer | None = None,
        notifier: Notifier | None = None,
        banner: Banner | None = None,
        dispatch: Dispatch | None = None,
    ) -> None:
        self.sound = sound
        self.notifier = notifier
        self.banner = banner
        self._dispatch = dispatch or _spawn_daemon

    def fire(self, context: AlertContext) -> None:
        logger.info("Alert: %s", context.title)
        if self.banner is not None:
            banner = self.banner
            self._attempt("banner", lambda: banner.show(context.title, context.body))
        if self.sound is not None:
            sound = self.sound
            self._submit("sound", sound.play)
        if self.notifier is not None:
            notifier = self.notifier
            self._submit("notification", lambda: notifier.notify(context.title, context.body, context.icon))

    def test(self) -> None:
        self.fire(AlertContext(title="IntervalLog test alert", body="Sound and notifications are working."))

    def dismiss_banner(self) -> None:
        if self.banner is not None:
            self.banner.dismiss()

    def _submit(self, name: str, action: Callable[[], object]) -> None:
        try:
            self._dispatch(lambda: self._attempt(name, action))
        except Exception:
            logger.exception("Could not dispatch %s alert", name)

    def _attempt(self, name: str, action: Callable[[], object]) -> None:
        try:
            action()
        except Exception:
            logger.exception("%s alert failed", name.capitalize())
