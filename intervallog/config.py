from __future__ import annotations

from dataclasses import dataclass, replace
import json
import logging
import os
from pathlib import Path
from typing import Any, Mapping

from .timer import DEFAULT_CAPTURE_SECONDS, DEFAULT_INTERVAL_SECONDS, TimerConfig

logger = logging.getLogger(__name__)

SETTINGS_DIR_NAME = ".intervallog"
SETTINGS_FILE_NAME = "settings.json"
ENV_PREFIX = "INTERVALLOG_"


def _as_bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "no", "n", "off", ""}:
            return False
    return default


def _as_path(value: Any) -> Path | None:
    text = str(value or "").strip()
    return Path(text).expanduser() if text else None


@dataclass(frozen=True)
class AppConfig:
    sessions_root: Path | None = None
    repo_root: Path | None = None
    interval_seconds: float = DEFAULT_INTERVAL_SECONDS
    capture_seconds: float = DEFAULT_CAPTURE_SECONDS
    banner_seconds: float = 8.0
    tick_seconds: float = 1.0
    suspend_threshold: float = 5.0
    volume: float = 0.7
    muted: bool = False
    notify: bool = True
    push: bool = True
    sound_path: Path | None = None

    def resolved_sessions_root(self) -> Path:
        return self.sessions_root or Path.cwd() / "work_sessions"

    def resolved_repo_root(self) -> Path:
        return self.repo_root or self.resolved_sessions_root().parent

    def timer_config(self, task_title: str = "") -> TimerConfig:
        return TimerConfig(
            interval_seconds=self.interval_seconds,
            capture_seconds=self.capture_seconds,
            task_title=task_title,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "sessions_root": str(self.sessions_root) if self.sessions_root else "",
            "repo_root": str(self.repo_root) if self.repo_root else "",
            "interval_seconds": self.interval_seconds,
            "capture_seconds": self.capture_seconds,
            "banner_seconds": self.banner_seconds,
            "tick_seconds": self.tick_seconds,
            "suspend_threshold": self.suspend_threshold,
            "volume": self.volume,
            "muted": self.muted,
            "notify": self.notify,
            "push": self.push,
            "sound_path": str(self.sound_path) if self.sound_path else "",
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> AppConfig:
        defaults = cls()
        return cls(
            sessions_root=_as_path(payload.get("sessions_root")),
            repo_root=_as_path(payload.get("repo_root")),
            interval_seconds=float(payload.get("interval_seconds", defaults.interval_seconds)),
            capture_seconds=float(payload.get("capture_seconds", defaults.capture_seconds)),
            banner_seconds=float(payload.get("banner_seconds", defaults.banner_seconds)),
            tick_seconds=float(payload.get("tick_seconds", defaults.tick_seconds)),
            suspend_threshold=float(payload.get("suspend_threshold", defaults.suspend_threshold)),
            volume=min(1.0, max(0.0, float(payload.get("volume", defaults.volume)))),
            muted=_as_bool(payload.get("muted", defaults.muted), defaults.muted),
            notify=_as_bool(payload.get("notify", defaults.notify), defaults.notify),
            push=_as_bool(payload.get("push", defaults.push), defaults.push),
            sound_path=_as_path(payload.get("sound_path")),
        )

    def with_env(self, environ: Mapping[str, str] | None = None) -> AppConfig:
        env = os.environ if environ is None else environ
        updates: dict[str, Any] = {}
        if env.get(f"{ENV_PREFIX}ROOT", "").strip():
            updates["sessions_root"] = _as_path(env[f"{ENV_PREFIX}ROOT"])
        if env.get(f"{ENV_PREFIX}REPO", "").strip():
            updates["repo_root"] = _as_path(env[f"{ENV_PREFIX}REPO"])
        if env.get(f"{ENV_PREFIX}SOUND", "").strip():
            updates["sound_path"] = _as_path(env[f"{ENV_PREFIX}SOUND"])
        for key in ("interval_seconds", "capture_seconds", "volume"):
            raw = env.get(f"{ENV_PREFIX}{key.upper()}", "").strip()
            if not raw:
                continue
            try:
                updates[key] = float(raw)
            except ValueError:
                logger.warning("Ignoring %s%s=%r: not a number", ENV_PREFIX, key.upper(), raw)
        if f"{ENV_PREFIX}MUTED" in env:
            updates["muted"] = _as_bool(env[f"{ENV_PREFIX}MUTED"], self.muted)
        return replace(self, **updates) if updates else self


def default_settings_path(home: Path | None = None) -> Path:
    base = home if home is not None else Path.home()
    return base / SETTINGS_DIR_NAME / SETTINGS_FILE_NAME


def load_config(path: Path | None = None, environ: Mapping[str, str] | None = None) -> AppConfig:
    target = path or default_settings_path()
    config = AppConfig()
    if target.exists():
        with target.open("r", encoding="utf-8") as fp:
            config = AppConfig.from_dict(json.load(fp))
        logger.debug("Loaded settings from %s", target)
    return config.with_env(environ)


def save_config(config: AppConfig, path: Path | None = None) -> Path:
    target = path or default_settings_path()
    target.parent.mkdir(parents=True, exist_ok=True)
    temp_path = target.with_suffix(target.suffix + ".tmp")
    with temp_path.open("w", encoding="utf-8") as fp:
        json.dump(config.to_dict(), fp, indent=2, ensure_ascii=False, sort_keys=True)
        fp.write("\n")
    temp_path.replace(target)
    return target
