from __future__ import annotations

from dataclasses import dataclass
import logging
import os
from pathlib import Path
import subprocess

from .errors import PublishError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_GIT_TIMEOUT_SECONDS = 60
NOTHING_TO_COMMIT = "nothing to commit"


@dataclass(frozen=True)
class PublishResult:
    success: bool
    message: str
    committed: bool


def commit_message(session_number: int, task_title: str, date: str) -> str:
    return f"Work Session #{session_number} - {task_title} - {date}"


class GitPublisher:
    """Stages, commits and pushes one session folder with plain git commands."""

    def __init__(
        self,
        repo_root: Path,
        sessions_root: Path,
        *,
        timeout_seconds: int = DEFAULT_GIT_TIMEOUT_SECONDS,
        push: bool = True,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {timeout_seconds}")
        self.repo_root = Path(repo_root)
        self.sessions_root = Path(sessions_root)
        self.timeout_seconds = timeout_seconds
        self.push = push

    def publish(self, folder: str, session_number: int, task_title: str, date: str) -> PublishResult:
        if not folder or not session_number or not (task_title or "").strip():
            raise ValidationError("Missing required fields")

        folder_spec = self._folder_spec(folder)
        message = commit_message(session_number, task_title.strip(), date)

        self._git("stage", ["add", folder_spec])
        commit = self._git("commit", ["commit", "-m", message], allow_failure=True)
        if commit.returncode != 0:
            output = f"{commit.stdout}\n{commit.stderr}"
            if NOTHING_TO_COMMIT in output:
                logger.info("Nothing to commit for %s", folder_spec)
                return PublishResult(success=True, message="No changes to commit", committed=False)
            raise PublishError("commit", "Failed to commit changes", output.strip())

        if not self.push:
            return PublishResult(success=True, message="Committed locally", committed=True)

        self._git("push", ["push"])
        logger.info("Pushed %s: %s", folder_spec, message)
        return PublishResult(success=True, message="Successfully pushed", committed=True)

    def _folder_spec(self, folder: str) -> str:
        target = (self.sessions_root / folder).resolve()
        try:
            relative = target.relative_to(self.repo_root.resolve())
        except ValueError:
            relative = target
        return relative.as_posix().rstrip("/") + "/"

    def _git(
        self,
        step: str,
        args: list[str],
        allow_failure: bool = False,
    ) -> subprocess.CompletedProcess[str]:
        try:
            completed = subprocess.run(
                ["git", *args],
                cwd=str(self.repo_root),
                text=True,
                capture_output=True,
                check=False,
                timeout=self.timeout_seconds,
                env={**os.environ, "GIT_TERMINAL_PROMPT": "0"},
            )
        except subprocess.TimeoutExpired as exc:
            raise PublishError(step, f"git {args[0]} timed out after {self.timeout_seconds}s") from exc
        except OSError as exc:
            raise PublishError(step, f"Failed to run git: {exc}") from exc

        if completed.returncode != 0 and not allow_failure:
            output = f"{completed.stdout}\n{completed.stderr}".strip()
            logger.error("git %s failed (exit %d): %s", args[0], completed.returncode, output)
            raise PublishError(step, _STEP_ERRORS.get(step, f"git {args[0]} failed"), output)
        return completed


_STEP_ERRORS = {
    "stage": "Failed to stage files",
    "commit": "Failed to commit changes",
    "push": "Failed to push to remote",
}
