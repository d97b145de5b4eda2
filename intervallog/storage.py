from __future__ import annotations

import logging
import os
from pathlib import Path
import re

from .errors import StorageError, ValidationError

logger = logging.getLogger(__name__)

SESSION_FILE_SUFFIX = ".md"
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_-]")


def sanitize_folder_name(name: str) -> str:
    trimmed = (name or "").strip()
    if not trimmed:
        raise ValidationError("Folder name is required")
    return _UNSAFE_CHARS.sub("_", trimmed)


def validate_path_component(value: str, *, field_name: str) -> str:
    trimmed = (value or "").strip()
    if not trimmed:
        raise ValidationError(f"{field_name} is required")
    if "\\" in trimmed:
        raise ValidationError(f"{field_name} cannot contain path separators")
    path = Path(trimmed)
    if len(path.parts) != 1:
        raise ValidationError(f"{field_name} must be a single path component")
    component = path.parts[0]
    if component in {".", ".."}:
        raise ValidationError(f"{field_name} cannot be '.' or '..'")
    return component


class SessionStore:
    """Project folders and Markdown session files under one root directory."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def ensure_root(self) -> Path:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to create {self.root}: {exc}") from exc
        return self.root

    def list_folders(self) -> list[str]:
        self.ensure_root()
        try:
            return sorted(entry.name for entry in self.root.iterdir() if entry.is_dir())
        except OSError as exc:
            raise StorageError(f"Failed to read folders in {self.root}: {exc}") from exc

    def create_folder(self, name: str) -> str:
        safe_name = sanitize_folder_name(name)
        folder_path = self.ensure_root() / safe_name
        try:
            folder_path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Failed to create folder {safe_name}: {exc}") from exc
        logger.info("Folder ready: %s", folder_path)
        return safe_name

    def folder_path(self, folder: str) -> Path:
        return self.root / validate_path_component(folder, field_name="folder")

    def count_session_files(self, folder: str) -> int:
        folder_path = self.folder_path(folder)
        if not folder_path.exists():
            return 0
        try:
            return sum(
                1 for entry in folder_path.iterdir() if entry.is_file() and entry.name.endswith(SESSION_FILE_SUFFIX)
            )
        except OSError as exc:
            raise StorageError(f"Failed to count sessions in {folder}: {exc}") from exc

    def write_session_file(self, folder: str, file_name: str, content: str) -> Path:
        folder_path = self.folder_path(folder)
        name = validate_path_component(file_name, field_name="file_name")
        if not content:
            raise ValidationError("content is required")

        target = folder_path / name
        temp_path = target.with_suffix(target.suffix + ".tmp")
        try:
            folder_path.mkdir(parents=True, exist_ok=True)
            with temp_path.open("w", encoding="utf-8") as fp:
                fp.write(content)
            os.replace(temp_path, target)
        except OSError as exc:
            raise StorageError(f"Failed to save session file {target}: {exc}") from exc
        logger.info("Session file written: %s", target)
        return target


def default_sessions_root() -> Path:
    return Path.cwd() / "work_sessions"
