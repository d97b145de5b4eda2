from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class HealthOut(BaseModel):
    status: str = Field(default="ok")
    timer: str = "idle"


class MetaOut(BaseModel):
    app: str
    version: str
    sessions_root: str
    repo_root: str
    platform: str


class FoldersOut(BaseModel):
    folders: list[str]


class FolderCreateRequest(BaseModel):
    name: str = Field(min_length=1)


class FolderCreated(BaseModel):
    success: bool = True
    folder: str


class SessionCountOut(BaseModel):
    count: int


class SessionFileRequest(BaseModel):
    folder: str = Field(min_length=1)
    file_name: str = Field(min_length=1)
    content: str = Field(min_length=1)


class SessionFileOut(BaseModel):
    success: bool = True
    path: str


class PublishRequest(BaseModel):
    folder: str = Field(min_length=1)
    session_number: int = Field(ge=1)
    task_title: str = Field(min_length=1)
    date: str = ""


class PublishOut(BaseModel):
    success: bool
    message: str
    committed: bool


class TimerStartRequest(BaseModel):
    task_title: str = Field(min_length=1)
    folder: str = Field(min_length=1)
    description: str = ""


class LogRequest(BaseModel):
    content: str = ""


class VolumeRequest(BaseModel):
    volume: float | None = Field(default=None, ge=0, le=1)
    muted: bool | None = None


class TimerStateOut(BaseModel):
    status: str
    detail: str
    session: dict[str, Any] | None = None
    report: dict[str, Any] | None = None
    banner: dict[str, Any] | None = None
    logs: list[dict[str, Any]] = Field(default_factory=list)
    outcome: dict[str, Any] | None = None
    last_event: dict[str, Any] = Field(default_factory=dict)
