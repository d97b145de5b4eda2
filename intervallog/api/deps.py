from __future__ import annotations

from fastapi import Request

from ..config import AppConfig
from ..publish import GitPublisher
from ..storage import SessionStore
from .timer_service import TimerService


def get_config(request: Request) -> AppConfig:
    return request.app.state.config


def get_timer_service(request: Request) -> TimerService:
    return request.app.state.timer_service


def get_store(request: Request) -> SessionStore:
    return get_timer_service(request).store


def get_publisher(request: Request) -> GitPublisher:
    return get_timer_service(request).publisher
