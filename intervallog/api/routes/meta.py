from __future__ import annotations

import platform

from fastapi import APIRouter, Depends

from ... import __version__
from ...config import AppConfig
from ..deps import get_config
from ..schemas import MetaOut

router = APIRouter(prefix="/api/v1", tags=["system"])


@router.get("/meta", response_model=MetaOut)
def meta(config: AppConfig = Depends(get_config)) -> MetaOut:
    return MetaOut(
        app="IntervalLog",
        version=__version__,
        sessions_root=str(config.resolved_sessions_root()),
        repo_root=str(config.resolved_repo_root()),
        platform=platform.platform(),
    )
