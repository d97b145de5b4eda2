from __future__ import annotations

from fastapi import APIRouter, Depends

from ..deps import get_timer_service
from ..schemas import HealthOut
from ..timer_service import TimerService

router = APIRouter(prefix="/api/v1", tags=["system"])


@router.get("/health", response_model=HealthOut)
def health(service: TimerService = Depends(get_timer_service)) -> HealthOut:
    return HealthOut(status="ok", timer=service.state().status)
