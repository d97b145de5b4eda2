from __future__ import annotations

import json
import queue
from typing import Iterator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from ..deps import get_timer_service
from ..schemas import LogRequest, TimerStartRequest, TimerStateOut, VolumeRequest
from ..timer_service import TimerService

router = APIRouter(prefix="/api/v1", tags=["timer"])


@router.post("/timer/start", response_model=TimerStateOut)
def start_timer(
    payload: TimerStartRequest,
    service: TimerService = Depends(get_timer_service),
) -> dict[str, object]:
    return vars(service.start(payload.task_title, payload.folder, payload.description))


@router.get("/timer/state", response_model=TimerStateOut)
def timer_state(service: TimerService = Depends(get_timer_service)) -> dict[str, object]:
    return vars(service.state())


@router.post("/timer/log")
def save_log(payload: LogRequest, service: TimerService = Depends(get_timer_service)) -> dict[str, object]:
    return service.log(payload.content)


@router.post("/timer/resume", response_model=TimerStateOut)
def resume_timer(service: TimerService = Depends(get_timer_service)) -> dict[str, object]:
    return vars(service.resume())


@router.post("/timer/end", response_model=TimerStateOut)
def end_session(service: TimerService = Depends(get_timer_service)) -> dict[str, object]:
    return vars(service.end())


@router.post("/timer/retry", response_model=TimerStateOut)
def retry_save(service: TimerService = Depends(get_timer_service)) -> dict[str, object]:
    return vars(service.retry())


@router.post("/timer/discard", response_model=TimerStateOut)
def discard_session(service: TimerService = Depends(get_timer_service)) -> dict[str, object]:
    return vars(service.discard())


@router.post("/timer/volume")
def set_volume(payload: VolumeRequest, service: TimerService = Depends(get_timer_service)) -> dict[str, object]:
    return service.set_volume(volume=payload.volume, muted=payload.muted)


@router.post("/alerts/test")
def test_alert(service: TimerService = Depends(get_timer_service)) -> dict[str, object]:
    service.test_alert()
    return {"success": True}


@router.get("/timer/stream")
def timer_stream(service: TimerService = Depends(get_timer_service)) -> StreamingResponse:
    subscriber = service.subscribe()

    def event_iter() -> Iterator[str]:
        try:
            while True:
                try:
                    event = subscriber.get(timeout=10)
                    yield f"data: {json.dumps(event, ensure_ascii=False, default=str)}\n\n"
                except queue.Empty:
                    yield ": keepalive\n\n"
        finally:
            service.unsubscribe(subscriber)

    return StreamingResponse(event_iter(), media_type="text/event-stream")
