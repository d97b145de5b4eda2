from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends

from ...publish import GitPublisher
from ..deps import get_publisher
from ..schemas import PublishOut, PublishRequest

router = APIRouter(prefix="/api/v1", tags=["publish"])


@router.post("/publish", response_model=PublishOut)
def publish(payload: PublishRequest, publisher: GitPublisher = Depends(get_publisher)) -> PublishOut:
    result = publisher.publish(
        folder=payload.folder,
        session_number=payload.session_number,
        task_title=payload.task_title,
        date=payload.date or date.today().isoformat(),
    )
    return PublishOut(success=result.success, message=result.message, committed=result.committed)
