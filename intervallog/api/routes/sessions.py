from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ...storage import SessionStore
from ..deps import get_store
from ..schemas import SessionCountOut, SessionFileOut, SessionFileRequest

router = APIRouter(prefix="/api/v1", tags=["sessions"])


@router.get("/sessions", response_model=SessionCountOut)
def count_sessions(
    folder: str = Query(min_length=1),
    store: SessionStore = Depends(get_store),
) -> SessionCountOut:
    return SessionCountOut(count=store.count_session_files(folder))


@router.post("/sessions", response_model=SessionFileOut)
def write_session(payload: SessionFileRequest, store: SessionStore = Depends(get_store)) -> SessionFileOut:
    path = store.write_session_file(payload.folder, payload.file_name, payload.content)
    return SessionFileOut(path=str(path))
