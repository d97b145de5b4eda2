from __future__ import annotations

from fastapi import APIRouter, Depends

from ...storage import SessionStore
from ..deps import get_store
from ..schemas import FolderCreated, FolderCreateRequest, FoldersOut

router = APIRouter(prefix="/api/v1", tags=["folders"])


@router.get("/folders", response_model=FoldersOut)
def list_folders(store: SessionStore = Depends(get_store)) -> FoldersOut:
    return FoldersOut(folders=store.list_folders())


@router.post("/folders", response_model=FolderCreated)
def create_folder(payload: FolderCreateRequest, store: SessionStore = Depends(get_store)) -> FolderCreated:
    return FolderCreated(folder=store.create_folder(payload.name))
