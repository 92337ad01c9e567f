"""目录路由：创建、列表、重命名、删除（进入回收站）以及外部目录映射。"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hcloud.api.v1.schemas.files import (
    DirectoryData,
    DirectoryListResponse,
    DirectoryResponse,
    FolderCreateBody,
    MapDirectoryBody,
    MutationResponse,
    RenameBody,
)
from hcloud.api.v1.schemas.recycle import RecycleItemData, RecycleItemResponse
from hcloud.core.dependencies import get_current_user_id, get_db, get_directory_service, get_recycle_bin
from hcloud.core.responses import create_response
from hcloud.services.directory_service import DirectoryService
from hcloud.services.recycle_service import RecycleBin

router = APIRouter(prefix="/directories", tags=["directories"])


@router.post("", response_model=DirectoryResponse)
def create_directory(
    payload: FolderCreateBody,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    service: DirectoryService = Depends(get_directory_service),
):
    entry = service.create_directory(db, owner_id=user_id, parent_path=payload.path, name=payload.name)
    return create_response("创建目录成功", DirectoryData.from_entry(entry).model_dump())


@router.get("", response_model=DirectoryListResponse)
def list_directories(
    parent_id: Optional[int] = Query(None, alias="parentId"),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    service: DirectoryService = Depends(get_directory_service),
):
    entries = service.list_directories(db, owner_id=user_id, parent_id=parent_id)
    return create_response("获取目录列表成功", [DirectoryData.from_entry(e).model_dump() for e in entries])


@router.post("/mappings", response_model=DirectoryResponse)
def map_directory(
    payload: MapDirectoryBody,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    service: DirectoryService = Depends(get_directory_service),
):
    entry = service.map_directory(db, owner_id=user_id, source_path=payload.sourcePath, target_name=payload.name)
    return create_response("映射目录成功", DirectoryData.from_entry(entry).model_dump())


@router.delete("/mappings/{directory_id}", response_model=MutationResponse)
def unmap_directory(
    directory_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    service: DirectoryService = Depends(get_directory_service),
):
    service.unmap_directory(db, owner_id=user_id, directory_id=directory_id)
    return create_response("已取消映射", None)


@router.put("/{directory_id}/name", response_model=DirectoryResponse)
def rename_directory(
    directory_id: int,
    payload: RenameBody,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    service: DirectoryService = Depends(get_directory_service),
):
    entry = service.rename_directory(db, owner_id=user_id, directory_id=directory_id, new_name=payload.name)
    return create_response("重命名成功", DirectoryData.from_entry(entry).model_dump())


@router.delete("/{directory_id}", response_model=RecycleItemResponse)
def delete_directory(
    directory_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    recycle_bin: RecycleBin = Depends(get_recycle_bin),
):
    record = recycle_bin.quarantine_directory(db, owner_id=user_id, directory_id=directory_id)
    return create_response("已移入回收站", RecycleItemData.from_record(record).model_dump())
