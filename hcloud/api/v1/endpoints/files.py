"""文件操作路由：上传、列表、下载（按 ID 或路径）、重命名、删除（进入回收站）、搜索与图床直链。"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session

from hcloud.api.v1.schemas.files import (
    DirectoryData,
    FileData,
    FileDataResponse,
    FileListResponse,
    ListingData,
    ListingResponse,
    MutationResponse,
    PhysicalItemData,
    RenameBody,
    SearchData,
    SearchResponse,
    UsageData,
    UsageResponse,
)
from hcloud.api.v1.schemas.recycle import RecycleItemData, RecycleItemResponse
from hcloud.core.dependencies import get_current_user_id, get_db, get_file_service, get_recycle_bin
from hcloud.core.responses import create_response, stream_file_response, stream_image_response
from hcloud.core.timezone import ensure_utc
from hcloud.services.file_service import FileService
from hcloud.services.recycle_service import RecycleBin

router = APIRouter(prefix="/files", tags=["files"])
# 图床直链不需要认证
image_router = APIRouter(tags=["images"])


@router.post("", response_model=FileDataResponse)
def upload_file(
    path: str = Query("/"),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    entry = service.upload(
        db,
        owner_id=user_id,
        dir_path=path,
        filename=file.filename or "",
        size=file.size,
        stream=file.file,
    )
    return create_response("上传成功", FileData.from_entry(entry).model_dump())


@router.get("", response_model=ListingResponse)
def list_directory(
    path: str = Query("/"),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    listing = service.list_directory(db, owner_id=user_id, dir_path=path)
    data = ListingData(
        currentPath=listing.path,
        directories=[DirectoryData.from_entry(d) for d in listing.directories],
        files=[FileData.from_entry(f) for f in listing.files],
        mappedItems=[PhysicalItemData.from_item(i) for i in listing.mapped_items],
        staleRemoved=listing.report.stale_removed,
        orphans=listing.report.orphans,
    )
    return create_response("获取文件列表成功", data.model_dump())


@router.get("/search", response_model=SearchResponse)
def search(
    q: str = Query(""),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    result = service.search(db, owner_id=user_id, query=q)
    data = SearchData(
        files=[FileData.from_entry(f) for f in result.files],
        directories=[DirectoryData.from_entry(d) for d in result.directories],
    )
    return create_response("搜索成功", data.model_dump())


@router.get("/search-by-type", response_model=FileListResponse)
def search_by_type(
    file_type: str = Query(..., alias="type"),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    files = service.search_by_type(db, owner_id=user_id, category=file_type)
    return create_response("搜索成功", [FileData.from_entry(f).model_dump() for f in files])


@router.get("/usage", response_model=UsageResponse)
def usage(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    summary = service.usage(db, owner_id=user_id)
    data = UsageData(
        fileCount=summary.file_count,
        usedBytes=summary.used_bytes,
        recycledBytes=summary.recycled_bytes,
    )
    return create_response("获取用量成功", data.model_dump())


@router.get("/download")
def download_by_path(
    path: str = Query(...),
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    entry, handle = service.open_by_path(db, owner_id=user_id, path=path)
    return stream_file_response(handle, entry.name, entry.content_type, size=entry.size)


@router.get("/{file_id}/download")
def download_file(
    file_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    entry, handle = service.open_file(db, owner_id=user_id, file_id=file_id)
    return stream_file_response(handle, entry.name, entry.content_type, size=entry.size)


@router.put("/{file_id}/name", response_model=FileDataResponse)
def rename_file(
    file_id: int,
    payload: RenameBody,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    entry = service.rename_file(db, owner_id=user_id, file_id=file_id, new_name=payload.name)
    return create_response("重命名成功", FileData.from_entry(entry).model_dump())


@router.delete("/{file_id}", response_model=RecycleItemResponse)
def delete_file(
    file_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    recycle_bin: RecycleBin = Depends(get_recycle_bin),
):
    record = recycle_bin.quarantine_file(db, owner_id=user_id, file_id=file_id)
    return create_response("已移入回收站", RecycleItemData.from_record(record).model_dump())


@router.delete("/{file_id}/force", response_model=MutationResponse)
def force_delete_file(
    file_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    service.force_delete(db, owner_id=user_id, file_id=file_id)
    return create_response("已彻底删除", None)


@image_router.get("/i/{file_id}")
def public_image(
    file_id: int,
    db: Session = Depends(get_db),
    service: FileService = Depends(get_file_service),
):
    entry, handle = service.open_public_image(db, file_id=file_id)
    changed = ensure_utc(entry.update_time)
    etag = f'"{entry.id}-{int(changed.timestamp()) if changed else 0}"'
    return stream_image_response(handle, entry.content_type, size=entry.size, etag=etag)
