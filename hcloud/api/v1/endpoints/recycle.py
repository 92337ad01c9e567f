"""回收站路由。"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hcloud.api.v1.schemas.files import MutationResponse
from hcloud.api.v1.schemas.recycle import (
    RecycleItemData,
    RecycleListResponse,
    RestoreData,
    RestoreResponse,
)
from hcloud.core.dependencies import get_current_user_id, get_db, get_recycle_bin
from hcloud.core.responses import create_response
from hcloud.services.recycle_service import RecycleBin

router = APIRouter(prefix="/recycle", tags=["recycle"])


@router.get("", response_model=RecycleListResponse)
def list_quarantined(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    recycle_bin: RecycleBin = Depends(get_recycle_bin),
):
    records = recycle_bin.list_quarantined(db, owner_id=user_id)
    return create_response("获取回收站列表成功", [RecycleItemData.from_record(r).model_dump() for r in records])


@router.post("/{item_id}/restore", response_model=RestoreResponse)
def restore(
    item_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    recycle_bin: RecycleBin = Depends(get_recycle_bin),
):
    result = recycle_bin.restore(db, owner_id=user_id, item_id=item_id)
    data = RestoreData(path=result.path, itemType=result.item_type, id=result.entry.id, renamed=result.renamed)
    return create_response("恢复成功", data.model_dump())


@router.delete("/{item_id}", response_model=MutationResponse)
def purge_one(
    item_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    recycle_bin: RecycleBin = Depends(get_recycle_bin),
):
    recycle_bin.purge_one(db, owner_id=user_id, item_id=item_id)
    return create_response("已彻底删除", None)


@router.delete("", response_model=MutationResponse)
def empty_all(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    recycle_bin: RecycleBin = Depends(get_recycle_bin),
):
    removed = recycle_bin.empty_all(db, owner_id=user_id)
    return create_response("回收站已清空", {"removed": removed})
