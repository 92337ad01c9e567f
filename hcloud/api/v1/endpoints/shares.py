"""分享路由。

``/shares`` 下的管理接口需要认证；``/s/{token}`` 下的访问接口是公开的，
由令牌、有效期与密码共同控制访问。
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hcloud.api.v1.schemas.files import MutationResponse
from hcloud.api.v1.schemas.shares import (
    ShareCheckData,
    ShareCheckResponse,
    ShareCreateBody,
    ShareData,
    ShareListResponse,
    ShareResponse,
    ShareVerifyBody,
)
from hcloud.core.dependencies import get_current_user_id, get_db, get_share_registry
from hcloud.core.responses import create_response, stream_file_response
from hcloud.services.share_service import ExpiryPolicy, ShareRegistry

router = APIRouter(tags=["shares"])


@router.post("/shares", response_model=ShareResponse)
def create_share(
    payload: ShareCreateBody,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    registry: ShareRegistry = Depends(get_share_registry),
):
    share = registry.create_share(
        db,
        owner_id=user_id,
        file_id=payload.fileId,
        directory_id=payload.directoryId,
        policy=ExpiryPolicy(hours=payload.expireHours, days=payload.expireDays, forever=payload.forever),
        password=payload.password,
        is_public=payload.isPublic,
    )
    return create_response("创建分享成功", ShareData.from_summary(registry.summarize(db, share)).model_dump())


@router.get("/shares", response_model=ShareListResponse)
def list_shares(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    registry: ShareRegistry = Depends(get_share_registry),
):
    summaries = registry.list_shares(db, owner_id=user_id)
    return create_response("获取分享列表成功", [ShareData.from_summary(s).model_dump() for s in summaries])


@router.delete("/shares/{token}", response_model=MutationResponse)
def revoke_share(
    token: str,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
    registry: ShareRegistry = Depends(get_share_registry),
):
    registry.revoke(db, token=token, owner_id=user_id)
    return create_response("已取消分享", None)


@router.get("/s/{token}/check", response_model=ShareCheckResponse)
def check_share(
    token: str,
    db: Session = Depends(get_db),
    registry: ShareRegistry = Depends(get_share_registry),
):
    info = registry.check_share(db, token=token)
    return create_response("分享有效", ShareCheckData.from_info(info).model_dump())


@router.post("/s/{token}/verify", response_model=MutationResponse)
def verify_share(
    token: str,
    payload: ShareVerifyBody,
    db: Session = Depends(get_db),
    registry: ShareRegistry = Depends(get_share_registry),
):
    registry.verify_share(db, token=token, password=payload.password)
    return create_response("验证通过", {"token": token})


@router.get("/s/{token}")
def access_share(
    token: str,
    password: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    registry: ShareRegistry = Depends(get_share_registry),
):
    access = registry.resolve(db, token=token, password=password)
    return stream_file_response(access.handle, access.file.name, access.file.content_type, size=access.file.size)
