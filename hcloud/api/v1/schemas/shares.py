"""分享 - 请求/响应模型。"""

from typing import List, Optional

from pydantic import BaseModel, Field

from hcloud.api.v1.schemas.common import ResponseEnvelope
from hcloud.core.timezone import isoformat
from hcloud.services.share_service import ShareInfo, ShareSummary


class ShareCreateBody(BaseModel):
    fileId: Optional[int] = None
    directoryId: Optional[int] = None
    expireHours: int = Field(0, ge=0)
    expireDays: int = Field(0, ge=0)
    forever: bool = False
    password: str = Field("", max_length=128)
    isPublic: bool = True


class ShareVerifyBody(BaseModel):
    password: str = ""


class ShareData(BaseModel):
    token: str
    itemType: str
    name: str
    hasPassword: bool
    isPublic: bool
    expireAt: Optional[str] = None
    neverExpires: bool
    expired: bool
    viewCount: int
    createdAt: Optional[str] = None

    @classmethod
    def from_summary(cls, summary: ShareSummary) -> "ShareData":
        share = summary.share
        return cls(
            token=share.token,
            itemType=summary.item_type,
            name=summary.name,
            hasPassword=share.has_password,
            isPublic=bool(share.is_public),
            expireAt=isoformat(share.expire_at),
            neverExpires=share.never_expires,
            expired=summary.expired,
            viewCount=share.view_count or 0,
            createdAt=isoformat(share.create_time),
        )


class ShareCheckData(BaseModel):
    token: str
    hasPassword: bool
    itemType: str
    name: str
    expireAt: Optional[str] = None
    viewCount: int

    @classmethod
    def from_info(cls, info: ShareInfo) -> "ShareCheckData":
        return cls(
            token=info.token,
            hasPassword=info.has_password,
            itemType=info.item_type,
            name=info.name,
            expireAt=isoformat(info.expire_at),
            viewCount=info.view_count,
        )


ShareResponse = ResponseEnvelope[ShareData]
ShareListResponse = ResponseEnvelope[List[ShareData]]
ShareCheckResponse = ResponseEnvelope[ShareCheckData]
