"""回收站 - 响应模型。"""

from typing import List, Optional

from pydantic import BaseModel

from hcloud.api.v1.schemas.common import ResponseEnvelope
from hcloud.core.timezone import isoformat
from hcloud.models.recycle_item import RecycleItem


class RecycleItemData(BaseModel):
    id: int
    originalName: str
    originalPath: str
    size: int
    contentType: Optional[str] = None
    itemType: str
    deletedAt: Optional[str] = None
    expireAt: Optional[str] = None

    @classmethod
    def from_record(cls, record: RecycleItem) -> "RecycleItemData":
        return cls(
            id=record.id,
            originalName=record.original_name,
            originalPath="/" + record.original_path,
            size=record.size or 0,
            contentType=record.content_type,
            itemType=record.item_type,
            deletedAt=isoformat(record.deleted_at),
            expireAt=isoformat(record.expire_at),
        )


class RestoreData(BaseModel):
    path: str
    itemType: str
    id: int
    renamed: bool


class PurgeData(BaseModel):
    purged: int
    failures: List[int]


RecycleItemResponse = ResponseEnvelope[RecycleItemData]
RecycleListResponse = ResponseEnvelope[List[RecycleItemData]]
RestoreResponse = ResponseEnvelope[RestoreData]
PurgeResponse = ResponseEnvelope[PurgeData]
