"""文件与目录 - 请求/响应模型。"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field

from hcloud.api.v1.schemas.common import ResponseEnvelope
from hcloud.core.timezone import isoformat
from hcloud.models.directory_entry import DirectoryEntry
from hcloud.models.file_entry import FileEntry
from hcloud.services.storage_engine import ListItem


class FolderCreateBody(BaseModel):
    path: str = "/"
    name: str = Field(..., min_length=1)


class MapDirectoryBody(BaseModel):
    sourcePath: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)


class RenameBody(BaseModel):
    name: str = Field(..., min_length=1)


class FileData(BaseModel):
    id: int
    name: str
    directoryId: Optional[int] = None
    size: int
    contentType: Optional[str] = None
    contentHash: Optional[str] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None

    @classmethod
    def from_entry(cls, entry: FileEntry) -> "FileData":
        return cls(
            id=entry.id,
            name=entry.name,
            directoryId=entry.directory_id,
            size=entry.size or 0,
            contentType=entry.content_type,
            contentHash=entry.content_hash,
            createdAt=isoformat(entry.create_time),
            updatedAt=isoformat(entry.update_time),
        )


class DirectoryData(BaseModel):
    id: int
    name: str
    path: str
    parentId: Optional[int] = None
    isMapping: bool = False
    createdAt: Optional[str] = None

    @classmethod
    def from_entry(cls, entry: DirectoryEntry) -> "DirectoryData":
        return cls(
            id=entry.id,
            name=entry.name,
            path="/" + entry.path,
            parentId=entry.parent_id,
            isMapping=bool(entry.is_mapping),
            createdAt=isoformat(entry.create_time),
        )


class PhysicalItemData(BaseModel):
    name: str
    size: int
    modTime: str
    isDirectory: bool

    @classmethod
    def from_item(cls, item: ListItem) -> "PhysicalItemData":
        return cls(name=item.name, size=item.size, modTime=item.mod_time.isoformat(), isDirectory=item.is_directory)


class ListingData(BaseModel):
    currentPath: str
    directories: List[DirectoryData] = Field(default_factory=list)
    files: List[FileData] = Field(default_factory=list)
    mappedItems: List[PhysicalItemData] = Field(default_factory=list)
    staleRemoved: List[str] = Field(default_factory=list)
    orphans: List[str] = Field(default_factory=list)


class SearchData(BaseModel):
    files: List[FileData]
    directories: List[DirectoryData]


class StorageStatsData(BaseModel):
    total: int
    used: int
    free: int


class UsageData(BaseModel):
    fileCount: int
    usedBytes: int
    recycledBytes: int


FileDataResponse = ResponseEnvelope[FileData]
DirectoryResponse = ResponseEnvelope[DirectoryData]
DirectoryListResponse = ResponseEnvelope[List[DirectoryData]]
ListingResponse = ResponseEnvelope[ListingData]
SearchResponse = ResponseEnvelope[SearchData]
FileListResponse = ResponseEnvelope[List[FileData]]
StorageStatsResponse = ResponseEnvelope[StorageStatsData]
UsageResponse = ResponseEnvelope[UsageData]
MutationResponse = ResponseEnvelope[Any]
