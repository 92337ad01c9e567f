"""业务服务层：存储引擎与构建在其上的目录、文件、回收站与分享服务。"""

from hcloud.services.directory_service import DirectoryService
from hcloud.services.file_service import FileService
from hcloud.services.recycle_service import RecycleBin
from hcloud.services.share_service import ShareRegistry
from hcloud.services.storage_engine import StorageEngine, StorageLayout
from hcloud.services.sweeper import RecycleSweeper

__all__ = [
    "DirectoryService",
    "FileService",
    "RecycleBin",
    "RecycleSweeper",
    "ShareRegistry",
    "StorageEngine",
    "StorageLayout",
]
