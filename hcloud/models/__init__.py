"""ORM 模型集中导出，确保 ``Base.metadata`` 能发现所有数据表。"""

from hcloud.models.base import Base
from hcloud.models.directory_entry import DirectoryEntry
from hcloud.models.file_entry import FileEntry
from hcloud.models.recycle_item import RecycleItem
from hcloud.models.share_link import ShareLink

__all__ = ["Base", "DirectoryEntry", "FileEntry", "RecycleItem", "ShareLink"]
