"""枚举定义：约束回收站条目类型、分享目标与文件分类的可选值。"""

from enum import Enum


class ItemTypeEnum(str, Enum):
    FILE = "file"
    DIRECTORY = "directory"


class FileCategoryEnum(str, Enum):
    """上传文件的分类，每一类拥有独立的大小上限。"""

    IMAGE = "image"
    DOCUMENT = "document"
    VIDEO = "video"
    AUDIO = "audio"
    ARCHIVE = "archive"
    CODE = "code"
    OTHER = "other"
