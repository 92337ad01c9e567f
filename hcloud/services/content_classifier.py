"""上传内容分类：根据扩展名判定文件类别、Content-Type 与大小上限。

分类表在模块加载时构建一次，之后只读；危险扩展名无论大小一律拒绝。
分类必须在任何字节落盘之前完成。
"""

from __future__ import annotations

import mimetypes
import os
from dataclasses import dataclass
from typing import Dict, FrozenSet, Mapping

from hcloud.core.constants import DEFAULT_CONTENT_TYPE
from hcloud.core.enums import FileCategoryEnum
from hcloud.core.exceptions import ValidationError

MB = 1024 * 1024


@dataclass(frozen=True)
class CategoryRule:
    extensions: FrozenSet[str]
    max_size: int


CATEGORY_RULES: Mapping[FileCategoryEnum, CategoryRule] = {
    FileCategoryEnum.IMAGE: CategoryRule(
        frozenset({".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp", ".svg"}), 10 * MB
    ),
    FileCategoryEnum.DOCUMENT: CategoryRule(
        frozenset({".pdf", ".doc", ".docx", ".xls", ".xlsx", ".ppt", ".pptx", ".txt", ".md", ".rtf"}),
        50 * MB,
    ),
    FileCategoryEnum.VIDEO: CategoryRule(
        frozenset({".mp4", ".avi", ".mkv", ".mov", ".wmv", ".flv", ".webm"}), 500 * MB
    ),
    FileCategoryEnum.AUDIO: CategoryRule(
        frozenset({".mp3", ".wav", ".flac", ".aac", ".ogg", ".wma"}), 100 * MB
    ),
    FileCategoryEnum.ARCHIVE: CategoryRule(
        frozenset({".zip", ".rar", ".7z", ".tar", ".gz", ".bz2"}), 100 * MB
    ),
    FileCategoryEnum.CODE: CategoryRule(
        frozenset({".go", ".html", ".css", ".json", ".xml", ".yaml", ".yml", ".sql"}), 5 * MB
    ),
}

DEFAULT_MAX_SIZE = 20 * MB

DANGEROUS_EXTENSIONS: FrozenSet[str] = frozenset({
    ".exe", ".bat", ".cmd", ".com", ".pif", ".scr", ".vbs", ".js", ".jar",
    ".sh", ".php", ".asp", ".aspx", ".jsp", ".py", ".rb", ".pl",
})

# 扩展名 -> 类别的反向索引
_EXTENSION_INDEX: Dict[str, FileCategoryEnum] = {
    ext: category for category, rule in CATEGORY_RULES.items() for ext in rule.extensions
}

# 常见但 mimetypes 在部分平台上缺失的映射
_EXTRA_TYPES = {
    ".md": "text/markdown",
    ".yaml": "application/yaml",
    ".yml": "application/yaml",
    ".7z": "application/x-7z-compressed",
    ".rar": "application/vnd.rar",
    ".flac": "audio/flac",
    ".webp": "image/webp",
    ".mkv": "video/x-matroska",
    ".go": "text/x-go",
}


@dataclass(frozen=True)
class ClassifyResult:
    is_valid: bool
    file_type: str
    extension: str
    content_type: str
    max_size: int


def max_size_for(category: FileCategoryEnum) -> int:
    rule = CATEGORY_RULES.get(category)
    return rule.max_size if rule else DEFAULT_MAX_SIZE


def content_type_for(filename: str) -> str:
    ext = os.path.splitext(filename)[1].lower()
    if ext in _EXTRA_TYPES:
        return _EXTRA_TYPES[ext]
    mime, _ = mimetypes.guess_type("x" + ext) if ext else (None, None)
    return mime or DEFAULT_CONTENT_TYPE


def classify(filename: str, size: int) -> ClassifyResult:
    """校验上传文件的类型与大小，拒绝时抛出 ``ValidationError``。"""
    ext = os.path.splitext(filename or "")[1].lower()

    if ext in DANGEROUS_EXTENSIONS:
        raise ValidationError(f"不允许上传 {ext} 类型的文件", field="file")

    if size is None or size < 0:
        raise ValidationError("文件大小无效", field="file")

    category = _EXTENSION_INDEX.get(ext, FileCategoryEnum.OTHER)
    max_size = max_size_for(category)
    if size > max_size:
        raise ValidationError(f"文件大小超过限制，最大允许 {max_size // MB} MB", field="file")

    return ClassifyResult(
        is_valid=True,
        file_type=category.value,
        extension=ext,
        content_type=content_type_for(filename),
        max_size=max_size,
    )


def patterns_for_category(category: str) -> list[str]:
    """按类别搜索时使用的 Content-Type LIKE 模式；未知类别抛出 ``ValidationError``。"""
    key = (category or "").strip().lower()
    patterns = {
        "image": ["image/%"],
        "video": ["video/%"],
        "audio": ["audio/%"],
        "document": [
            "application/pdf",
            "text/%",
            "application/msword%",
            "application/vnd.openxmlformats%",
            "application/vnd.ms-%",
            "application/rtf",
        ],
        "archive": [
            "application/zip",
            "application/x-rar%",
            "application/vnd.rar",
            "application/x-tar%",
            "application/gzip",
            "application/x-7z%",
            "application/x-bzip%",
        ],
    }.get(key)
    if patterns is None:
        raise ValidationError("不支持的文件类型", field="type")
    return patterns
