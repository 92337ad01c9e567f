"""文件服务：上传、下载、列表（含显式对账）、重命名、搜索与容量统计。"""

from __future__ import annotations

import platform
import posixpath
import time
from dataclasses import dataclass, field
from typing import BinaryIO, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hcloud.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StorageIOError,
    ValidationError,
)
from hcloud.core.logger import logger
from hcloud.crud.directory_entry import directory_entry_crud
from hcloud.crud.file_entry import file_entry_crud
from hcloud.crud.recycle_item import recycle_item_crud
from hcloud.models.directory_entry import DirectoryEntry
from hcloud.models.file_entry import FileEntry
from hcloud.services.content_classifier import classify, patterns_for_category
from hcloud.services.directory_service import DirectoryService
from hcloud.services.storage_engine import ListItem, StorageEngine, StorageInfo
from hcloud.utils.path_utils import join_logical, sanitize_path, split_logical, validate_name, validate_path

_STARTED_AT = time.monotonic()


@dataclass
class ReconcileReport:
    """一次列表对账的结果：已清理的失效记录与未登记的物理文件。"""

    stale_removed: List[str] = field(default_factory=list)
    orphans: List[str] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.stale_removed and not self.orphans


@dataclass
class DirectoryListing:
    path: str
    directory: Optional[DirectoryEntry]
    directories: List[DirectoryEntry] = field(default_factory=list)
    files: List[FileEntry] = field(default_factory=list)
    # 映射目录直接列出物理内容
    mapped_items: List[ListItem] = field(default_factory=list)
    report: ReconcileReport = field(default_factory=ReconcileReport)


@dataclass
class SearchResult:
    files: List[FileEntry]
    directories: List[DirectoryEntry]


@dataclass(frozen=True)
class UsageSummary:
    file_count: int
    used_bytes: int
    recycled_bytes: int


@dataclass(frozen=True)
class SystemInfo:
    version: str
    python_version: str
    os: str
    arch: str
    uptime_seconds: int
    users_count: int
    files_count: int
    storage: StorageInfo


class FileService:
    def __init__(self, engine: StorageEngine, directories: Optional[DirectoryService] = None):
        self.engine = engine
        self.directories = directories or DirectoryService(engine)

    def require_owned(self, db: Session, *, owner_id: int, file_id: int) -> FileEntry:
        entry = file_entry_crud.get(db, file_id)
        if entry is None:
            raise NotFoundError("文件不存在")
        if entry.owner_id != owner_id:
            raise ForbiddenError("无权访问该文件")
        return entry

    def logical_path_of(self, db: Session, entry: FileEntry) -> str:
        if entry.directory_id is None:
            return entry.name
        directory = directory_entry_crud.get(db, entry.directory_id)
        return join_logical(directory.path if directory else "", entry.name)

    # ----------------------------
    # 上传 / 下载
    # ----------------------------
    def upload(
        self,
        db: Session,
        *,
        owner_id: int,
        dir_path: str,
        filename: str,
        size: Optional[int],
        stream: BinaryIO,
    ) -> FileEntry:
        """校验全部通过后才写盘；元数据写入失败时删除已保存的文件。"""
        validate_name(filename)
        declared = size if size is not None else 0
        result = classify(filename, declared)
        dir_rel = sanitize_path(validate_path(dir_path))

        directory = self.directories.resolve_directory(db, owner_id=owner_id, path=dir_rel)
        if directory is not None and directory.is_mapping:
            raise ValidationError("映射目录为只读，不能上传文件", field="path")
        if self.directories.name_taken(db, owner_id=owner_id, parent=directory, name=filename):
            raise ConflictError("同名文件已存在")

        storage_dir = directory.storage_path if directory else ""
        # 未声明大小时由写入循环按分类上限截断
        saved = self.engine.save_file(owner_id, storage_dir, filename, size, stream, max_bytes=result.max_size)

        try:
            entry = file_entry_crud.create(
                db,
                {
                    "owner_id": owner_id,
                    "directory_id": directory.id if directory else None,
                    "name": filename,
                    "stored_path": saved.stored_path,
                    "size": saved.size,
                    "content_type": result.content_type,
                    "content_hash": saved.content_hash,
                },
            )
        except Exception as exc:
            logger.error("File metadata insert failed, removing %s: %s", saved.stored_path, exc)
            self._discard(owner_id, saved.stored_path)
            if isinstance(exc, IntegrityError):
                raise ConflictError("同名文件已存在") from exc
            raise

        logger.info(
            "File uploaded: user=%s path=%s size=%s type=%s",
            owner_id,
            join_logical(dir_rel, filename),
            saved.size,
            result.file_type,
        )
        return entry

    def _discard(self, owner_id: int, stored_path: str) -> None:
        try:
            self.engine.delete_file(owner_id, stored_path)
        except (NotFoundError, StorageIOError):
            logger.exception("Failed to clean up stored file %s", stored_path)

    def open_file(self, db: Session, *, owner_id: int, file_id: int) -> Tuple[FileEntry, BinaryIO]:
        """返回 (文件记录, 只读句柄)；句柄由调用方负责关闭。"""
        entry = self.require_owned(db, owner_id=owner_id, file_id=file_id)
        try:
            handle = self.engine.get_file(owner_id, entry.stored_path)
        except NotFoundError:
            logger.warning("Physical file missing for record %s (%s)", entry.id, entry.stored_path)
            raise
        return entry, handle

    def open_by_path(self, db: Session, *, owner_id: int, path: str) -> Tuple[FileEntry, BinaryIO]:
        """按逻辑路径（如 ``/docs/a.pdf``）打开文件，只查调用者自己的文件。"""
        rel = sanitize_path(validate_path(path))
        if not rel:
            raise ValidationError("请提供文件路径", field="path")
        dir_rel, name = split_logical(rel)
        directory = self.directories.resolve_directory(db, owner_id=owner_id, path=dir_rel)
        entry = file_entry_crud.get_by_name(
            db,
            owner_id=owner_id,
            directory_id=directory.id if directory else None,
            name=name,
        )
        if entry is None:
            raise NotFoundError("文件不存在")
        return self.open_file(db, owner_id=owner_id, file_id=entry.id)

    def open_public_image(self, db: Session, *, file_id: int) -> Tuple[FileEntry, BinaryIO]:
        """图床直链：不校验身份，但只放行 ``image/*`` 类型的文件。"""
        entry = file_entry_crud.get(db, file_id)
        if entry is None:
            raise NotFoundError("文件不存在")
        if not (entry.content_type or "").startswith("image/"):
            raise ValidationError("该文件不是图片", field="fileId")
        try:
            handle = self.engine.get_file(entry.owner_id, entry.stored_path)
        except NotFoundError:
            logger.warning("Physical file missing for public image %s", entry.id)
            raise
        return entry, handle

    def force_delete(self, db: Session, *, owner_id: int, file_id: int) -> None:
        """绕过回收站直接删除文件与记录，仅供管理操作使用。"""
        entry = self.require_owned(db, owner_id=owner_id, file_id=file_id)
        try:
            self.engine.delete_file(owner_id, entry.stored_path)
        except NotFoundError:
            logger.warning("Force delete: physical file already missing for record %s", entry.id)
        file_entry_crud.hard_delete(db, entry)
        logger.info("File force-deleted: user=%s id=%s", owner_id, file_id)

    # ----------------------------
    # 列表与对账
    # ----------------------------
    def list_directory(self, db: Session, *, owner_id: int, dir_path: str) -> DirectoryListing:
        dir_rel = sanitize_path(validate_path(dir_path))
        directory = self.directories.resolve_directory(db, owner_id=owner_id, path=dir_rel)
        listing = DirectoryListing(path="/" + dir_rel, directory=directory)

        if directory is not None and directory.is_mapping:
            listing.mapped_items = list(
                self.engine.list_directory(owner_id, directory.storage_path, mapped=True)
            )
            return listing

        directory_id = directory.id if directory else None
        listing.directories = directory_entry_crud.list_children(db, owner_id=owner_id, parent_id=directory_id)
        rows = file_entry_crud.list_in_directory(db, owner_id=owner_id, directory_id=directory_id)

        storage_dir = directory.storage_path if directory else ""
        try:
            physical = {
                item.name
                for item in self.engine.list_directory(owner_id, storage_dir)
                if not item.is_directory
            }
        except NotFoundError:
            physical = set()

        report = listing.report
        known = set()
        for row in rows:
            key = posixpath.basename(row.stored_path)
            known.add(key)
            if key in physical:
                listing.files.append(row)
                continue
            report.stale_removed.append(row.name)
            logger.warning(
                "Reconcile: removing stale file record id=%s user=%s name=%s storage=%s",
                row.id,
                owner_id,
                row.name,
                row.stored_path,
            )
            file_entry_crud.hard_delete(db, row, auto_commit=False)
        if report.stale_removed:
            db.commit()

        report.orphans = sorted(physical - known)
        for orphan in report.orphans:
            logger.warning("Reconcile: orphan physical file user=%s dir=%s name=%s", owner_id, storage_dir, orphan)
        return listing

    # ----------------------------
    # 重命名
    # ----------------------------
    def rename_file(self, db: Session, *, owner_id: int, file_id: int, new_name: str) -> FileEntry:
        """只修改逻辑文件名，物理存储键不变。"""
        validate_name(new_name)
        entry = self.require_owned(db, owner_id=owner_id, file_id=file_id)
        if new_name == entry.name:
            return entry
        result = classify(new_name, entry.size)
        parent = directory_entry_crud.get(db, entry.directory_id) if entry.directory_id is not None else None
        if self.directories.name_taken(db, owner_id=owner_id, parent=parent, name=new_name):
            raise ConflictError("目标名称已存在")

        old_name = entry.name
        entry.name = new_name
        entry.content_type = result.content_type
        try:
            file_entry_crud.save(db, entry)
        except IntegrityError as exc:
            raise ConflictError("目标名称已存在") from exc
        logger.info("File renamed: user=%s id=%s %s -> %s", owner_id, file_id, old_name, new_name)
        return entry

    # ----------------------------
    # 搜索与统计
    # ----------------------------
    def search(self, db: Session, *, owner_id: int, query: str) -> SearchResult:
        keyword = (query or "").strip()
        if not keyword:
            raise ValidationError("搜索关键词不能为空", field="q")
        return SearchResult(
            files=file_entry_crud.search(db, owner_id=owner_id, keyword=keyword),
            directories=directory_entry_crud.search(db, owner_id=owner_id, keyword=keyword),
        )

    def search_by_type(self, db: Session, *, owner_id: int, category: str) -> List[FileEntry]:
        patterns = patterns_for_category(category)
        return file_entry_crud.search_by_content_types(db, owner_id=owner_id, patterns=patterns)

    def storage_stats(self) -> StorageInfo:
        return self.engine.get_system_storage_info()

    def system_info(self, db: Session, *, version: str) -> SystemInfo:
        """版本、运行环境与全局计数；用户数为当前拥有文件或目录的账号数。"""
        owners = file_entry_crud.owner_ids(db) | directory_entry_crud.owner_ids(db)
        return SystemInfo(
            version=version,
            python_version=platform.python_version(),
            os=platform.system().lower(),
            arch=platform.machine(),
            uptime_seconds=int(time.monotonic() - _STARTED_AT),
            users_count=len(owners),
            files_count=file_entry_crud.count(db),
            storage=self.storage_stats(),
        )

    def usage(self, db: Session, *, owner_id: int) -> UsageSummary:
        count, used = file_entry_crud.total_size(db, owner_id=owner_id)
        return UsageSummary(
            file_count=count,
            used_bytes=used,
            recycled_bytes=recycle_item_crud.total_size(db, owner_id=owner_id),
        )


__all__ = [
    "DirectoryListing",
    "FileService",
    "ReconcileReport",
    "SearchResult",
    "SystemInfo",
    "UsageSummary",
]
