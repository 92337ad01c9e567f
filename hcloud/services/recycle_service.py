"""回收站：软删除、恢复、彻底删除与过期清理。

状态流转：Active -> Quarantined -> {Restored | Purged}。
- 删除时把物理内容移入回收站根，并记录原始位置与过期时间；
- 恢复时若原位置已被占用，按 ``名称_恢复N.扩展名`` 依次寻找空闲名称；
- 恢复后写元数据失败，必须把物理内容移回回收站；
- 过期清理单条失败不影响整批，元数据一律删除。
"""

from __future__ import annotations

import os
import posixpath
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, List, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hcloud.core.constants import DEFAULT_RECYCLE_RETENTION_DAYS, RESTORE_SUFFIX
from hcloud.core.enums import ItemTypeEnum
from hcloud.core.exceptions import (
    AppException,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from hcloud.core.logger import logger
from hcloud.core.timezone import ensure_utc, utcnow
from hcloud.crud.directory_entry import directory_entry_crud
from hcloud.crud.file_entry import file_entry_crud
from hcloud.crud.recycle_item import recycle_item_crud
from hcloud.models.directory_entry import DirectoryEntry
from hcloud.models.file_entry import FileEntry
from hcloud.models.recycle_item import RecycleItem
from hcloud.services.storage_engine import StorageEngine, next_storage_stamp
from hcloud.utils.path_utils import join_logical, split_logical


@dataclass(frozen=True)
class PurgeFailure:
    item_id: int
    reason: str


@dataclass
class PurgeReport:
    purged: int = 0
    failures: List[PurgeFailure] = field(default_factory=list)

    @property
    def partial(self) -> bool:
        return bool(self.failures)


@dataclass(frozen=True)
class RestoreResult:
    path: str
    item_type: str
    entry: Union[FileEntry, DirectoryEntry]
    renamed: bool


def restore_candidate(name: str, attempt: int, *, is_directory: bool) -> str:
    """第 N 次避让使用的名称；文件把后缀插在扩展名之前，目录直接追加。"""
    if attempt == 0:
        return name
    if is_directory:
        return f"{name}{RESTORE_SUFFIX}{attempt}"
    stem, ext = os.path.splitext(name)
    return f"{stem}{RESTORE_SUFFIX}{attempt}{ext}"


class RecycleBin:
    def __init__(self, engine: StorageEngine, retention_days: int = DEFAULT_RECYCLE_RETENTION_DAYS):
        self.engine = engine
        self.retention = timedelta(days=retention_days)

    # ----------------------------
    # 删除（移入回收站）
    # ----------------------------
    def quarantine(
        self,
        db: Session,
        *,
        owner_id: int,
        item: Union[FileEntry, DirectoryEntry],
        now: Optional[datetime] = None,
    ) -> RecycleItem:
        if item.owner_id != owner_id:
            raise ForbiddenError("无权删除该条目")

        if isinstance(item, FileEntry):
            parent = directory_entry_crud.get(db, item.directory_id) if item.directory_id is not None else None
            snapshot = {
                "original_path": join_logical(parent.path if parent else "", item.name),
                "original_storage_path": item.stored_path,
                "size": item.size or 0,
                "content_type": item.content_type,
                "content_hash": item.content_hash,
                "item_type": ItemTypeEnum.FILE.value,
            }
        else:
            if item.is_mapping:
                raise ValidationError("映射目录请使用取消映射", field="directoryId")
            files, dirs = directory_entry_crud.count_children(db, directory_id=item.id)
            if files or dirs:
                raise ValidationError("目录不为空，无法删除", field="directoryId")
            snapshot = {
                "original_path": item.path,
                "original_storage_path": item.storage_path,
                "size": 0,
                "content_type": None,
                "content_hash": None,
                "item_type": ItemTypeEnum.DIRECTORY.value,
            }

        storage_path = snapshot["original_storage_path"]
        key = self.engine.move_to_quarantine(owner_id, storage_path, item.name)
        deleted_at = ensure_utc(now) or utcnow()
        try:
            record = recycle_item_crud.create(
                db,
                {
                    "owner_id": owner_id,
                    "original_name": item.name,
                    "quarantine_path": key,
                    "deleted_at": deleted_at,
                    "expire_at": deleted_at + self.retention,
                    **snapshot,
                },
                auto_commit=False,
            )
            db.delete(item)
            db.commit()
        except Exception:
            db.rollback()
            logger.error("Quarantine metadata failed, moving %s back", storage_path)
            self._compensate(self.engine.restore_from_quarantine, owner_id, key, storage_path)
            raise

        db.refresh(record)
        logger.info(
            "Quarantined %s: user=%s path=%s key=%s",
            record.item_type,
            owner_id,
            record.original_path,
            key,
        )
        return record

    def quarantine_file(self, db: Session, *, owner_id: int, file_id: int, now: Optional[datetime] = None) -> RecycleItem:
        entry = file_entry_crud.get(db, file_id)
        if entry is None:
            raise NotFoundError("文件不存在")
        return self.quarantine(db, owner_id=owner_id, item=entry, now=now)

    def quarantine_directory(
        self, db: Session, *, owner_id: int, directory_id: int, now: Optional[datetime] = None
    ) -> RecycleItem:
        entry = directory_entry_crud.get(db, directory_id)
        if entry is None:
            raise NotFoundError("目录不存在")
        return self.quarantine(db, owner_id=owner_id, item=entry, now=now)

    # ----------------------------
    # 查询
    # ----------------------------
    def require_owned(self, db: Session, *, owner_id: int, item_id: int) -> RecycleItem:
        record = recycle_item_crud.get(db, item_id)
        if record is None:
            raise NotFoundError("回收站条目不存在")
        if record.owner_id != owner_id:
            raise ForbiddenError("无权操作该回收站条目")
        return record

    def list_quarantined(self, db: Session, *, owner_id: int) -> List[RecycleItem]:
        return recycle_item_crud.list_for_owner(db, owner_id=owner_id)

    # ----------------------------
    # 恢复
    # ----------------------------
    def restore(self, db: Session, *, owner_id: int, item_id: int) -> RestoreResult:
        record = self.require_owned(db, owner_id=owner_id, item_id=item_id)
        is_directory = record.item_type == ItemTypeEnum.DIRECTORY.value

        parent_rel, _ = split_logical(record.original_path)
        parent = directory_entry_crud.get_by_path(db, owner_id=owner_id, path=parent_rel) if parent_rel else None
        if parent_rel and (parent is None or parent.is_mapping):
            logger.info("Restore: original parent %s is gone, restoring item %s to root", parent_rel, record.id)
            parent, parent_rel = None, ""

        name = self._free_name(db, owner_id=owner_id, parent=parent, name=record.original_name, is_directory=is_directory)
        renamed = name != record.original_name
        logical = join_logical(parent_rel, name)
        storage_path = self._free_storage_path(owner_id, record, parent, name, is_directory=is_directory)

        key = record.quarantine_path
        self.engine.restore_from_quarantine(owner_id, key, storage_path)
        try:
            if is_directory:
                entry = directory_entry_crud.create(
                    db,
                    {
                        "owner_id": owner_id,
                        "name": name,
                        "path": logical,
                        "storage_path": storage_path,
                        "parent_id": parent.id if parent else None,
                        "is_mapping": False,
                    },
                    auto_commit=False,
                )
            else:
                entry = file_entry_crud.create(
                    db,
                    {
                        "owner_id": owner_id,
                        "directory_id": parent.id if parent else None,
                        "name": name,
                        "stored_path": storage_path,
                        "size": record.size,
                        "content_type": record.content_type,
                        "content_hash": record.content_hash,
                    },
                    auto_commit=False,
                )
            db.delete(record)
            db.commit()
        except Exception as exc:
            db.rollback()
            logger.error("Restore metadata failed, moving %s back to quarantine: %s", storage_path, exc)
            self._compensate(self.engine.return_to_quarantine, owner_id, storage_path, key)
            if isinstance(exc, IntegrityError):
                raise ConflictError("恢复目标已存在") from exc
            raise

        db.refresh(entry)
        logger.info("Restored %s: user=%s path=%s", "directory" if is_directory else "file", owner_id, logical)
        return RestoreResult(
            path="/" + logical,
            item_type=ItemTypeEnum.DIRECTORY.value if is_directory else ItemTypeEnum.FILE.value,
            entry=entry,
            renamed=renamed,
        )

    @staticmethod
    def _compensate(undo: Callable[..., Any], *args: Any) -> None:
        """撤销已完成的物理移动；撤销本身失败只记录，调用方继续抛出原始异常。"""
        try:
            undo(*args)
        except Exception:
            logger.exception("Rollback %s%r failed, manual cleanup needed", undo.__name__, args)

    def _free_name(
        self,
        db: Session,
        *,
        owner_id: int,
        parent: Optional[DirectoryEntry],
        name: str,
        is_directory: bool,
    ) -> str:
        parent_path = parent.path if parent else ""
        attempt = 0
        while True:
            candidate = restore_candidate(name, attempt, is_directory=is_directory)
            taken_dir = directory_entry_crud.get_by_path(db, owner_id=owner_id, path=join_logical(parent_path, candidate))
            taken_file = file_entry_crud.get_by_name(
                db,
                owner_id=owner_id,
                directory_id=parent.id if parent else None,
                name=candidate,
            )
            if taken_dir is None and taken_file is None:
                return candidate
            attempt += 1

    def _free_storage_path(
        self,
        owner_id: int,
        record: RecycleItem,
        parent: Optional[DirectoryEntry],
        name: str,
        *,
        is_directory: bool,
    ) -> str:
        """优先沿用删除前的物理存储键；不可用时生成新的。"""
        parent_storage = parent.storage_path if parent else ""
        original = record.original_storage_path
        if posixpath.dirname(original) == parent_storage and not self.engine.path_occupied(owner_id, original):
            return original
        if is_directory:
            plain = join_logical(parent_storage, name)
            if not self.engine.path_occupied(owner_id, plain):
                return plain
        return join_logical(parent_storage, f"{next_storage_stamp()}_{name}")

    # ----------------------------
    # 彻底删除
    # ----------------------------
    def purge_one(self, db: Session, *, owner_id: int, item_id: int) -> None:
        record = self.require_owned(db, owner_id=owner_id, item_id=item_id)
        original_path = record.original_path
        self.engine.remove_quarantined(owner_id, record.quarantine_path)
        recycle_item_crud.hard_delete(db, record)
        logger.info("Purged recycle item %s: user=%s path=%s", item_id, owner_id, original_path)

    def purge_expired(self, db: Session, *, now: Optional[datetime] = None) -> PurgeReport:
        """清理所有 ``expire_at <= now`` 的条目；单条物理删除失败不中断整批。"""
        cutoff = ensure_utc(now) or utcnow()
        expired = recycle_item_crud.list_expired(db, now=cutoff)
        report = PurgeReport()
        if not expired:
            return report

        for record in expired:
            try:
                self.engine.remove_quarantined(record.owner_id, record.quarantine_path)
            except AppException as exc:
                logger.error("Failed to purge recycle item %s (%s): %s", record.id, record.quarantine_path, exc)
                report.failures.append(PurgeFailure(item_id=record.id, reason=str(exc)))

        report.purged = recycle_item_crud.delete_by_ids(db, [record.id for record in expired])
        logger.info("Purged %d expired recycle items (%d failures)", report.purged, len(report.failures))
        return report

    def empty_all(self, db: Session, *, owner_id: int) -> int:
        """清空用户回收站：物理删除尽力而为，元数据一定清空。"""
        records = recycle_item_crud.list_for_owner(db, owner_id=owner_id)
        for record in records:
            try:
                self.engine.remove_quarantined(owner_id, record.quarantine_path)
            except AppException as exc:
                logger.warning("Empty recycle bin: failed to remove %s: %s", record.quarantine_path, exc)
        removed = recycle_item_crud.delete_for_owner(db, owner_id=owner_id)
        logger.info("Emptied recycle bin: user=%s items=%d", owner_id, removed)
        return removed


__all__ = ["PurgeFailure", "PurgeReport", "RecycleBin", "RestoreResult", "restore_candidate"]
