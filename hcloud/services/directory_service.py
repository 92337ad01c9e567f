"""目录服务：组合路径校验、存储引擎与目录元数据。

逻辑路径唯一性由 ``(owner_id, path)`` 唯一约束兜底；物理目录创建是幂等的，
因此并发创建同一目录时，失败的一方只会在插入元数据时收到 ``ConflictError``。
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hcloud.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from hcloud.core.logger import logger
from hcloud.crud.directory_entry import directory_entry_crud
from hcloud.crud.file_entry import file_entry_crud
from hcloud.models.directory_entry import DirectoryEntry
from hcloud.services.storage_engine import StorageEngine, next_storage_stamp
from hcloud.utils.path_utils import (
    join_logical,
    sanitize_path,
    split_logical,
    validate_name,
    validate_path,
)


class DirectoryService:
    def __init__(self, engine: StorageEngine):
        self.engine = engine

    # ----------------------------
    # 查询
    # ----------------------------
    def get_by_path(self, db: Session, *, owner_id: int, path: str) -> Optional[DirectoryEntry]:
        rel = sanitize_path(validate_path(path))
        if not rel:
            return None
        return directory_entry_crud.get_by_path(db, owner_id=owner_id, path=rel)

    def resolve_directory(self, db: Session, *, owner_id: int, path: str) -> Optional[DirectoryEntry]:
        """根目录返回 None；非根目录没有对应条目时抛出 ``NotFoundError``。"""
        rel = sanitize_path(validate_path(path))
        if not rel:
            return None
        entry = directory_entry_crud.get_by_path(db, owner_id=owner_id, path=rel)
        if entry is None:
            raise NotFoundError("目录不存在")
        return entry

    def require_owned(self, db: Session, *, owner_id: int, directory_id: int) -> DirectoryEntry:
        entry = directory_entry_crud.get(db, directory_id)
        if entry is None:
            raise NotFoundError("目录不存在")
        if entry.owner_id != owner_id:
            raise ForbiddenError("无权访问该目录")
        return entry

    def list_directories(self, db: Session, *, owner_id: int, parent_id: Optional[int] = None) -> List[DirectoryEntry]:
        if parent_id is not None:
            self.require_owned(db, owner_id=owner_id, directory_id=parent_id)
        return directory_entry_crud.list_children(db, owner_id=owner_id, parent_id=parent_id)

    def name_taken(
        self,
        db: Session,
        *,
        owner_id: int,
        parent: Optional[DirectoryEntry],
        name: str,
    ) -> bool:
        """同一目录下已有同名文件或子目录。"""
        parent_path = parent.path if parent else ""
        if directory_entry_crud.get_by_path(db, owner_id=owner_id, path=join_logical(parent_path, name)):
            return True
        existing = file_entry_crud.get_by_name(
            db,
            owner_id=owner_id,
            directory_id=parent.id if parent else None,
            name=name,
        )
        return existing is not None

    # ----------------------------
    # 创建
    # ----------------------------
    def create_directory(self, db: Session, *, owner_id: int, parent_path: str, name: str) -> DirectoryEntry:
        validate_name(name)
        parent_rel = sanitize_path(validate_path(parent_path))
        logical = join_logical(parent_rel, name)

        parent = self.resolve_directory(db, owner_id=owner_id, path=parent_rel)
        if parent is not None and parent.is_mapping:
            raise ValidationError("映射目录为只读，不能创建子目录", field="path")
        if self.name_taken(db, owner_id=owner_id, parent=parent, name=name):
            raise ConflictError("目录已存在")

        parent_storage = parent.storage_path if parent else ""
        # 重命名过的目录仍占用旧的物理路径，此时换一个带时间戳的物理名
        storage_name = name
        if self.engine.path_occupied(owner_id, join_logical(parent_storage, name)) and self._storage_in_use(
            db, owner_id=owner_id, storage_path=join_logical(parent_storage, name)
        ):
            storage_name = f"{next_storage_stamp()}_{name}"
        storage_path = self.engine.create_directory(owner_id, parent_storage, storage_name)

        try:
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
            )
        except IntegrityError as exc:
            logger.info("Directory create lost a race: user=%s path=%s", owner_id, logical)
            if storage_name != name:
                self.engine.remove_empty_directory(owner_id, storage_path)
            raise ConflictError("目录已存在") from exc

        logger.info("Directory created: user=%s path=%s storage=%s", owner_id, logical, storage_path)
        return entry

    @staticmethod
    def _storage_in_use(db: Session, *, owner_id: int, storage_path: str) -> bool:
        return (
            directory_entry_crud.query(db)
            .filter(DirectoryEntry.owner_id == owner_id)
            .filter(DirectoryEntry.storage_path == storage_path)
            .filter(DirectoryEntry.is_mapping.is_(False))
            .first()
            is not None
        )

    # ----------------------------
    # 映射
    # ----------------------------
    def map_directory(self, db: Session, *, owner_id: int, source_path: str, target_name: str) -> DirectoryEntry:
        """把外部目录映射为用户根目录下的一个只读条目。"""
        validate_name(target_name)
        if not source_path or not source_path.strip():
            raise ValidationError("源目录不能为空", field="sourcePath")
        if self.name_taken(db, owner_id=owner_id, parent=None, name=target_name):
            raise ConflictError("目录已存在")

        self.engine.map_directory(owner_id, source_path.strip(), target_name)
        try:
            entry = directory_entry_crud.create(
                db,
                {
                    "owner_id": owner_id,
                    "name": target_name,
                    "path": target_name,
                    "storage_path": target_name,
                    "parent_id": None,
                    "is_mapping": True,
                    "mapping_target": source_path.strip(),
                },
            )
        except Exception as exc:
            logger.error("Mapping metadata insert failed, removing link: user=%s target=%s", owner_id, target_name)
            self.engine.unmap_directory(owner_id, target_name)
            if isinstance(exc, IntegrityError):
                raise ConflictError("目录已存在") from exc
            raise

        logger.info("Directory mapped: user=%s target=%s", owner_id, target_name)
        return entry

    def unmap_directory(self, db: Session, *, owner_id: int, directory_id: int) -> None:
        entry = self.require_owned(db, owner_id=owner_id, directory_id=directory_id)
        if not entry.is_mapping:
            raise ValidationError("该目录不是映射目录", field="directoryId")
        try:
            self.engine.unmap_directory(owner_id, entry.storage_path)
        except NotFoundError:
            logger.warning("Mapping link already gone: user=%s target=%s", owner_id, entry.storage_path)
        logical = entry.path
        directory_entry_crud.hard_delete(db, entry)
        logger.info("Directory unmapped: user=%s target=%s", owner_id, logical)

    # ----------------------------
    # 重命名
    # ----------------------------
    def rename_directory(self, db: Session, *, owner_id: int, directory_id: int, new_name: str) -> DirectoryEntry:
        """只修改逻辑名与逻辑路径（含全部子孙目录），物理路径保持不变。"""
        validate_name(new_name)
        entry = self.require_owned(db, owner_id=owner_id, directory_id=directory_id)
        old_path = entry.path
        parent_rel, _ = split_logical(old_path)
        new_path = join_logical(parent_rel, new_name)
        if new_path == old_path:
            return entry

        parent = directory_entry_crud.get(db, entry.parent_id) if entry.parent_id is not None else None
        if self.name_taken(db, owner_id=owner_id, parent=parent, name=new_name):
            raise ConflictError("目标名称已存在")

        descendants = directory_entry_crud.list_descendants(db, owner_id=owner_id, path=old_path)
        for child in descendants:
            child.path = new_path + child.path[len(old_path):]
            db.add(child)
        entry.name = new_name
        entry.path = new_path
        try:
            directory_entry_crud.save(db, entry)
        except IntegrityError as exc:
            raise ConflictError("目标名称已存在") from exc

        logger.info(
            "Directory renamed: user=%s %s -> %s (%d descendants)",
            owner_id,
            old_path,
            new_path,
            len(descendants),
        )
        return entry


__all__ = ["DirectoryService"]
