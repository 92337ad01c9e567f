"""文件实体 CRUD。"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from hcloud.crud.base import CRUDBase
from hcloud.models.file_entry import FileEntry


class CRUDFileEntry(CRUDBase[FileEntry]):
    def list_in_directory(self, db: Session, *, owner_id: int, directory_id: Optional[int]) -> List[FileEntry]:
        q = self.query(db).filter(FileEntry.owner_id == owner_id)
        if directory_id is None:
            q = q.filter(FileEntry.directory_id.is_(None))
        else:
            q = q.filter(FileEntry.directory_id == directory_id)
        return q.order_by(FileEntry.name).all()

    def get_by_name(
        self, db: Session, *, owner_id: int, directory_id: Optional[int], name: str
    ) -> FileEntry | None:
        q = (
            self.query(db)
            .filter(FileEntry.owner_id == owner_id)
            .filter(FileEntry.name == name)
        )
        if directory_id is None:
            q = q.filter(FileEntry.directory_id.is_(None))
        else:
            q = q.filter(FileEntry.directory_id == directory_id)
        return q.first()

    def search(self, db: Session, *, owner_id: int, keyword: str) -> List[FileEntry]:
        return (
            self.query(db)
            .filter(FileEntry.owner_id == owner_id)
            .filter(func.lower(FileEntry.name).like(f"%{keyword.lower()}%"))
            .order_by(FileEntry.name)
            .all()
        )

    def search_by_content_types(self, db: Session, *, owner_id: int, patterns: List[str]) -> List[FileEntry]:
        """按 content_type 的 LIKE 模式过滤，例如 ``image/%``。"""
        clauses = [FileEntry.content_type.like(p) for p in patterns]
        return (
            self.query(db)
            .filter(FileEntry.owner_id == owner_id)
            .filter(or_(*clauses))
            .order_by(FileEntry.name)
            .all()
        )

    def total_size(self, db: Session, *, owner_id: int) -> tuple[int, int]:
        """返回 (文件数, 字节数)。"""
        row = (
            db.query(func.count(FileEntry.id), func.coalesce(func.sum(FileEntry.size), 0))
            .filter(FileEntry.owner_id == owner_id)
            .one()
        )
        return int(row[0] or 0), int(row[1] or 0)


file_entry_crud = CRUDFileEntry(FileEntry)
