"""目录实体 CRUD。"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from hcloud.crud.base import CRUDBase
from hcloud.models.directory_entry import DirectoryEntry
from hcloud.models.file_entry import FileEntry


class CRUDDirectoryEntry(CRUDBase[DirectoryEntry]):
    def get_by_path(self, db: Session, *, owner_id: int, path: str) -> DirectoryEntry | None:
        return (
            self.query(db)
            .filter(DirectoryEntry.owner_id == owner_id)
            .filter(DirectoryEntry.path == path)
            .first()
        )

    def list_children(self, db: Session, *, owner_id: int, parent_id: Optional[int]) -> List[DirectoryEntry]:
        q = self.query(db).filter(DirectoryEntry.owner_id == owner_id)
        if parent_id is None:
            q = q.filter(DirectoryEntry.parent_id.is_(None))
        else:
            q = q.filter(DirectoryEntry.parent_id == parent_id)
        return q.order_by(DirectoryEntry.name).all()

    def list_descendants(self, db: Session, *, owner_id: int, path: str) -> List[DirectoryEntry]:
        prefix = path + "/"
        rows = (
            self.query(db)
            .filter(DirectoryEntry.owner_id == owner_id)
            .filter(DirectoryEntry.path.like(prefix + "%"))
            .all()
        )
        # LIKE 会把名称中的 '_' 当作通配符，这里再做一次精确前缀过滤
        return [row for row in rows if row.path.startswith(prefix)]

    def count_children(self, db: Session, *, directory_id: int) -> tuple[int, int]:
        """返回 (子文件数, 子目录数)。"""
        files = (
            db.query(func.count(FileEntry.id))
            .filter(FileEntry.directory_id == directory_id)
            .scalar()
        )
        dirs = (
            db.query(func.count(DirectoryEntry.id))
            .filter(DirectoryEntry.parent_id == directory_id)
            .scalar()
        )
        return int(files or 0), int(dirs or 0)

    def search(self, db: Session, *, owner_id: int, keyword: str) -> List[DirectoryEntry]:
        return (
            self.query(db)
            .filter(DirectoryEntry.owner_id == owner_id)
            .filter(func.lower(DirectoryEntry.name).like(f"%{keyword.lower()}%"))
            .order_by(DirectoryEntry.path)
            .all()
        )


directory_entry_crud = CRUDDirectoryEntry(DirectoryEntry)
