"""回收站条目 CRUD。"""

from __future__ import annotations

from datetime import datetime
from typing import List

from sqlalchemy import func
from sqlalchemy.orm import Session

from hcloud.crud.base import CRUDBase, commit_or_rollback
from hcloud.models.recycle_item import RecycleItem


class CRUDRecycleItem(CRUDBase[RecycleItem]):
    def list_for_owner(self, db: Session, *, owner_id: int) -> List[RecycleItem]:
        return (
            self.query(db)
            .filter(RecycleItem.owner_id == owner_id)
            .order_by(RecycleItem.deleted_at.desc(), RecycleItem.id.desc())
            .all()
        )

    def list_expired(self, db: Session, *, now: datetime) -> List[RecycleItem]:
        return self.query(db).filter(RecycleItem.expire_at <= now).order_by(RecycleItem.id).all()

    def delete_by_ids(self, db: Session, ids: List[int], *, auto_commit: bool = True) -> int:
        if not ids:
            return 0
        deleted = (
            self.query(db)
            .filter(RecycleItem.id.in_(ids))
            .delete(synchronize_session=False)
        )
        if auto_commit:
            commit_or_rollback(db)
        return int(deleted or 0)

    def delete_for_owner(self, db: Session, *, owner_id: int, auto_commit: bool = True) -> int:
        deleted = (
            self.query(db)
            .filter(RecycleItem.owner_id == owner_id)
            .delete(synchronize_session=False)
        )
        if auto_commit:
            commit_or_rollback(db)
        return int(deleted or 0)

    def total_size(self, db: Session, *, owner_id: int) -> int:
        value = (
            db.query(func.coalesce(func.sum(RecycleItem.size), 0))
            .filter(RecycleItem.owner_id == owner_id)
            .scalar()
        )
        return int(value or 0)


recycle_item_crud = CRUDRecycleItem(RecycleItem)
