"""CRUD 基类：按主键/所有者读取，以及统一的提交与回滚。"""

from typing import Any, Dict, Generic, List, Optional, Set, Type, TypeVar

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from hcloud.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)


def commit_or_rollback(db: Session) -> None:
    """提交当前事务；失败时回滚并原样抛出，由调用方决定如何转换。"""
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise


class CRUDBase(Generic[ModelType]):
    def __init__(self, model: Type[ModelType]):
        self.model = model

    def query(self, db: Session) -> Query:
        return db.query(self.model)

    def get(self, db: Session, id: Any) -> Optional[ModelType]:
        return self.query(db).filter(self.model.id == id).first()

    def list_by_owner(self, db: Session, *, owner_id: int) -> List[ModelType]:
        return self.query(db).filter(self.model.owner_id == owner_id).order_by(self.model.id).all()

    def create(self, db: Session, obj_in: Dict[str, Any], *, auto_commit: bool = True) -> ModelType:
        """插入一行。唯一约束冲突以 ``IntegrityError`` 抛出；``auto_commit=False`` 时只 flush。"""
        db_obj = self.model(**obj_in)
        db.add(db_obj)
        if not auto_commit:
            db.flush()
            return db_obj
        commit_or_rollback(db)
        db.refresh(db_obj)
        return db_obj

    def save(self, db: Session, db_obj: ModelType, *, auto_commit: bool = True) -> ModelType:
        db.add(db_obj)
        if auto_commit:
            commit_or_rollback(db)
            db.refresh(db_obj)
        return db_obj

    def hard_delete(self, db: Session, db_obj: ModelType, *, auto_commit: bool = True) -> None:
        db.delete(db_obj)
        if auto_commit:
            commit_or_rollback(db)

    def count(self, db: Session) -> int:
        return int(db.query(func.count(self.model.id)).scalar() or 0)

    def owner_ids(self, db: Session) -> Set[int]:
        return {row[0] for row in db.query(self.model.owner_id).distinct()}
