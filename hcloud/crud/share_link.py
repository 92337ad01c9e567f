"""分享链接 CRUD。"""

from __future__ import annotations

from typing import List

from sqlalchemy import update
from sqlalchemy.orm import Session

from hcloud.crud.base import CRUDBase, commit_or_rollback
from hcloud.models.share_link import ShareLink


class CRUDShareLink(CRUDBase[ShareLink]):
    def get_by_token(self, db: Session, token: str) -> ShareLink | None:
        return self.query(db).filter(ShareLink.token == token).first()

    def list_for_owner(self, db: Session, *, owner_id: int) -> List[ShareLink]:
        return (
            self.query(db)
            .filter(ShareLink.owner_id == owner_id)
            .order_by(ShareLink.create_time.desc(), ShareLink.id.desc())
            .all()
        )

    def increment_view_count(self, db: Session, share: ShareLink) -> None:
        # 在数据库侧自增，避免并发访问互相覆盖
        db.execute(
            update(ShareLink)
            .where(ShareLink.id == share.id)
            .values(view_count=ShareLink.view_count + 1)
        )
        commit_or_rollback(db)
        db.refresh(share)


share_link_crud = CRUDShareLink(ShareLink)
