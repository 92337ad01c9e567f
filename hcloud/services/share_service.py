"""分享服务：创建、访问、探测与撤销分享链接。

访问分享时依次检查：是否存在 -> 是否过期（永久有效则跳过）-> 密码（未设置则跳过）。
只有真正返回文件内容的访问才会让浏览次数加一。
"""

from __future__ import annotations

import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import BinaryIO, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hcloud.core.constants import DEFAULT_SHARE_EXPIRE_HOURS, SHARE_TOKEN_BYTES
from hcloud.core.enums import ItemTypeEnum
from hcloud.core.exceptions import (
    ConflictError,
    ExpiredError,
    ForbiddenError,
    NotFoundError,
    NotImplementedFeatureError,
    ValidationError,
)
from hcloud.core.logger import logger
from hcloud.core.timezone import ensure_utc, utcnow
from hcloud.crud.directory_entry import directory_entry_crud
from hcloud.crud.file_entry import file_entry_crud
from hcloud.crud.share_link import share_link_crud
from hcloud.models.file_entry import FileEntry
from hcloud.models.share_link import ShareLink
from hcloud.services.storage_engine import StorageEngine

MISSING_FILE_NAME = "(文件不存在)"
MISSING_DIRECTORY_NAME = "(目录不存在)"


@dataclass(frozen=True)
class ExpiryPolicy:
    """永久有效优先，其次按天，再按小时；都未指定时使用默认小时数。"""

    hours: int = 0
    days: int = 0
    forever: bool = False

    def expire_at(self, now: datetime, default_hours: int = DEFAULT_SHARE_EXPIRE_HOURS) -> Optional[datetime]:
        if self.forever:
            return None
        if self.days > 0:
            return now + timedelta(days=self.days)
        if self.hours > 0:
            return now + timedelta(hours=self.hours)
        return now + timedelta(hours=default_hours)


@dataclass(frozen=True)
class ShareInfo:
    token: str
    has_password: bool
    item_type: str
    name: str
    expire_at: Optional[datetime]
    view_count: int


@dataclass(frozen=True)
class ShareSummary:
    share: ShareLink
    item_type: str
    name: str
    expired: bool


class ShareAccess:
    """一次成功的分享访问；作为上下文管理器使用以保证句柄被关闭。"""

    def __init__(self, share: ShareLink, file: FileEntry, handle: BinaryIO):
        self.share = share
        self.file = file
        self.handle = handle

    def close(self) -> None:
        self.handle.close()

    def __enter__(self) -> "ShareAccess":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def is_expired(share: ShareLink, now: datetime) -> bool:
    if share.expire_at is None:
        return False
    return ensure_utc(now) > ensure_utc(share.expire_at)


def password_matches(expected: str, supplied: Optional[str]) -> bool:
    return hmac.compare_digest((expected or "").encode("utf-8"), (supplied or "").encode("utf-8"))


class ShareRegistry:
    def __init__(self, engine: StorageEngine, default_expire_hours: int = DEFAULT_SHARE_EXPIRE_HOURS):
        self.engine = engine
        self.default_expire_hours = default_expire_hours

    # ----------------------------
    # 创建 / 撤销
    # ----------------------------
    def create_share(
        self,
        db: Session,
        *,
        owner_id: int,
        file_id: Optional[int] = None,
        directory_id: Optional[int] = None,
        policy: Optional[ExpiryPolicy] = None,
        password: str = "",
        is_public: bool = True,
        now: Optional[datetime] = None,
    ) -> ShareLink:
        if (file_id is None) == (directory_id is None):
            raise ValidationError("必须且只能指定一个分享目标（文件或目录）", field="target")

        if file_id is not None:
            target = file_entry_crud.get(db, file_id)
            missing = "文件不存在"
        else:
            target = directory_entry_crud.get(db, directory_id)
            missing = "目录不存在"
        if target is None:
            raise NotFoundError(missing)
        if target.owner_id != owner_id:
            raise ForbiddenError("无权分享该资源")

        issued_at = ensure_utc(now) or utcnow()
        expire_at = (policy or ExpiryPolicy()).expire_at(issued_at, self.default_expire_hours)
        try:
            share = share_link_crud.create(
                db,
                {
                    "owner_id": owner_id,
                    "token": secrets.token_hex(SHARE_TOKEN_BYTES),
                    "file_id": file_id,
                    "directory_id": directory_id,
                    "expire_at": expire_at,
                    "password": password or "",
                    "is_public": is_public,
                    "view_count": 0,
                },
            )
        except IntegrityError as exc:
            raise ConflictError("分享令牌冲突，请重试") from exc

        logger.info(
            "Share created: user=%s token=%s target=%s:%s forever=%s",
            owner_id,
            share.token,
            "file" if file_id is not None else "directory",
            file_id if file_id is not None else directory_id,
            expire_at is None,
        )
        return share

    def revoke(self, db: Session, *, token: str, owner_id: int) -> None:
        share = self._get(db, token)
        if share.owner_id != owner_id:
            raise ForbiddenError("无权撤销该分享")
        share_link_crud.hard_delete(db, share)
        logger.info("Share revoked: user=%s token=%s", owner_id, token)

    # ----------------------------
    # 访问
    # ----------------------------
    def _get(self, db: Session, token: str) -> ShareLink:
        share = share_link_crud.get_by_token(db, token) if token else None
        if share is None:
            raise NotFoundError("分享不存在")
        return share

    def _check_active(self, share: ShareLink, now: Optional[datetime]) -> None:
        if is_expired(share, now or utcnow()):
            raise ExpiredError("分享已过期")

    def resolve(
        self,
        db: Session,
        *,
        token: str,
        password: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ShareAccess:
        """返回文件内容句柄并计一次浏览；目录分享暂不支持访问内容。"""
        share = self.verify_share(db, token=token, password=password, now=now)
        if share.directory_id is not None:
            raise NotImplementedFeatureError("暂不支持访问目录分享的内容")

        file = file_entry_crud.get(db, share.file_id)
        if file is None:
            raise NotFoundError("分享的文件不存在")
        handle = self.engine.get_file(file.owner_id, file.stored_path)
        try:
            share_link_crud.increment_view_count(db, share)
        except Exception:
            handle.close()
            raise
        return ShareAccess(share, file, handle)

    def verify_share(
        self,
        db: Session,
        *,
        token: str,
        password: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> ShareLink:
        """校验存在性、有效期与密码，不返回内容也不计浏览次数。"""
        share = self._get(db, token)
        self._check_active(share, now)
        if share.has_password and not password_matches(share.password, password):
            raise ForbiddenError("分享密码错误")
        return share

    def check_share(self, db: Session, *, token: str, now: Optional[datetime] = None) -> ShareInfo:
        """元数据探测：供前端判断是否需要提示输入密码。"""
        share = self._get(db, token)
        self._check_active(share, now)
        item_type, name = self._describe_target(db, share)
        return ShareInfo(
            token=share.token,
            has_password=share.has_password,
            item_type=item_type,
            name=name,
            expire_at=ensure_utc(share.expire_at),
            view_count=share.view_count,
        )

    # ----------------------------
    # 列表
    # ----------------------------
    def summarize(self, db: Session, share: ShareLink, now: Optional[datetime] = None) -> ShareSummary:
        item_type, name = self._describe_target(db, share)
        return ShareSummary(share=share, item_type=item_type, name=name, expired=is_expired(share, now or utcnow()))

    def list_shares(self, db: Session, *, owner_id: int, now: Optional[datetime] = None) -> List[ShareSummary]:
        current = now or utcnow()
        return [self.summarize(db, share, current) for share in share_link_crud.list_for_owner(db, owner_id=owner_id)]

    @staticmethod
    def _describe_target(db: Session, share: ShareLink) -> tuple[str, str]:
        if share.file_id is not None:
            file = file_entry_crud.get(db, share.file_id)
            return ItemTypeEnum.FILE.value, file.name if file else MISSING_FILE_NAME
        directory = directory_entry_crud.get(db, share.directory_id)
        return ItemTypeEnum.DIRECTORY.value, directory.name if directory else MISSING_DIRECTORY_NAME


__all__ = [
    "ExpiryPolicy",
    "ShareAccess",
    "ShareInfo",
    "ShareRegistry",
    "ShareSummary",
    "is_expired",
    "password_matches",
]
