"""文件实体模型。

``stored_path`` 是带时间戳前缀的物理存储键（相对用户目录），上传后不可变；
``name`` 是用户可见的逻辑文件名，重命名只修改它。

同一目录下文件名唯一。根目录下的文件 ``directory_id`` 为 NULL，而唯一约束不把
NULL 视为相等，所以根目录另有一个部分唯一索引。
"""

from typing import Optional

from sqlalchemy import BigInteger, Index, Integer, String, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from hcloud.models.base import Base, OwnedMixin, TimestampMixin

_AT_ROOT = text("directory_id IS NULL")


class FileEntry(OwnedMixin, TimestampMixin, Base):
    __tablename__ = "files"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    directory_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    name: Mapped[str] = mapped_column(String(255), index=True)
    stored_path: Mapped[str] = mapped_column(String(1024))
    size: Mapped[int] = mapped_column(BigInteger, default=0)
    content_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    content_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    __table_args__ = (
        UniqueConstraint("owner_id", "directory_id", "name", name="uq_files_owner_directory_name"),
        Index(
            "uq_files_owner_root_name",
            "owner_id",
            "name",
            unique=True,
            sqlite_where=_AT_ROOT,
            postgresql_where=_AT_ROOT,
        ),
    )
