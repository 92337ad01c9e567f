"""回收站条目模型：被软删除的文件或目录的快照。

- original_path：删除前的逻辑路径；original_storage_path：删除前的物理存储键；
- quarantine_path：相对回收站用户目录的隔离存储键，在彻底删除前唯一标识物理内容；
- expire_at：deleted_at + 固定保留期，由删除时刻推导。
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from hcloud.models.base import Base, OwnedMixin, TimestampMixin


class RecycleItem(OwnedMixin, TimestampMixin, Base):
    __tablename__ = "recycle_items"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    original_name: Mapped[str] = mapped_column(String(255))
    original_path: Mapped[str] = mapped_column(String(1024))
    original_storage_path: Mapped[str] = mapped_column(String(1024))
    quarantine_path: Mapped[str] = mapped_column(String(1024), unique=True)
    size: Mapped[int] = mapped_column(BigInteger, default=0)
    content_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    content_hash: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    item_type: Mapped[str] = mapped_column(String(16))  # "file" | "directory"
    deleted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expire_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
