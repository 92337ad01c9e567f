"""目录实体模型。

存储规则：
- path：逻辑路径，不以 '/' 开头也不以 '/' 结尾（如 "docs/2024"）；根目录不入库；
- storage_path：相对用户目录的物理路径，创建后不再变化，重命名只修改 name/path；
- parent_id：父目录 ID，根目录下的条目为 NULL（仅为反向引用，不表达级联删除）；
- 映射目录：is_mapping=True，mapping_target 为被链接的外部目录。
"""

from typing import Optional

from sqlalchemy import Boolean, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from hcloud.models.base import Base, OwnedMixin, TimestampMixin


class DirectoryEntry(OwnedMixin, TimestampMixin, Base):
    __tablename__ = "directories"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255))
    path: Mapped[str] = mapped_column(String(1024), index=True)
    storage_path: Mapped[str] = mapped_column(String(1024))
    parent_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    is_mapping: Mapped[bool] = mapped_column(Boolean, default=False)
    mapping_target: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)

    __table_args__ = (
        UniqueConstraint("owner_id", "path", name="uq_directories_owner_path"),
    )
