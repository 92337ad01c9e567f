"""分享链接模型。

- token：安全随机数生成的 hex 字符串，全局唯一；
- file_id / directory_id：二者必须且只能有一个非空（由 CHECK 约束保证）；
- expire_at：NULL 表示永久有效；
- password：空字符串表示无需密码。
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from hcloud.models.base import Base, OwnedMixin, TimestampMixin


class ShareLink(OwnedMixin, TimestampMixin, Base):
    __tablename__ = "shares"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    token: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    file_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    directory_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True, index=True)
    expire_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    password: Mapped[str] = mapped_column(String(128), default="")
    is_public: Mapped[bool] = mapped_column(Boolean, default=True)
    view_count: Mapped[int] = mapped_column(Integer, default=0)

    __table_args__ = (
        CheckConstraint(
            "(file_id IS NULL) <> (directory_id IS NULL)",
            name="single_target",
        ),
    )

    @property
    def never_expires(self) -> bool:
        return self.expire_at is None

    @property
    def has_password(self) -> bool:
        return bool(self.password)
