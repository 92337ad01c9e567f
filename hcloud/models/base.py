"""模型基类与通用字段。

- Base：声明式基类，约束/索引使用统一命名规则；
- TimestampMixin：``create_time`` / ``update_time``，由应用写入带时区的 UTC 时间；
- OwnedMixin：``owner_id``，所有业务查询都按它隔离用户数据。
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={getattr(self, 'id', None)}>"


class TimestampMixin:
    create_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utc_now, nullable=False)
    update_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utc_now,
        onupdate=_utc_now,
        nullable=False,
    )


class OwnedMixin:
    owner_id: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
