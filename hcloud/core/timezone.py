"""时间工具：持久化一律使用 UTC，对外展示时转换为配置时区。"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from hcloud.core.config import get_settings


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite 读回的时间不带时区，按 UTC 解释；其它值换算到 UTC。"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_local(value: Optional[datetime]) -> Optional[datetime]:
    utc_value = ensure_utc(value)
    if utc_value is None:
        return None
    return utc_value.astimezone(get_settings().timezone_info)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    """API 返回的 RFC 3339 时间串，带配置时区的偏移量。"""
    local = to_local(value)
    return local.isoformat() if local else None
