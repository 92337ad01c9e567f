"""依赖注入模块：数据库会话、存储服务与当前用户。"""

from collections.abc import Generator
from functools import lru_cache
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from hcloud.core.config import get_settings
from hcloud.core.constants import ACCESS_TOKEN_TYPE
from hcloud.core.exceptions import AuthenticationError
from hcloud.core.security import user_id_from_token
from hcloud.db.session import SessionLocal
from hcloud.services.directory_service import DirectoryService
from hcloud.services.file_service import FileService
from hcloud.services.recycle_service import RecycleBin
from hcloud.services.share_service import ShareRegistry
from hcloud.services.storage_engine import StorageEngine

security_scheme = HTTPBearer(auto_error=False)


def get_db() -> Generator[Session, None, None]:
    """生成一个数据库会话，并在请求结束后自动关闭。"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache
def get_storage_engine() -> StorageEngine:
    """进程内唯一的存储引擎，目录布局在首次使用时确定。"""
    return StorageEngine(get_settings().storage_layout)


def get_directory_service(engine: StorageEngine = Depends(get_storage_engine)) -> DirectoryService:
    return DirectoryService(engine)


def get_file_service(engine: StorageEngine = Depends(get_storage_engine)) -> FileService:
    return FileService(engine)


def get_recycle_bin(engine: StorageEngine = Depends(get_storage_engine)) -> RecycleBin:
    return RecycleBin(engine, get_settings().recycle_retention_days)


def get_share_registry(engine: StorageEngine = Depends(get_storage_engine)) -> ShareRegistry:
    return ShareRegistry(engine, get_settings().share_default_expire_hours)


def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> int:
    """解析 ``Authorization`` 头部并返回当前用户 ID，缺失或非法时抛出 401。"""
    if not credentials:
        raise AuthenticationError("缺少认证信息")
    if credentials.scheme.lower() != ACCESS_TOKEN_TYPE:
        raise AuthenticationError("认证类型无效")

    user_id = user_id_from_token(credentials.credentials)
    if user_id is None:
        raise AuthenticationError("Token 无效或已过期")
    return user_id
