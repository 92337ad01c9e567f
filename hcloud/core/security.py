"""访问令牌：签发与解析携带 ``user_id`` 声明的 JWT。

用户注册与登录由上游身份服务负责，这里只信任用配置密钥签名的令牌。
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from .config import get_settings
from .logger import logger

USER_ID_CLAIM = "user_id"


def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
    settings = get_settings()
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    claims = {USER_ID_CLAIM: user_id, "exp": datetime.now(timezone.utc) + lifetime}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def user_id_from_token(token: str) -> Optional[int]:
    """签名、过期时间与 ``user_id`` 声明都有效时返回用户 ID，否则返回 ``None``。"""
    settings = get_settings()
    try:
        claims = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as exc:
        logger.warning("Rejected access token: %s", exc)
        return None
    try:
        return int(claims[USER_ID_CLAIM])
    except (KeyError, TypeError, ValueError):
        logger.warning("Access token without a usable %s claim", USER_ID_CLAIM)
        return None
