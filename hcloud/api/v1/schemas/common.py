"""统一响应外层结构。"""

from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class ResponseEnvelope(BaseModel, Generic[T]):
    """成功时 ``error`` 为空；失败时为稳定的错误码，例如 ``NOT_FOUND``。"""

    msg: str
    data: Optional[T] = None
    code: int
    error: Optional[str] = Field(default=None, description="ErrorCode value on failure")
