"""异常处理模块：定义统一的业务异常与响应格式。

每一类错误对应一个稳定的 ``ErrorCode``，HTTP 层据此选择状态码，无需解析错误文本。
"""

from enum import Enum
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from hcloud.core.constants import (
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_CONFLICT,
    HTTP_STATUS_FORBIDDEN,
    HTTP_STATUS_GONE,
    HTTP_STATUS_INTERNAL_SERVER_ERROR,
    HTTP_STATUS_NOT_FOUND,
    HTTP_STATUS_NOT_IMPLEMENTED,
    HTTP_STATUS_UNAUTHORIZED,
    HTTP_STATUS_UNPROCESSABLE_ENTITY,
)
from hcloud.core.logger import logger


class ErrorCode(str, Enum):
    """Machine-readable error classes exposed to the HTTP boundary."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    CONFLICT = "CONFLICT"
    IO_FAILURE = "IO_FAILURE"
    EXPIRED = "EXPIRED"
    NOT_IMPLEMENTED = "NOT_IMPLEMENTED"
    UNAUTHORIZED = "UNAUTHORIZED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class AppException(HTTPException):
    """携带统一响应结构的业务异常，方便在全局处理中转换响应体。"""

    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        msg: str,
        code: int = status.HTTP_400_BAD_REQUEST,
        data: Any = None,
        *,
        error_code: Optional[ErrorCode] = None,
    ) -> None:
        super().__init__(status_code=code, detail=msg)
        self.msg = msg
        self.data = data
        if error_code is not None:
            self.error_code = error_code

    def __str__(self) -> str:
        return self.msg


class ValidationError(AppException):
    """名称、路径或文件类型不合法。"""

    error_code = ErrorCode.VALIDATION_ERROR

    def __init__(self, msg: str, field: Optional[str] = None) -> None:
        super().__init__(msg, HTTP_STATUS_BAD_REQUEST, {"field": field} if field else None)
        self.field = field


class NotFoundError(AppException):
    error_code = ErrorCode.NOT_FOUND

    def __init__(self, msg: str = "资源不存在") -> None:
        super().__init__(msg, HTTP_STATUS_NOT_FOUND)


class ForbiddenError(AppException):
    """所有权或密码校验失败。"""

    error_code = ErrorCode.FORBIDDEN

    def __init__(self, msg: str = "没有权限执行该操作") -> None:
        super().__init__(msg, HTTP_STATUS_FORBIDDEN)


class ConflictError(AppException):
    """逻辑路径或令牌冲突；并发场景下属于预期结果。"""

    error_code = ErrorCode.CONFLICT

    def __init__(self, msg: str = "资源已存在") -> None:
        super().__init__(msg, HTTP_STATUS_CONFLICT)


class StorageIOError(AppException):
    """文件系统错误：权限不足、磁盘已满、链接失效等。"""

    error_code = ErrorCode.IO_FAILURE

    def __init__(self, msg: str = "存储操作失败", original_error: Optional[BaseException] = None) -> None:
        super().__init__(msg, HTTP_STATUS_INTERNAL_SERVER_ERROR)
        self.original_error = original_error


class ExpiredError(AppException):
    error_code = ErrorCode.EXPIRED

    def __init__(self, msg: str = "分享已过期") -> None:
        super().__init__(msg, HTTP_STATUS_GONE)


class NotImplementedFeatureError(AppException):
    error_code = ErrorCode.NOT_IMPLEMENTED

    def __init__(self, msg: str = "功能暂未支持") -> None:
        super().__init__(msg, HTTP_STATUS_NOT_IMPLEMENTED)


class AuthenticationError(AppException):
    error_code = ErrorCode.UNAUTHORIZED

    def __init__(self, msg: str = "缺少认证信息") -> None:
        super().__init__(msg, HTTP_STATUS_UNAUTHORIZED)


def _error_response(status_code: int, msg: str, error: Optional[ErrorCode], data: Any = None) -> JSONResponse:
    payload = {
        "msg": msg,
        "data": data,
        "code": status_code,
        "error": error.value if error else None,
    }
    return JSONResponse(status_code=status_code, content=payload)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """将 FastAPI 的 ``HTTPException`` 转换为统一响应格式。"""
    return _error_response(exc.status_code, exc.detail, getattr(exc, "error_code", None), getattr(exc, "data", None))


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """请求体或参数未通过 pydantic 校验，逐项错误放在 ``data`` 中返回。"""
    logger.debug("Rejected request %s %s: %s", request.method, request.url.path, exc.errors())
    return _error_response(
        HTTP_STATUS_UNPROCESSABLE_ENTITY,
        "请求参数验证失败",
        ErrorCode.VALIDATION_ERROR,
        jsonable_encoder(exc.errors()),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """兜底处理：记录堆栈，对外只返回 500 和通用提示。"""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error_response(HTTP_STATUS_INTERNAL_SERVER_ERROR, "服务器内部错误", ErrorCode.INTERNAL_ERROR)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
