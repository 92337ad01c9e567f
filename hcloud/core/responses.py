"""响应封装：构建系统统一的返回结构与文件下载响应。"""

from typing import Any, BinaryIO, Iterator, Optional
from urllib.parse import quote

from fastapi.responses import StreamingResponse

from hcloud.core.constants import DEFAULT_CONTENT_TYPE, HTTP_STATUS_OK

DOWNLOAD_CHUNK_SIZE = 64 * 1024
IMAGE_CACHE_CONTROL = "public, max-age=31536000"


def create_response(msg: str, data: Any = None, code: int = HTTP_STATUS_OK) -> dict[str, Any]:
    """按照 ``msg``、``data``、``code`` 组合出统一响应体。"""
    return {"msg": msg, "data": data, "code": code}


def _iter_handle(handle: BinaryIO) -> Iterator[bytes]:
    try:
        while True:
            chunk = handle.read(DOWNLOAD_CHUNK_SIZE)
            if not chunk:
                break
            yield chunk
    finally:
        handle.close()


def stream_file_response(
    handle: BinaryIO,
    filename: str,
    content_type: Optional[str] = None,
    *,
    size: Optional[int] = None,
) -> StreamingResponse:
    """把已打开的句柄包装为附件下载响应，传输结束或中断时关闭句柄。"""
    headers = {"Content-Disposition": f"attachment; filename*=UTF-8''{quote(filename)}"}
    if size is not None:
        headers["Content-Length"] = str(size)
    return StreamingResponse(
        _iter_handle(handle),
        media_type=content_type or DEFAULT_CONTENT_TYPE,
        headers=headers,
    )


def stream_image_response(handle: BinaryIO, content_type: str, *, size: int, etag: str) -> StreamingResponse:
    """图床直链：内联展示、长期缓存，并允许任意来源跨域读取。"""
    headers = {
        "Content-Length": str(size),
        "Cache-Control": IMAGE_CACHE_CONTROL,
        "ETag": etag,
        "Access-Control-Allow-Origin": "*",
        "Access-Control-Allow-Methods": "GET",
        "Access-Control-Allow-Headers": "Content-Type",
    }
    return StreamingResponse(_iter_handle(handle), media_type=content_type, headers=headers)
