"""Request ID middleware: binds X-Request-ID to the logging context.

An incoming X-Request-ID header is reused; otherwise a UUID4 is generated.
The id is echoed back on the response so clients can correlate log lines.
"""

from __future__ import annotations

import uuid

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from hcloud.core.logger import set_request_id

REQUEST_ID_HEADER = "X-Request-ID"
HEADER_NAME = REQUEST_ID_HEADER.lower().encode("latin-1")


class RequestIdMiddleware:
    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        raw = dict(scope.get("headers", [])).get(HEADER_NAME)
        rid = raw.decode("latin-1") if raw else str(uuid.uuid4())
        set_request_id(rid)

        async def send_with_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append((HEADER_NAME, rid.encode("latin-1")))
                message["headers"] = headers
            await send(message)

        try:
            await self.app(scope, receive, send_with_id)
        finally:
            set_request_id(None)
