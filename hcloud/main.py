"""hcloud 服务入口：``uvicorn hcloud.main:app``。"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hcloud.api.v1 import api_router
from hcloud.core.config import Settings, get_settings
from hcloud.core.dependencies import get_recycle_bin, get_storage_engine
from hcloud.core.exceptions import register_exception_handlers
from hcloud.core.logger import logger, setup_logging
from hcloud.core.responses import create_response
from hcloud.db import session as db_session
from hcloud.db.init_db import init_db
from hcloud.middleware.request_id import REQUEST_ID_HEADER, RequestIdMiddleware
from hcloud.services.sweeper import RecycleSweeper


def _start_sweeper(settings: Settings) -> Optional[RecycleSweeper]:
    if not settings.recycle_sweep_enabled:
        logger.info("Recycle sweeper disabled")
        return None
    sweeper = RecycleSweeper(
        get_recycle_bin(get_storage_engine()),
        db_session.SessionLocal,
        settings.recycle_sweep_interval_seconds,
    )
    sweeper.start()
    return sweeper


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """启动时建表并按配置启动回收站清理，关闭时停止清理任务。"""
    settings = get_settings()
    init_db()
    app.state.sweeper = _start_sweeper(settings)
    logger.info("hcloud listening on port %s, storage root %s", settings.app_port, settings.storage_layout.storage_root)
    try:
        yield
    finally:
        if app.state.sweeper is not None:
            app.state.sweeper.stop()
        app.state.sweeper = None


def create_app() -> FastAPI:
    setup_logging()
    settings = get_settings()

    app = FastAPI(title=settings.project_name, debug=settings.debug, lifespan=lifespan)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=True,
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.add_middleware(RequestIdMiddleware)
    register_exception_handlers(app)

    @app.get("/health")
    async def health() -> dict:
        return create_response("OK", {"status": "healthy"})

    app.include_router(api_router, prefix=settings.api_v1_str)
    return app


app = create_app()
