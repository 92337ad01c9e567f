"""测试夹具：为 pytest 提供隔离的数据库、存储目录、服务对象与客户端。"""

import os
import tempfile
from typing import Generator

# 必须在导入 hcloud 之前设置，保证配置单例读取到测试目录
_TEST_ROOT = tempfile.mkdtemp(prefix="hcloud_tests_")
os.environ["DATABASE_HOST"] = "sqlite"
os.environ["DATABASE_NAME"] = os.path.join(_TEST_ROOT, "bootstrap.db")
os.environ["STORAGE_PATH"] = os.path.join(_TEST_ROOT, "storage")
os.environ["MAPPED_PATH"] = os.path.join(_TEST_ROOT, "mapped")
os.environ["RECYCLE_PATH"] = os.path.join(_TEST_ROOT, "recycle")
os.environ["LOG_DIR"] = os.path.join(_TEST_ROOT, "log")
os.environ["RECYCLE_SWEEP_ENABLED"] = "false"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from hcloud.core.dependencies import get_db, get_storage_engine  # noqa: E402
from hcloud.core.security import create_access_token  # noqa: E402
from hcloud.db import session as db_session  # noqa: E402
from hcloud.main import app  # noqa: E402
from hcloud.models.base import Base  # noqa: E402
from hcloud.services.directory_service import DirectoryService  # noqa: E402
from hcloud.services.file_service import FileService  # noqa: E402
from hcloud.services.recycle_service import RecycleBin  # noqa: E402
from hcloud.services.share_service import ShareRegistry  # noqa: E402
from hcloud.services.storage_engine import StorageEngine, StorageLayout  # noqa: E402

OWNER_ID = 1
OTHER_ID = 2


@pytest.fixture()
def session_factory(tmp_path, monkeypatch):
    """每个用例使用独立的 SQLite 文件数据库。"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    monkeypatch.setattr(db_session, "engine", engine)
    monkeypatch.setattr(db_session, "SessionLocal", TestingSessionLocal)
    Base.metadata.create_all(bind=engine)
    yield TestingSessionLocal
    engine.dispose()


@pytest.fixture()
def db(session_factory) -> Generator[Session, None, None]:
    """提供给测试用例使用的数据库会话。"""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def layout(tmp_path) -> StorageLayout:
    return StorageLayout(
        storage_root=tmp_path / "storage",
        mapped_root=tmp_path / "mapped",
        recycle_root=tmp_path / "recycle",
    )


@pytest.fixture()
def engine(layout) -> StorageEngine:
    return StorageEngine(layout)


@pytest.fixture()
def directories(engine) -> DirectoryService:
    return DirectoryService(engine)


@pytest.fixture()
def files(engine, directories) -> FileService:
    return FileService(engine, directories)


@pytest.fixture()
def recycle_bin(engine) -> RecycleBin:
    return RecycleBin(engine, retention_days=30)


@pytest.fixture()
def shares(engine) -> ShareRegistry:
    return ShareRegistry(engine, default_expire_hours=24)


@pytest.fixture()
def client(session_factory, engine):
    """构建 FastAPI TestClient，并注入测试专用的数据库与存储依赖。"""
    def override_get_db() -> Generator[Session, None, None]:
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage_engine] = lambda: engine

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def _headers_for(user_id: int) -> dict[str, str]:
    token = create_access_token(user_id)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def auth_headers() -> dict[str, str]:
    return _headers_for(OWNER_ID)


@pytest.fixture()
def other_headers() -> dict[str, str]:
    return _headers_for(OTHER_ID)
