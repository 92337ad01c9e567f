"""启动时建表：元数据里注册的表缺哪张建哪张。"""

from __future__ import annotations

from hcloud.core.logger import logger
from hcloud.db import session as db_session
from hcloud.models import Base  # noqa: F401 - importing the package registers every model


def init_db() -> None:
    Base.metadata.create_all(bind=db_session.engine)
    logger.info("Schema ready on %s (%d tables)", db_session.engine.url.get_backend_name(), len(Base.metadata.tables))
