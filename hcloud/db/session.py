"""数据库引擎与会话工厂。"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from hcloud.core.config import get_settings

settings = get_settings()

# SQLite 连接会被后台清理线程与请求线程共用
engine = create_engine(
    settings.sql_database_url,
    pool_pre_ping=True,
    echo=settings.database_echo,
    connect_args={"check_same_thread": False} if settings.uses_sqlite else {},
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
