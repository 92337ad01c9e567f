"""配置模块：从环境变量与 .env 文件加载设置，进程内只解析一次。

.env 加载顺序：``ENV_FILE`` 指定的文件独占生效；否则先读 ``.env``，
再由 ``ENVIRONMENT``（DEBUG 打开时默认 development）选择的 ``.env.<name>`` 覆盖。
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from hcloud import __version__

PACKAGE_NAME = "hcloud"
TRUTHY = frozenset({"1", "true", "yes", "on"})


def _project_root() -> Path:
    here = Path(__file__).resolve()
    return next((parent for parent in here.parents if (parent / PACKAGE_NAME).is_dir()), here.parent)


BASE_DIR = _project_root()


def _env_files() -> List[Tuple[Path, bool]]:
    """按加载顺序返回 (文件, 是否覆盖已有变量)。"""
    explicit = os.getenv("ENV_FILE")
    if explicit:
        return [(BASE_DIR / explicit, True)]

    files = [(BASE_DIR / ".env", False)]
    environment = os.getenv("ENVIRONMENT")
    if environment is None and (os.getenv("DEBUG") or "").strip().lower() in TRUTHY:
        environment = "development"
    if environment:
        name = environment if environment.startswith(".env") else f".env.{environment}"
        files.append((BASE_DIR / name, True))
    return files


for _env_path, _override in _env_files():
    if _env_path.exists():
        load_dotenv(_env_path, override=_override, encoding="utf-8")


class Settings(BaseSettings):
    """所有字段都可以用同名大写环境变量覆盖。"""

    model_config = SettingsConfigDict(extra="ignore")

    project_name: str = Field(default="H-Cloud API", alias="PROJECT_NAME")
    app_version: str = Field(default=__version__, alias="APP_VERSION")
    api_v1_str: str = Field(default="/api/v1", alias="API_V1_STR")
    debug: bool = Field(default=False, alias="DEBUG")
    app_port: int = Field(default=8080, alias="APP_PORT")
    timezone: str = Field(default="Asia/Shanghai", alias="TIMEZONE")

    # DATABASE_HOST=sqlite 时 DATABASE_NAME 是 SQLite 文件路径
    database_host: str = Field(default="sqlite", alias="DATABASE_HOST")
    database_port: int = Field(default=5432, alias="DATABASE_PORT")
    database_user: str = Field(default="hcloud", alias="DATABASE_USER")
    database_password: str = Field(default="hcloud_password", alias="DATABASE_PASSWORD")
    database_name: str = Field(default="hcloud.db", alias="DATABASE_NAME")
    database_echo: bool = Field(default=False, alias="DATABASE_ECHO")

    jwt_secret_key: str = Field(default="changeme", alias="JWT_SECRET_KEY")
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = Field(default=60 * 24, alias="ACCESS_TOKEN_EXPIRE_MINUTES")

    storage_path: str = Field(default="/data/storage", alias="STORAGE_PATH")
    mapped_path: str = Field(default="/data/mapped_storage", alias="MAPPED_PATH")
    # 为空时回收站位于存储根目录下的 .recycle
    recycle_path: str = Field(default="", alias="RECYCLE_PATH")

    recycle_retention_days: int = Field(default=30, ge=1, alias="RECYCLE_RETENTION_DAYS")
    recycle_sweep_enabled: bool = Field(default=True, alias="RECYCLE_SWEEP_ENABLED")
    recycle_sweep_interval_seconds: int = Field(default=3600, ge=1, alias="RECYCLE_SWEEP_INTERVAL_SECONDS")
    share_default_expire_hours: int = Field(default=24, ge=1, alias="SHARE_DEFAULT_EXPIRE_HOURS")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: str = Field(default="log", alias="LOG_DIR")
    log_file_name: str = Field(default="hcloud.log", alias="LOG_FILE_NAME")
    log_json: bool = Field(default=False, alias="LOG_JSON")

    @field_validator("log_level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("storage_path", "mapped_path")
    @classmethod
    def _require_root(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("storage roots must not be empty")
        return value.strip()

    def resolve_path(self, raw: str) -> Path:
        """相对路径按项目根目录解释。"""
        path = Path(raw).expanduser()
        return path if path.is_absolute() else BASE_DIR / path

    @property
    def uses_sqlite(self) -> bool:
        return self.database_host.strip().lower() == "sqlite"

    @property
    def sql_database_url(self) -> str:
        if self.uses_sqlite:
            return f"sqlite:///{self.resolve_path(self.database_name or 'hcloud.db')}"
        return (
            f"postgresql+psycopg2://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def log_directory(self) -> Path:
        return self.resolve_path(self.log_dir)

    @property
    def log_file_path(self) -> Path:
        return self.log_directory / self.log_file_name

    @property
    def timezone_info(self) -> ZoneInfo:
        """无法识别的时区名回退到 UTC。"""
        try:
            return ZoneInfo(self.timezone)
        except ZoneInfoNotFoundError:
            return ZoneInfo("UTC")

    @property
    def storage_layout(self):
        """注入存储引擎的不可变目录布局。"""
        from hcloud.services.storage_engine import StorageLayout

        storage_root = self.resolve_path(self.storage_path)
        recycle_root: Optional[Path] = self.resolve_path(self.recycle_path) if self.recycle_path else None
        return StorageLayout(
            storage_root=storage_root,
            mapped_root=self.resolve_path(self.mapped_path),
            recycle_root=recycle_root or storage_root / ".recycle",
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
