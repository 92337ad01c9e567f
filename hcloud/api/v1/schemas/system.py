"""系统信息 - 响应模型。"""

from pydantic import BaseModel

from hcloud.api.v1.schemas.common import ResponseEnvelope
from hcloud.api.v1.schemas.files import StorageStatsData
from hcloud.services.file_service import SystemInfo


class VersionData(BaseModel):
    version: str
    pythonVersion: str
    os: str
    arch: str


class SystemInfoData(VersionData):
    uptimeSeconds: int
    usersCount: int
    filesCount: int
    storage: StorageStatsData

    @classmethod
    def from_info(cls, info: SystemInfo) -> "SystemInfoData":
        return cls(
            version=info.version,
            pythonVersion=info.python_version,
            os=info.os,
            arch=info.arch,
            uptimeSeconds=info.uptime_seconds,
            usersCount=info.users_count,
            filesCount=info.files_count,
            storage=StorageStatsData(total=info.storage.total, used=info.storage.used, free=info.storage.free),
        )


VersionResponse = ResponseEnvelope[VersionData]
SystemInfoResponse = ResponseEnvelope[SystemInfoData]
