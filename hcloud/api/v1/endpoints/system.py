"""系统信息路由：存储容量、版本与运行概况。"""

import platform

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from hcloud.api.v1.schemas.files import StorageStatsData, StorageStatsResponse
from hcloud.api.v1.schemas.system import SystemInfoData, SystemInfoResponse, VersionData, VersionResponse
from hcloud.core.config import get_settings
from hcloud.core.dependencies import get_current_user_id, get_db, get_file_service
from hcloud.core.responses import create_response
from hcloud.services.file_service import FileService

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/storage", response_model=StorageStatsResponse)
def storage_stats(
    _: int = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    info = service.storage_stats()
    return create_response("获取存储信息成功", StorageStatsData(total=info.total, used=info.used, free=info.free).model_dump())


@router.get("/version", response_model=VersionResponse)
def version():
    data = VersionData(
        version=get_settings().app_version,
        pythonVersion=platform.python_version(),
        os=platform.system().lower(),
        arch=platform.machine(),
    )
    return create_response("获取版本信息成功", data.model_dump())


@router.get("/info", response_model=SystemInfoResponse)
def system_info(
    db: Session = Depends(get_db),
    _: int = Depends(get_current_user_id),
    service: FileService = Depends(get_file_service),
):
    info = service.system_info(db, version=get_settings().app_version)
    return create_response("获取系统信息成功", SystemInfoData.from_info(info).model_dump())
