"""API v1 汇总路由：统一挂载所有版本化的子路由。"""

from fastapi import APIRouter

from hcloud.api.v1.endpoints import directories, files, recycle, shares, system

api_router = APIRouter()
api_router.include_router(files.router)
api_router.include_router(files.image_router)
api_router.include_router(directories.router)
api_router.include_router(recycle.router)
api_router.include_router(shares.router)
api_router.include_router(system.router)
