"""API路由聚合"""
from fastapi import APIRouter

from src.api.v1 import dwg

api_router = APIRouter()

# 注册v1版本API
v1_router = APIRouter(prefix="/v1")
v1_router.include_router(dwg.router, prefix="/dwg", tags=["DWG预览"])

api_router.include_router(v1_router)
