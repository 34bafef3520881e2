"""
DWG/DXF 预览服务入口
"""

import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import make_asgi_app
import uvicorn

from src.api import api_router
from src.core.cad.preview.service import get_preview_service
from src.core.config import get_settings
from src.utils.logging import setup_logging

# 加载配置
settings = get_settings()

# 设置日志
setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("Starting DWG preview service...")
    for directory in (settings.DWG_UPLOAD_DIR, settings.DWG_CACHE_DIR, settings.DWG_STAGING_DIR):
        Path(directory).mkdir(parents=True, exist_ok=True)

    converter = get_preview_service().converter
    if not converter.is_available:
        logger.warning("No DWG converter found; DWG files will get placeholder previews")

    yield

    logger.info("Shutting down DWG preview service...")


# 创建FastAPI应用
app = FastAPI(
    title="DWG Preview Service",
    description="DWG/DXF to SVG preview rendering",
    version="1.0.0",
    lifespan=lifespan,
)

# 配置CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(api_router, prefix="/api")

app.mount("/metrics", make_asgi_app())


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
