"""
FastAPI 应用配置

配置 CORS、路由注册，并把刷新调度器绑定到应用生命周期。
"""

import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..collector import TelemetryClient
from ..config import AppConfig, get_config
from ..scheduler import RefreshScheduler
from .routers import machines, plc, refresh

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[AppConfig] = None,
    scheduler: Optional[RefreshScheduler] = None,
    client: Optional[TelemetryClient] = None,
) -> FastAPI:
    """
    创建 FastAPI 应用实例

    Args:
        config: 应用配置，默认读取全局配置
        scheduler: 刷新调度器，默认用 client 拉取数据
        client: 后端接口客户端，默认按配置创建
    """
    config = config or get_config()
    client = client or TelemetryClient.from_config(config.backend)
    if scheduler is None:
        scheduler = RefreshScheduler(fetch=client, interval=config.refresh.interval)

    app = FastAPI(
        title="Machine Dashboard",
        description="机台运行数据看板 API",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json"
    )
    app.state.config = config
    app.state.client = client
    app.state.scheduler = scheduler

    # CORS 中间件
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 注册路由
    app.include_router(machines.router)
    app.include_router(refresh.router)
    app.include_router(plc.router)

    @app.on_event("startup")
    async def startup_event():
        logger.info("Machine Dashboard starting up...")
        if config.refresh.auto_refresh:
            scheduler.start(config.refresh.interval)
        else:
            # 首次加载拉取一次
            scheduler.refresh_now()

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Machine Dashboard shutting down...")
        await scheduler.close()

    return app
