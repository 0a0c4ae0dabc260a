"""
依赖注入模块

提供 FastAPI 依赖项。
"""

from fastapi import Request

from ..collector import TelemetryClient
from ..scheduler import RefreshScheduler


async def get_scheduler(request: Request) -> RefreshScheduler:
    """获取当前应用绑定的刷新调度器"""
    return request.app.state.scheduler


async def get_client(request: Request) -> TelemetryClient:
    """获取后端接口客户端"""
    return request.app.state.client
