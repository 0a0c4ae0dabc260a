"""
刷新控制 API

手动刷新、自动刷新开关与间隔、健康检查。
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...config import ALLOWED_REFRESH_INTERVALS, validate_refresh_interval
from ...errors import InvalidRefreshInterval
from ...models import (
    AutoRefreshState, AutoRefreshUpdate, HealthResponse,
    IngestionOutcome, RefreshResponse
)
from ...normalizer import format_timestamp
from ...scheduler import RefreshScheduler
from ..dependencies import get_scheduler

router = APIRouter(prefix="/api", tags=["refresh"])


def _updated_at(scheduler: RefreshScheduler) -> Optional[str]:
    updated_at = scheduler.session.snapshot.updated_at
    return format_timestamp(updated_at) if updated_at else None


def _auto_refresh_state(scheduler: RefreshScheduler) -> AutoRefreshState:
    return AutoRefreshState(
        enabled=scheduler.running,
        interval=int(scheduler.interval),
        allowed_intervals=list(ALLOWED_REFRESH_INTERVALS),
    )


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_now(
    device: Optional[str] = Query(None, description="设备 ID 或 all，默认使用当前选择"),
    scheduler: RefreshScheduler = Depends(get_scheduler)
):
    """
    立即刷新

    拉取失败时返回 failed，当前数据保持不变。
    """
    outcome = await scheduler.refresh_now(device)
    return RefreshResponse(
        outcome=outcome,
        device=scheduler.session.filters.device,
        updated_at=_updated_at(scheduler),
        error=scheduler.session.last_error if outcome == IngestionOutcome.FAILED else None,
    )


@router.get("/auto-refresh", response_model=AutoRefreshState)
async def get_auto_refresh(scheduler: RefreshScheduler = Depends(get_scheduler)):
    return _auto_refresh_state(scheduler)


@router.put("/auto-refresh", response_model=AutoRefreshState)
async def update_auto_refresh(data: AutoRefreshUpdate, scheduler: RefreshScheduler = Depends(get_scheduler)):
    """
    修改自动刷新设置

    间隔只允许 3 / 10 / 30 / 60 / 300 秒。
    """
    if data.interval is not None:
        try:
            interval = validate_refresh_interval(data.interval)
        except InvalidRefreshInterval as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
        scheduler.set_interval(interval)

    if data.enabled is True and not scheduler.running:
        scheduler.start()
    elif data.enabled is False:
        scheduler.stop()

    return _auto_refresh_state(scheduler)


@router.get("/health", response_model=HealthResponse)
async def get_health(scheduler: RefreshScheduler = Depends(get_scheduler)):
    """健康检查：最近一次拉取失败时为 degraded"""
    session = scheduler.session
    return HealthResponse(
        status="degraded" if session.last_error else "ok",
        auto_refresh=scheduler.running,
        loading=session.loading,
        records=len(session.records),
        updated_at=_updated_at(scheduler),
        last_error=session.last_error,
    )
