"""
机台数据 API

提供筛选后的记录、汇总统计、筛选框选项、图表数据。
"""

from typing import List

from fastapi import APIRouter, Depends

from ...models import (
    ChartPoint, FacetOptions, FilterSpec, FilterUpdate,
    MachinesResponse, SummaryStats
)
from ...normalizer import format_timestamp
from ...scheduler import RefreshScheduler
from ..dependencies import get_scheduler

router = APIRouter(prefix="/api", tags=["machines"])


def build_machines_response(scheduler: RefreshScheduler) -> MachinesResponse:
    session = scheduler.session
    visible = session.visible_records()
    updated_at = session.snapshot.updated_at
    return MachinesResponse(
        filters=session.filters,
        total=len(session.records),
        visible=len(visible),
        updated_at=format_timestamp(updated_at) if updated_at else None,
        records=list(visible),
    )


@router.get("/machines", response_model=MachinesResponse)
async def list_machines(scheduler: RefreshScheduler = Depends(get_scheduler)):
    """
    获取筛选后的机台记录

    按当前会话的筛选条件过滤，保持后端返回顺序。
    """
    return build_machines_response(scheduler)


@router.get("/summary", response_model=SummaryStats)
async def get_summary(scheduler: RefreshScheduler = Depends(get_scheduler)):
    """顶部统计卡片（基于未筛选的全部记录）"""
    return scheduler.session.summary


@router.get("/facets", response_model=FacetOptions)
async def get_facets(scheduler: RefreshScheduler = Depends(get_scheduler)):
    """筛选框选项"""
    return scheduler.session.facets()


@router.get("/chart", response_model=List[ChartPoint])
async def get_chart(scheduler: RefreshScheduler = Depends(get_scheduler)):
    """筛选后记录的图表数据"""
    return scheduler.session.chart()


@router.get("/filters", response_model=FilterSpec)
async def get_filters(scheduler: RefreshScheduler = Depends(get_scheduler)):
    return scheduler.session.filters


@router.put("/filters", response_model=MachinesResponse)
async def update_filters(data: FilterUpdate, scheduler: RefreshScheduler = Depends(get_scheduler)):
    """
    更新筛选条件

    切换设备时会按新设备重新拉取，等拉取完成后再返回。
    """
    task = scheduler.update_filters(
        device=data.device,
        shift=data.shift,
        design=data.design,
        status=data.status,
    )
    if task is not None:
        await task
    return build_machines_response(scheduler)
