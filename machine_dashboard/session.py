"""
看板会话状态

一个会话对应一个看板实例：当前记录快照、汇总、筛选条件、最近错误。
快照整体替换，不做局部修改。
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Tuple

from .aggregator import chart_points
from .filters import apply_filters, facet_options
from .models import ALL, ChartPoint, FacetOptions, FilterSpec, MachineRecord, SummaryStats


@dataclass(frozen=True)
class DashboardSnapshot:
    """一次成功拉取的结果"""
    records: Tuple[MachineRecord, ...] = ()
    summary: SummaryStats = field(default_factory=SummaryStats)
    device: str = ALL
    updated_at: Optional[datetime] = None


class DashboardSession:
    """看板会话（由 RefreshScheduler 持有并更新）"""

    def __init__(self, filters: Optional[FilterSpec] = None):
        self.filters = filters or FilterSpec()
        self.snapshot = DashboardSnapshot(device=self.filters.device)
        self.last_error: Optional[str] = None
        self.in_flight = 0

    @property
    def loading(self) -> bool:
        """是否有拉取请求进行中"""
        return self.in_flight > 0

    @property
    def records(self) -> Tuple[MachineRecord, ...]:
        return self.snapshot.records

    @property
    def summary(self) -> SummaryStats:
        return self.snapshot.summary

    def apply(self, snapshot: DashboardSnapshot):
        """整体替换快照，并清除上一次错误"""
        self.snapshot = snapshot
        self.last_error = None

    def visible_records(self) -> Tuple[MachineRecord, ...]:
        """按当前筛选条件过滤后的记录"""
        return apply_filters(self.snapshot.records, self.filters)

    def facets(self) -> FacetOptions:
        return facet_options(self.snapshot.records)

    def chart(self) -> List[ChartPoint]:
        return chart_points(self.visible_records())
