"""
汇总统计

从当前记录快照一次遍历计算顶部卡片数据，以及图表数据序列。
"""

from typing import Dict, List, Sequence

from .models import COUNTED_STATUSES, ChartPoint, MachineRecord, StatusSummary, SummaryStats


def aggregate(records: Sequence[MachineRecord]) -> SummaryStats:
    """
    计算汇总指标

    Args:
        records: 规范化后的记录快照

    Returns:
        SummaryStats，空输入时全部为 0
    """
    total_production = 0
    efficiency_sum = 0.0
    error1_count = 0
    error2_count = 0
    status_counts: Dict[str, int] = {status: 0 for status in COUNTED_STATUSES}
    designs: Dict[str, None] = {}  # 保持首次出现顺序
    n = 0

    for record in records:
        n += 1
        total_production += record.count
        efficiency_sum += record.efficiency
        error1_count += record.error1
        error2_count += record.error2
        if record.status in status_counts:
            status_counts[record.status] += 1
        designs.setdefault(record.design, None)

    return SummaryStats(
        total_production=total_production,
        avg_efficiency=efficiency_sum / n if n else 0.0,
        total_errors=error1_count + error2_count,
        error1_count=error1_count,
        error2_count=error2_count,
        status_summary=StatusSummary(total=n, **status_counts),
        designs=list(designs),
    )


def chart_points(records: Sequence[MachineRecord]) -> List[ChartPoint]:
    """图表数据：每条记录一个点，errors = error1 + error2"""
    return [
        ChartPoint(
            time=r.timestamp,
            count=r.count,
            efficiency=r.efficiency,
            errors=r.error1 + r.error2,
        )
        for r in records
    ]
