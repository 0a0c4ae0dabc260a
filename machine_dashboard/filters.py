"""
多维筛选

device / shift / design / status 四个维度按 AND 组合，各维度相互独立。
筛选框的选项始终来自未筛选的数据集。
"""

from typing import Iterable, List, Sequence, Tuple

from .models import ALL, FacetOptions, FilterSpec, MachineRecord

# 筛选维度 -> MachineRecord 字段
FACET_FIELDS = {
    "device": "device_id",
    "shift": "shift",
    "design": "design",
    "status": "status",
}


def matches(record: MachineRecord, spec: FilterSpec) -> bool:
    """记录是否满足所有非 "all" 的维度"""
    for facet, field in FACET_FIELDS.items():
        wanted = getattr(spec, facet)
        if wanted != ALL and getattr(record, field) != wanted:
            return False
    return True


def apply_filters(records: Iterable[MachineRecord], spec: FilterSpec) -> Tuple[MachineRecord, ...]:
    """稳定筛选，保持原始顺序"""
    return tuple(r for r in records if matches(r, spec))


def distinct_values(records: Iterable[MachineRecord], field: str) -> List[str]:
    """字段的去重取值，按首次出现顺序"""
    seen = {}
    for record in records:
        seen.setdefault(getattr(record, field), None)
    return list(seen)


def facet_options(records: Sequence[MachineRecord]) -> FacetOptions:
    """生成筛选框选项"""
    return FacetOptions(
        devices=distinct_values(records, "device_id"),
        shifts=distinct_values(records, "shift"),
        designs=distinct_values(records, "design"),
    )
