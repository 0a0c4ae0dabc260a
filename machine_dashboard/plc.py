"""
PLC 寄存器数据

plc-machine-data 接口返回格式不固定：数组、{"data": [...]} 或单个对象。
每行保留 device_id、timestamp 以及 dm_words 中的 DM0000 ~ DM0009。
"""

from collections.abc import Mapping
from typing import Any, List

from .models import PlcRow

DM_WORDS = tuple(f"DM{i:04d}" for i in range(10))


def unwrap_plc_payload(payload: Any) -> List[Any]:
    """取出原始行列表，无法识别时返回空列表"""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping):
        data = payload.get("data")
        if isinstance(data, list):
            return data
        return [payload]
    return []


def _optional_text(value: Any):
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (str, int, float)):
        return str(value)
    return None


def normalize_plc_row(raw: Any) -> PlcRow:
    """规范化单行，缺失的寄存器值为 None"""
    if not isinstance(raw, Mapping):
        raw = {}
    dm = raw.get("dm_words")
    if not isinstance(dm, Mapping):
        dm = {}
    return PlcRow(
        device_id=_optional_text(raw.get("device_id")),
        timestamp=_optional_text(raw.get("timestamp")),
        dm_words={word: dm.get(word) for word in DM_WORDS},
    )


def normalize_plc_payload(payload: Any) -> List[PlcRow]:
    return [normalize_plc_row(row) for row in unwrap_plc_payload(payload)]
