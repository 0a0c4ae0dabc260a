"""
记录规范化

把后端返回的原始行（字段可能缺失、类型不对）转换为 MachineRecord。
任何字段异常都用默认值兜底，不抛异常；对已规范化的记录再次规范化结果不变。
"""

import math
from datetime import datetime
from collections.abc import Mapping
from typing import Any, Callable, Iterable, Optional, Tuple

from .models import STATUS_TAGS, MachineRecord, Number

Clock = Callable[[], datetime]


def _first_text(raw: Mapping[str, Any], keys: Tuple[str, ...], default: str) -> str:
    """按顺序取第一个非空的文本字段"""
    for key in keys:
        text = _text_or_default(raw.get(key), "")
        if text:
            return text
    return default


def _text_or_default(value: Any, default: str) -> str:
    """非空文本，否则返回默认值"""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, float) and not math.isfinite(value):
        return default
    if isinstance(value, (int, float)):
        try:
            value = str(value)
        except ValueError:
            # 超长整数
            return default
    if not isinstance(value, str):
        return default
    value = value.strip()
    return value or default


def coerce_number(value: Any, default: Number = 0) -> Number:
    """
    数值或默认值

    支持 int / float / 数字字符串；布尔值、NaN、无穷大及其它类型返回默认值。
    整数值统一返回 int。
    """
    if isinstance(value, bool):
        return default
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return default
    if not isinstance(value, (int, float)):
        return default
    if isinstance(value, int):
        try:
            float(value)
        except OverflowError:
            return default
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            return default
        if value.is_integer():
            return int(value)
    return value


def _counter(value: Any) -> Number:
    """非负计数"""
    number = coerce_number(value)
    return number if number >= 0 else 0


def normalize_status(value: Any) -> str:
    """状态统一为小写标签，未知值归为 unknown"""
    if not isinstance(value, str):
        return "unknown"
    tag = value.strip().lower()
    return tag if tag in STATUS_TAGS else "unknown"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    解析时间戳

    支持 ISO 8601 字符串（含 Z 后缀）、本模块输出的显示格式、
    以及毫秒级 Unix 时间戳。无法解析时返回 None。
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000.0)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    return None


def format_timestamp(ts: datetime) -> str:
    """带时区的时间转换为本地时间后格式化（精确到秒）"""
    if ts.tzinfo is not None:
        try:
            ts = ts.astimezone()
        except (OverflowError, OSError, ValueError):
            pass
        ts = ts.replace(tzinfo=None)
    # isoformat 保证年份补齐 4 位，strftime 在部分平台不会
    return ts.replace(microsecond=0).isoformat(sep=" ")


def normalize(raw: Any, clock: Clock = datetime.now) -> MachineRecord:
    """
    规范化单条原始记录

    Args:
        raw: 后端返回的原始行（dict）、已规范化的 MachineRecord，或任意值
        clock: 时间戳缺失/无法解析时使用的时钟

    Returns:
        MachineRecord
    """
    if isinstance(raw, MachineRecord):
        raw = raw.model_dump()
    if not isinstance(raw, Mapping):
        raw = {}

    ts = parse_timestamp(raw.get("timestamp"))
    if ts is None:
        ts = clock()

    return MachineRecord(
        device_id=_first_text(raw, ("device_id", "deviceId"), "Unknown"),
        timestamp=format_timestamp(ts),
        shift=_text_or_default(raw.get("shift"), "-"),
        design=_text_or_default(raw.get("design"), "-"),
        count=_counter(raw.get("count")),
        efficiency=coerce_number(raw.get("efficiency")),
        error1=_counter(raw.get("error1")),
        error2=_counter(raw.get("error2")),
        status=normalize_status(raw.get("status")),
    )


def normalize_all(rows: Iterable[Any], clock: Clock = datetime.now) -> Tuple[MachineRecord, ...]:
    """规范化一批原始记录，返回不可变快照"""
    now = clock()
    return tuple(normalize(row, clock=lambda: now) for row in rows)
