"""
数据模型定义

包括：
- 规范化后的机台记录、汇总统计、筛选条件
- 后端响应信封
- API 请求/响应模型
"""

from enum import Enum
from typing import Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# 筛选维度的“全部”哨兵值
ALL = "all"

StatusTag = Literal["running", "idle", "stopped", "maintenance", "unknown"]

# 汇总卡片中单独计数的状态（unknown 只计入 total）
COUNTED_STATUSES = ("running", "idle", "stopped", "maintenance")
STATUS_TAGS = COUNTED_STATUSES + ("unknown",)

# 状态筛选框的固定选项
STATUS_FACET_OPTIONS = (ALL,) + COUNTED_STATUSES
StatusFilter = Literal["all", "running", "idle", "stopped", "maintenance"]

Number = Union[int, float]


# =============================================================================
# 核心数据模型
# =============================================================================

class MachineRecord(BaseModel):
    """规范化后的单条机台读数（不可变）"""
    model_config = ConfigDict(frozen=True)

    device_id: str = "Unknown"
    timestamp: str
    shift: str = "-"
    design: str = "-"
    count: Number = 0
    efficiency: Number = 0
    error1: Number = 0
    error2: Number = 0
    status: StatusTag = "unknown"


class StatusSummary(BaseModel):
    """按状态分组的机台数量"""
    total: int = 0
    running: int = 0
    idle: int = 0
    stopped: int = 0
    maintenance: int = 0


class SummaryStats(BaseModel):
    """顶部统计卡片数据（每次全量重算）"""
    model_config = ConfigDict(frozen=True)

    total_production: Number = 0
    avg_efficiency: float = 0.0
    total_errors: Number = 0
    error1_count: Number = 0
    error2_count: Number = 0
    status_summary: StatusSummary = Field(default_factory=StatusSummary)
    designs: List[str] = Field(default_factory=list)


class FilterSpec(BaseModel):
    """四个相互独立的筛选维度，取值为具体值或 "all" """
    model_config = ConfigDict(frozen=True)

    device: str = ALL
    shift: str = ALL
    design: str = ALL
    status: StatusFilter = ALL

    def replace(self, **changes: Optional[str]) -> "FilterSpec":
        """返回修改了部分维度的新筛选条件（None 表示不修改）"""
        updates = {k: v for k, v in changes.items() if v is not None}
        return FilterSpec(**{**self.model_dump(), **updates})


class ChartPoint(BaseModel):
    """图表数据点"""
    time: str
    count: Number
    efficiency: Number
    errors: Number


class FacetOptions(BaseModel):
    """筛选框选项（来自未筛选的数据集）"""
    devices: List[str] = Field(default_factory=list)
    shifts: List[str] = Field(default_factory=list)
    designs: List[str] = Field(default_factory=list)
    statuses: List[str] = Field(default_factory=lambda: list(STATUS_FACET_OPTIONS))


class PlcRow(BaseModel):
    """PLC 寄存器数据行（DM0000 ~ DM0009）"""
    device_id: Optional[str] = None
    timestamp: Optional[str] = None
    dm_words: Dict[str, Any] = Field(default_factory=dict)


class TelemetryEnvelope(BaseModel):
    """后端 machine-data 接口的响应信封"""
    success: bool = False
    data: Any = None
    message: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "TelemetryEnvelope":
        """从原始 JSON 构造（success 必须严格为 true）"""
        message = payload.get("message")
        return cls(
            success=payload.get("success") is True,
            data=payload.get("data"),
            message=message if isinstance(message, str) else None,
        )


class IngestionOutcome(str, Enum):
    """一次拉取的处理结果"""
    APPLIED = "applied"
    DISCARDED = "discarded"
    FAILED = "failed"


# =============================================================================
# API 请求/响应模型
# =============================================================================

class MachinesResponse(BaseModel):
    """GET /api/machines 响应"""
    filters: FilterSpec
    total: int
    visible: int
    updated_at: Optional[str] = None
    records: List[MachineRecord] = Field(default_factory=list)


class FilterUpdate(BaseModel):
    """PUT /api/filters 请求（未给出的维度保持不变）"""
    device: Optional[str] = None
    shift: Optional[str] = None
    design: Optional[str] = None
    status: Optional[StatusFilter] = None


class RefreshResponse(BaseModel):
    """POST /api/refresh 响应"""
    outcome: IngestionOutcome
    device: str
    updated_at: Optional[str] = None
    error: Optional[str] = None


class AutoRefreshState(BaseModel):
    """自动刷新状态"""
    enabled: bool
    interval: int
    allowed_intervals: List[int] = Field(default_factory=list)


class AutoRefreshUpdate(BaseModel):
    """PUT /api/auto-refresh 请求"""
    enabled: Optional[bool] = None
    interval: Optional[int] = None


class HealthResponse(BaseModel):
    """健康检查响应"""
    status: Literal["ok", "degraded"]
    auto_refresh: bool
    loading: bool
    records: int
    updated_at: Optional[str] = None
    last_error: Optional[str] = None
