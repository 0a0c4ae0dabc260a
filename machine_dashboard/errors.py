"""
错误类型定义

- IngestionFailure: 拉取失败（网络错误、非 2xx、响应信封格式不对）
- InvalidRefreshInterval: 自动刷新间隔不在允许列表中

单条记录格式错误不抛异常，由 normalizer 用默认值兜底。
"""

from typing import Optional


class IngestionFailure(Exception):
    """拉取机台数据失败（可恢复，不清空当前显示数据）"""

    def __init__(self, message: str, device_id: str = "all", status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.device_id = device_id
        self.status_code = status_code


class InvalidRefreshInterval(ValueError):
    """自动刷新间隔不合法"""
