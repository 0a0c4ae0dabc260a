"""
测试公共夹具

- FakeTimerFactory: 可手动触发的定时器
- ControlledFetch: 由测试决定何时返回结果的拉取函数
"""

import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

import pytest

# 添加项目路径到 sys.path
sys.path.insert(0, str(Path(__file__).parent.parent))


FIXED_NOW = datetime(2026, 1, 20, 10, 0, 0)


def fixed_clock() -> datetime:
    return FIXED_NOW


class FakeTimer:
    """手动触发的定时器"""

    def __init__(self, interval, callback):
        self.interval = interval
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    def fire(self):
        assert not self.cancelled, "cancelled timer fired"
        self.callback()


class FakeTimerFactory:
    """记录所有创建过的定时器"""

    def __init__(self):
        self.timers: List[FakeTimer] = []

    def __call__(self, interval, callback) -> FakeTimer:
        timer = FakeTimer(interval, callback)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> List[FakeTimer]:
        return [t for t in self.timers if not t.cancelled]


class ControlledFetch:
    """每次调用挂起，直到测试调用 resolve / fail"""

    def __init__(self):
        self.calls: List[str] = []
        self._futures: List[asyncio.Future] = []

    async def __call__(self, device_id: str):
        future = asyncio.get_running_loop().create_future()
        self.calls.append(device_id)
        self._futures.append(future)
        return await future

    async def wait_calls(self, n: int):
        """等待至少 n 次调用"""
        for _ in range(100):
            if len(self.calls) >= n:
                return
            await asyncio.sleep(0)
        raise AssertionError(f"expected {n} fetch calls, got {len(self.calls)}")

    def resolve(self, index: int, rows: List[Dict[str, Any]]):
        self._futures[index].set_result({"success": True, "data": rows})

    def respond(self, index: int, payload: Any):
        self._futures[index].set_result(payload)

    def fail(self, index: int, error: Exception):
        self._futures[index].set_exception(error)


def make_rows() -> List[Dict[str, Any]]:
    """后端原始数据样例"""
    return [
        {"device_id": "D1", "timestamp": "2026-01-20T08:00:00", "shift": "A", "design": "X1",
         "count": 10, "efficiency": 90, "error1": 1, "error2": 0, "status": "running"},
        {"device_id": "D1", "timestamp": "2026-01-20T09:00:00", "shift": "B", "design": "X2",
         "count": 5, "efficiency": 70, "error1": 0, "error2": 2, "status": "idle"},
        {"device_id": "D2", "timestamp": "2026-01-20T08:30:00", "shift": "A", "design": "X1",
         "count": 8, "efficiency": 80, "error1": 0, "error2": 0, "status": "STOPPED"},
    ]


@pytest.fixture
def raw_rows():
    return make_rows()


@pytest.fixture
def timer_factory():
    return FakeTimerFactory()
