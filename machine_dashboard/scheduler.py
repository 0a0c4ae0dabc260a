"""
自动刷新调度器

状态机：
- stopped: 不自动拉取
- scheduled: 每 interval 秒拉取一次

约束：
- 每个调度器同一时刻最多一个定时器
- 拉取结果按完成顺序应用；若发出请求后切换了设备或调用了 stop()，
  结果到达时直接丢弃（以最后一次选择为准）
- 拉取失败不改变调度状态，也不清空当前显示数据
"""

import asyncio
import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Awaitable, Callable, List, Optional, Set, Union

from .aggregator import aggregate
from .errors import IngestionFailure
from .models import ALL, IngestionOutcome, TelemetryEnvelope
from .normalizer import normalize_all
from .session import DashboardSession, DashboardSnapshot

logger = logging.getLogger(__name__)

STOPPED = "stopped"
SCHEDULED = "scheduled"

FetchTelemetry = Callable[[str], Awaitable[Union[TelemetryEnvelope, Mapping]]]
TimerCallback = Callable[[], None]


class IntervalTimer:
    """基于 asyncio 的周期定时器（首次触发在 interval 秒之后）"""

    def __init__(self, interval: float, callback: TimerCallback):
        self.interval = interval
        self._callback = callback
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval)
            try:
                self._callback()
            except Exception as e:
                logger.error(f"Timer callback error: {e}", exc_info=True)

    def cancel(self):
        self._task.cancel()

    @property
    def active(self) -> bool:
        return not self._task.done()


TimerFactory = Callable[[float, TimerCallback], Any]


def extract_rows(envelope: Union[TelemetryEnvelope, Mapping], device: str = ALL) -> List[Any]:
    """
    校验响应信封并取出原始行

    Raises:
        IngestionFailure: success 为 false 或 data 不是数组
    """
    if isinstance(envelope, Mapping):
        envelope = TelemetryEnvelope.from_payload(envelope)
    if not isinstance(envelope, TelemetryEnvelope):
        raise IngestionFailure("Unexpected response from Machine API", device_id=device)
    if not envelope.success or not isinstance(envelope.data, list):
        raise IngestionFailure(envelope.message or "Unexpected response from Machine API", device_id=device)
    return envelope.data


def _check_interval(seconds: float) -> float:
    if isinstance(seconds, bool) or not isinstance(seconds, (int, float)) or seconds <= 0:
        raise ValueError(f"Refresh interval must be a positive number, got {seconds!r}")
    return seconds


class RefreshScheduler:
    """
    看板刷新调度器

    持有一个 DashboardSession，负责手动刷新、定时刷新以及过期结果丢弃。
    定时器和时钟可注入，方便测试时手动触发。
    """

    def __init__(
        self,
        fetch: FetchTelemetry,
        session: Optional[DashboardSession] = None,
        interval: float = 30,
        timer_factory: TimerFactory = IntervalTimer,
        clock: Callable[[], datetime] = datetime.now,
        on_failure: Optional[Callable[[IngestionFailure], None]] = None,
    ):
        self.session = session or DashboardSession()
        self._fetch = fetch
        self._interval = _check_interval(interval)
        self._timer_factory = timer_factory
        self._clock = clock
        self._on_failure = on_failure

        self._state = STOPPED
        self._timer = None
        # stop() 或切换设备时递增，旧请求的结果据此丢弃
        self._epoch = 0
        self._tasks: Set[asyncio.Task] = set()

    # =========================================================================
    # 状态查询
    # =========================================================================

    @property
    def state(self) -> str:
        return self._state

    @property
    def running(self) -> bool:
        return self._state == SCHEDULED

    @property
    def interval(self) -> float:
        return self._interval

    # =========================================================================
    # 生命周期
    # =========================================================================

    def start(self, interval: Optional[float] = None):
        """
        开启自动刷新

        立即拉取一次，然后按 interval 周期拉取。重复调用会先取消旧定时器。
        """
        if interval is not None:
            self._interval = _check_interval(interval)

        self._cancel_timer()
        self._state = SCHEDULED
        logger.info(f"Auto refresh started (interval={self._interval}s)")

        self._spawn()
        self._arm()

    def stop(self):
        """停止自动刷新（已停止时无操作），之前发出的请求结果将被丢弃"""
        if self._state == STOPPED:
            return
        self._cancel_timer()
        self._state = STOPPED
        self._epoch += 1
        logger.info("Auto refresh stopped")

    def set_interval(self, seconds: float):
        """修改刷新间隔：运行中只重新计时，不额外拉取"""
        self._interval = _check_interval(seconds)
        if self._state == SCHEDULED:
            self._cancel_timer()
            self._arm()
            logger.info(f"Auto refresh interval changed to {self._interval}s")

    def refresh_now(self, device: Optional[str] = None) -> asyncio.Task:
        """
        立即拉取一次，不改变调度状态

        Args:
            device: 指定设备；与当前选择不同时视为切换设备
        """
        if device is not None and device != self.session.filters.device:
            return self.select_device(device)
        return self._spawn()

    def select_device(self, device: str) -> asyncio.Task:
        """切换设备筛选：作废进行中的请求并立即按新设备拉取"""
        self.session.filters = self.session.filters.replace(device=device)
        self._epoch += 1
        logger.info(f"Device selection changed to {device}")
        return self._spawn()

    def update_filters(
        self,
        device: Optional[str] = None,
        shift: Optional[str] = None,
        design: Optional[str] = None,
        status: Optional[str] = None,
    ) -> Optional[asyncio.Task]:
        """
        更新筛选条件

        shift / design / status 只影响本地过滤；device 变化时会触发重新拉取。

        Returns:
            device 变化时返回拉取任务，否则 None
        """
        self.session.filters = self.session.filters.replace(shift=shift, design=design, status=status)
        if device is not None and device != self.session.filters.device:
            return self.select_device(device)
        return None

    async def drain(self):
        """等待所有进行中的拉取完成"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self):
        """停止调度并等待进行中的请求结束"""
        self.stop()
        await self.drain()

    # =========================================================================
    # 内部实现
    # =========================================================================

    def _arm(self):
        self._timer = self._timer_factory(self._interval, self._on_tick)

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_tick(self):
        if self._state == SCHEDULED:
            self._spawn()

    def _spawn(self) -> asyncio.Task:
        device = self.session.filters.device
        task = asyncio.get_running_loop().create_task(self.ingest(device, self._epoch))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _is_current(self, device: str, epoch: int) -> bool:
        return epoch == self._epoch and device == self.session.filters.device

    async def ingest(self, device: str, epoch: int) -> IngestionOutcome:
        """
        执行一次拉取 -> 规范化 -> 汇总

        Args:
            device: 设备 ID 或 "all"
            epoch: 发出请求时的选择版本号
        """
        self.session.in_flight += 1
        try:
            try:
                envelope = await self._fetch(device)
                rows = extract_rows(envelope, device)
            except Exception as e:
                if isinstance(e, IngestionFailure):
                    failure = e
                else:
                    failure = IngestionFailure(str(e) or type(e).__name__, device_id=device)
                if not self._is_current(device, epoch):
                    logger.debug(f"Discarded failed result for superseded selection {device}")
                    return IngestionOutcome.DISCARDED
                self._report_failure(failure)
                return IngestionOutcome.FAILED

            if not self._is_current(device, epoch):
                logger.debug(f"Discarded stale result for device {device}")
                return IngestionOutcome.DISCARDED

            records = normalize_all(rows, clock=self._clock)
            self.session.apply(DashboardSnapshot(
                records=records,
                summary=aggregate(records),
                device=device,
                updated_at=self._clock(),
            ))
            logger.debug(f"Applied {len(records)} records for device {device}")
            return IngestionOutcome.APPLIED
        finally:
            self.session.in_flight -= 1

    def _report_failure(self, failure: IngestionFailure):
        self.session.last_error = failure.message
        logger.warning(f"Failed to fetch machine data (device={failure.device_id}): {failure.message}")
        if self._on_failure is not None:
            try:
                self._on_failure(failure)
            except Exception as e:
                logger.error(f"Failure callback error: {e}", exc_info=True)
