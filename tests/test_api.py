"""
测试看板 REST API

使用假的拉取函数和手动定时器，覆盖：
- 手动刷新、汇总、筛选、筛选框选项、图表
- 自动刷新开关与间隔校验
- 拉取失败时保留数据并返回 degraded
- PLC 数据接口
"""

import httpx
import pytest
from fastapi.testclient import TestClient

from machine_dashboard.api.app import create_app
from machine_dashboard.collector import TelemetryClient
from machine_dashboard.config import AppConfig
from machine_dashboard.errors import IngestionFailure
from machine_dashboard.scheduler import RefreshScheduler

from conftest import FakeTimerFactory, fixed_clock, make_rows


class FakeBackend:
    """按设备过滤的假后端，可切换为失败模式"""

    def __init__(self):
        self.calls = []
        self.fail = False

    async def __call__(self, device_id: str):
        self.calls.append(device_id)
        if self.fail:
            raise IngestionFailure("Backend returned HTTP 503", device_id=device_id, status_code=503)
        rows = make_rows()
        if device_id != "all":
            rows = [r for r in rows if r["device_id"] == device_id]
        return {"success": True, "data": rows}


def _plc_handler(request: httpx.Request) -> httpx.Response:
    if request.url.path.endswith("plc-machine-data"):
        return httpx.Response(200, json={"data": [
            {"device_id": "PLC-1", "timestamp": "2026-01-20T08:00:00Z", "dm_words": {"DM0001": 7}},
        ]})
    return httpx.Response(404)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def timers():
    return FakeTimerFactory()


@pytest.fixture
def app(backend, timers):
    scheduler = RefreshScheduler(fetch=backend, timer_factory=timers, clock=fixed_clock)
    client = TelemetryClient(base_url="http://backend.local/", transport=httpx.MockTransport(_plc_handler))
    return create_app(config=AppConfig(), scheduler=scheduler, client=client)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


class TestRefresh:
    """手动刷新"""

    def test_refresh_now(self, client: TestClient, backend):
        resp = client.post("/api/refresh")
        assert resp.status_code == 200
        data = resp.json()
        assert data["outcome"] == "applied"
        assert data["device"] == "all"
        assert data["updated_at"] == "2026-01-20 10:00:00"
        assert data["error"] is None
        assert "all" in backend.calls

    def test_summary(self, client: TestClient):
        client.post("/api/refresh")

        resp = client.get("/api/summary")
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_production"] == 23
        assert data["avg_efficiency"] == pytest.approx(80.0)
        assert data["total_errors"] == 3
        assert data["status_summary"] == {
            "total": 3, "running": 1, "idle": 1, "stopped": 1, "maintenance": 0
        }
        assert data["designs"] == ["X1", "X2"]

    def test_failure_keeps_data(self, client: TestClient, backend):
        """测试：拉取失败时保留之前的数据"""
        client.post("/api/refresh")
        backend.fail = True

        resp = client.post("/api/refresh")
        data = resp.json()
        assert data["outcome"] == "failed"
        assert data["error"] == "Backend returned HTTP 503"

        machines = client.get("/api/machines").json()
        assert machines["total"] == 3

        health = client.get("/api/health").json()
        assert health["status"] == "degraded"
        assert health["last_error"] == "Backend returned HTTP 503"
        assert health["records"] == 3


class TestMachines:
    """记录与筛选"""

    def test_list_machines(self, client: TestClient):
        client.post("/api/refresh")

        resp = client.get("/api/machines")
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 3
        assert data["visible"] == 3
        assert data["filters"] == {"device": "all", "shift": "all", "design": "all", "status": "all"}
        assert [r["device_id"] for r in data["records"]] == ["D1", "D1", "D2"]
        assert data["records"][2]["status"] == "stopped"

    def test_filter_by_shift_and_status(self, client: TestClient, backend):
        client.post("/api/refresh")
        calls_before = len(backend.calls)

        resp = client.put("/api/filters", json={"shift": "A", "status": "running"})
        assert resp.status_code == 200
        data = resp.json()
        assert data["visible"] == 1
        assert data["records"][0]["device_id"] == "D1"
        # 本地筛选不重新拉取
        assert len(backend.calls) == calls_before

    def test_invalid_status_filter(self, client: TestClient):
        """测试：状态只能取固定选项，原始大小写文本返回 422"""
        client.post("/api/refresh")

        for value in ("Running", "bogus", "unknown"):
            resp = client.put("/api/filters", json={"status": value})
            assert resp.status_code == 422

        assert client.get("/api/filters").json()["status"] == "all"

    def test_facets_ignore_filters(self, client: TestClient):
        """测试：筛选框选项不受筛选条件影响"""
        client.post("/api/refresh")
        before = client.get("/api/facets").json()

        client.put("/api/filters", json={"status": "idle"})
        after = client.get("/api/facets").json()

        assert before == after
        assert after["shifts"] == ["A", "B"]
        assert after["statuses"] == ["all", "running", "idle", "stopped", "maintenance"]

    def test_device_filter_refetches(self, client: TestClient, backend):
        """测试：切换设备会按设备重新拉取"""
        client.post("/api/refresh")

        resp = client.put("/api/filters", json={"device": "D2"})
        data = resp.json()
        assert backend.calls[-1] == "D2"
        assert data["filters"]["device"] == "D2"
        assert data["total"] == 1
        assert data["records"][0]["device_id"] == "D2"

        assert client.get("/api/filters").json()["device"] == "D2"

    def test_chart(self, client: TestClient):
        client.post("/api/refresh")
        client.put("/api/filters", json={"design": "X1"})

        points = client.get("/api/chart").json()
        assert [p["count"] for p in points] == [10, 8]
        assert points[0]["errors"] == 1


class TestAutoRefresh:
    """自动刷新设置"""

    def test_default_state(self, client: TestClient):
        data = client.get("/api/auto-refresh").json()
        assert data["enabled"] is False
        assert data["interval"] == 30
        assert data["allowed_intervals"] == [3, 10, 30, 60, 300]

    def test_enable_with_interval(self, client: TestClient, timers):
        resp = client.put("/api/auto-refresh", json={"enabled": True, "interval": 10})
        assert resp.status_code == 200
        assert resp.json() == {"enabled": True, "interval": 10, "allowed_intervals": [3, 10, 30, 60, 300]}
        assert len(timers.active) == 1
        assert timers.active[0].interval == 10

        resp = client.put("/api/auto-refresh", json={"enabled": False})
        assert resp.json()["enabled"] is False
        assert timers.active == []

    def test_change_interval_while_running(self, client: TestClient, timers):
        client.put("/api/auto-refresh", json={"enabled": True})

        client.put("/api/auto-refresh", json={"interval": 60})

        assert len(timers.active) == 1
        assert timers.active[0].interval == 60

    def test_invalid_interval(self, client: TestClient, timers):
        resp = client.put("/api/auto-refresh", json={"enabled": True, "interval": 7})
        assert resp.status_code == 400
        assert timers.timers == []


class TestPlc:
    """PLC 数据"""

    def test_list_plc_rows(self, client: TestClient):
        resp = client.get("/api/plc")
        assert resp.status_code == 200
        rows = resp.json()
        assert len(rows) == 1
        assert rows[0]["device_id"] == "PLC-1"
        assert rows[0]["dm_words"]["DM0001"] == 7
        assert rows[0]["dm_words"]["DM0000"] is None

    def test_plc_failure(self, backend, timers):
        scheduler = RefreshScheduler(fetch=backend, timer_factory=timers, clock=fixed_clock)
        failing = TelemetryClient(
            base_url="http://backend.local/",
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        )
        app = create_app(config=AppConfig(), scheduler=scheduler, client=failing)

        with TestClient(app) as test_client:
            resp = test_client.get("/api/plc")

        assert resp.status_code == 502


class TestStartup:

    def test_auto_refresh_on_startup(self, backend, timers):
        """测试：配置开启自动刷新时启动即开始调度"""
        config = AppConfig(refresh={"auto_refresh": True, "interval": 3})
        scheduler = RefreshScheduler(fetch=backend, timer_factory=timers, clock=fixed_clock)
        app = create_app(config=config, scheduler=scheduler)

        with TestClient(app) as test_client:
            state = test_client.get("/api/auto-refresh").json()
            assert state["enabled"] is True
            assert state["interval"] == 3

        # 关闭应用时停止调度
        assert scheduler.running is False
        assert timers.active == []
