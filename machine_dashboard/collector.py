"""
后端数据拉取

通过 httpx 调用后端接口：
- machine-data: 机台遥测数据（可按 device_id 过滤）
- plc-machine-data: PLC 寄存器数据

所有网络/HTTP/JSON 错误统一转换为 IngestionFailure。
"""

import logging
from collections.abc import Mapping
from typing import Any, Dict, List, Optional

import httpx

from .config import BackendConfig
from .errors import IngestionFailure
from .models import ALL, PlcRow, TelemetryEnvelope
from .plc import normalize_plc_payload

logger = logging.getLogger(__name__)


class TelemetryClient:
    """后端接口客户端"""

    def __init__(
        self,
        base_url: str,
        machine_path: str = "machine/machine-data",
        plc_path: str = "api/dashboard/plc-machine-data",
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: 后端根地址
            machine_path: 机台数据接口路径
            plc_path: PLC 数据接口路径
            token: Bearer Token（可选）
            timeout: 超时时间（秒）
            transport: 自定义传输层（测试用）
        """
        self.base_url = base_url.rstrip("/") + "/"
        self.machine_path = machine_path.lstrip("/")
        self.plc_path = plc_path.lstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_config(cls, config: BackendConfig) -> "TelemetryClient":
        return cls(
            base_url=config.base_url,
            machine_path=config.machine_path,
            plc_path=config.plc_path,
            token=config.token,
            timeout=config.timeout,
        )

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _get_json(self, path: str, params: Optional[Dict[str, str]], device_id: str) -> Any:
        url = self.base_url + path
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url, params=params, headers=self._headers())
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            code = e.response.status_code
            raise IngestionFailure(f"Backend returned HTTP {code}", device_id=device_id, status_code=code) from e
        except httpx.HTTPError as e:
            raise IngestionFailure(f"Request to {url} failed: {e!r}", device_id=device_id) from e
        except ValueError as e:
            raise IngestionFailure("Backend returned invalid JSON", device_id=device_id) from e

    async def fetch_telemetry(self, device_id: str = ALL) -> TelemetryEnvelope:
        """
        拉取机台数据

        Args:
            device_id: "all" 或单个设备 ID（由后端过滤）

        Returns:
            响应信封（success / data 由调度器校验）

        Raises:
            IngestionFailure: 网络错误、非 2xx、响应不是 JSON 对象
        """
        params = None if device_id == ALL else {"device_id": device_id}
        payload = await self._get_json(self.machine_path, params, device_id)
        if not isinstance(payload, Mapping):
            raise IngestionFailure("Unexpected response from Machine API", device_id=device_id)
        return TelemetryEnvelope.from_payload(payload)

    async def __call__(self, device_id: str = ALL) -> TelemetryEnvelope:
        return await self.fetch_telemetry(device_id)

    async def fetch_plc_rows(self) -> List[PlcRow]:
        """
        拉取 PLC 寄存器数据

        Raises:
            IngestionFailure: 网络错误或非 2xx
        """
        payload = await self._get_json(self.plc_path, None, ALL)
        rows = normalize_plc_payload(payload)
        logger.debug(f"Fetched {len(rows)} PLC rows")
        return rows
