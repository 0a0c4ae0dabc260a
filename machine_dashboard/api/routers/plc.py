"""
PLC 数据 API
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status

from ...collector import TelemetryClient
from ...errors import IngestionFailure
from ...models import PlcRow
from ..dependencies import get_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["plc"])


@router.get("/plc", response_model=List[PlcRow])
async def list_plc_rows(client: TelemetryClient = Depends(get_client)):
    """
    获取 PLC 寄存器数据

    每次请求直接拉取后端，不经过刷新调度器。
    """
    try:
        return await client.fetch_plc_rows()
    except IngestionFailure as e:
        logger.warning(f"Failed to fetch PLC machine data: {e.message}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=e.message or "Failed to fetch PLC machine data"
        )
