"""
Hyper-V Mock Management Server — 獨立的假管理閘道。

讀取 fleet YAML（格式同 replica_drift.fetchers.mock.MockFleet），
以 ConfiguredManagementClient 預設的 endpoint 提供 JSON 回應：

    GET /api/hosts/{host}/replication
    GET /api/hosts/{host}/vms/{vm_name}
    GET /api/hosts/{host}/vms/{vm_name}/memory
    GET /api/hosts/{host}/vms/{vm_name}/processor
    GET /api/hosts/{host}/vms/{vm_name}/disks
    GET /api/hosts/{host}/vms/{vm_name}/controllers

故障模擬：
    - host.unreachable → 504（模擬 WinRM 連線超時）
    - vm.fail_on 含該查詢 → 500
    - 不存在的 VM → 404

啟動:
    uvicorn mock_server.main:app --host 0.0.0.0 --port 9999
"""
from __future__ import annotations

import asyncio
import logging
from functools import lru_cache
from typing import Any

from fastapi import Depends, FastAPI, HTTPException

from mock_server.config import settings
from replica_drift.fetchers.mock import MockFleet, MockHost, MockVM

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Hyper-V Mock Management Server",
    description="提供假的 Hyper-V replication / VM 設定資料，支援 host 不可達與查詢失敗模擬",
    version="1.0.0",
)


@lru_cache(maxsize=1)
def get_fleet() -> MockFleet:
    """Fleet loaded once from settings.mock_fleet_file."""
    return MockFleet.from_yaml(settings.mock_fleet_file)


async def _host_or_504(fleet: MockFleet, host: str, operation: str) -> MockHost:
    mock_host = fleet.get(host)
    delay = settings.mock_base_delay + (mock_host.delay if mock_host else 0.0)
    if delay:
        await asyncio.sleep(delay)
    if mock_host is None or mock_host.unreachable:
        logger.debug("%s for %s SKIPPED (host unreachable)", operation, host)
        raise HTTPException(status_code=504, detail=f"Connection timed out: {host}")
    return mock_host


async def _vm_or_error(
    fleet: MockFleet, host: str, vm_name: str, operation: str,
) -> MockVM:
    mock_host = await _host_or_504(fleet, host, operation)
    vm = mock_host.vms.get(vm_name)
    if vm is None:
        raise HTTPException(status_code=404, detail=f"VM '{vm_name}' not found on {host}")
    if vm.fails(operation):
        raise HTTPException(status_code=500, detail=f"{operation} failed for {vm_name}")
    return vm


@app.get("/api/hosts/{host}/replication")
async def get_replication(
    host: str, fleet: MockFleet = Depends(get_fleet),
) -> list[dict[str, Any]]:
    mock_host = await _host_or_504(fleet, host, "get_replication_relationships")
    return [{"ComputerName": host, **rel} for rel in mock_host.relationships]


@app.get("/api/hosts/{host}/vms/{vm_name}")
async def get_vm(
    host: str, vm_name: str, fleet: MockFleet = Depends(get_fleet),
) -> dict[str, Any]:
    vm = await _vm_or_error(fleet, host, vm_name, "get_vm")
    return {"Name": vm.name, "Id": vm.vm_id, "ComputerName": host}


@app.get("/api/hosts/{host}/vms/{vm_name}/memory")
async def get_memory(
    host: str, vm_name: str, fleet: MockFleet = Depends(get_fleet),
) -> dict[str, Any]:
    vm = await _vm_or_error(fleet, host, vm_name, "get_memory")
    return vm.memory


@app.get("/api/hosts/{host}/vms/{vm_name}/processor")
async def get_processor(
    host: str, vm_name: str, fleet: MockFleet = Depends(get_fleet),
) -> dict[str, Any]:
    vm = await _vm_or_error(fleet, host, vm_name, "get_processor")
    return vm.processor


@app.get("/api/hosts/{host}/vms/{vm_name}/disks")
async def get_disks(
    host: str, vm_name: str, fleet: MockFleet = Depends(get_fleet),
) -> list[dict[str, Any]]:
    vm = await _vm_or_error(fleet, host, vm_name, "get_virtual_disks")
    return vm.disks


@app.get("/api/hosts/{host}/vms/{vm_name}/controllers")
async def get_controllers(
    host: str, vm_name: str, fleet: MockFleet = Depends(get_fleet),
) -> list[dict[str, Any]]:
    vm = await _vm_or_error(fleet, host, vm_name, "get_storage_controllers")
    return vm.controllers


@app.get("/health")
def health(fleet: MockFleet = Depends(get_fleet)) -> dict:
    """健康檢查。"""
    return {
        "status": "ok",
        "service": "hyperv-mock",
        "fleet_file": settings.mock_fleet_file,
        "hosts": sorted(fleet.hosts),
        "unreachable": sorted(h.name for h in fleet.hosts.values() if h.unreachable),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "mock_server.main:app",
        host="0.0.0.0",
        port=settings.mock_server_port,
        reload=True,
    )
