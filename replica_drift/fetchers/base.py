"""
Management client base classes.

定義管理查詢抽象層的核心型別：
- BaseManagementClient: 所有 backend 的基底類別（Mock / REST / WinRM 共用介面）
- QUERY_OPERATIONS: 查詢名稱清單（與 ManagementEndpointConfig 屬性名一致）

整體架構（資料流）::

    HostTaskScheduler
        → HostCollector.collect(host)
            → client.get_replication_relationships(host)
            → client.get_vm(host, vm_name) → VMHandle
                → client.get_memory(handle)
                → client.get_processor(handle)
                → client.get_virtual_disks(handle)
                → client.get_storage_controllers(handle)
            → normalizer.normalize_settings(...) → VMSettingsSnapshot

每個呼叫都可能獨立失敗；backend 應拋出 ManagementQueryError（或其子類別），
HostCollector 負責攔截，絕不讓錯誤往上傳。

★ Mock vs Real 的選擇
    - MANAGEMENT_BACKEND=mock  → MockManagementClient（開發/測試用）
    - MANAGEMENT_BACKEND=rest  → ConfiguredManagementClient（HTTP 管理 API）
    - MANAGEMENT_BACKEND=winrm → WinRmManagementClient（正式環境，直接跑 PowerShell）
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from replica_drift.schemas.inventory import (
    MemoryInfo,
    ProcessorInfo,
    ReplicationRelationship,
    StorageControllerInfo,
    VirtualDiskInfo,
    VMHandle,
)

QUERY_OPERATIONS = (
    "get_replication_relationships",
    "get_vm",
    "get_memory",
    "get_processor",
    "get_virtual_disks",
    "get_storage_controllers",
)


def as_record_list(payload: Any) -> list[dict[str, Any]]:
    """ConvertTo-Json 對單一元素不輸出 array，這裡統一成 list。"""
    if payload is None:
        return []
    if isinstance(payload, dict):
        # 有些閘道包一層 {"value": [...]}
        if "value" in payload and isinstance(payload["value"], list):
            return payload["value"]
        return [payload]
    if isinstance(payload, list):
        return payload
    raise ValueError(f"Unexpected payload type: {type(payload).__name__}")


class BaseManagementClient(ABC):
    """
    Read-only management interface to a fleet of Hyper-V hosts.

    Implementations must be safe to call concurrently for different hosts.
    None of the methods mutate host state.
    """

    backend_name: str

    @abstractmethod
    async def get_replication_relationships(
        self, host: str,
    ) -> list[ReplicationRelationship]:
        """All replication relationships the host reports (Get-VMReplication)."""
        ...

    @abstractmethod
    async def get_vm(self, host: str, name: str) -> VMHandle:
        """Resolve a VM name on a host to a handle (Get-VM)."""
        ...

    @abstractmethod
    async def get_memory(self, handle: VMHandle) -> MemoryInfo:
        ...

    @abstractmethod
    async def get_processor(self, handle: VMHandle) -> ProcessorInfo:
        ...

    @abstractmethod
    async def get_virtual_disks(self, handle: VMHandle) -> list[VirtualDiskInfo]:
        ...

    @abstractmethod
    async def get_storage_controllers(
        self, handle: VMHandle,
    ) -> list[StorageControllerInfo]:
        ...

    async def aclose(self) -> None:
        """Release transport resources. Default: nothing to release."""
        return None

    async def __aenter__(self) -> BaseManagementClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
