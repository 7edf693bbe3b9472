"""
ConfiguredManagementClient — 泛用 REST backend，從 .env 讀取設定。

對應一個 HTTP 管理閘道（或 mock_server），每個查詢一個 GET endpoint。

HTTP 行為：
- 所有 API 統一使用 GET，回應為 JSON
- endpoint 模板從 settings.management_endpoint.{operation} 讀取
- 模板中的佔位符 {host}, {vm_name}, {vm_id} 由呼叫參數帶入（URL encode）
- base_url / timeout / token 從 settings.management_source 讀取

範例:
    模板: /api/hosts/{host}/vms/{vm_name}/memory
    → GET http://hv-gateway:8080/api/hosts/HV-A01/vms/sql1/memory
      Authorization: Bearer <token>

錯誤處理：
- 502 / 503 / 504、連線失敗 → HostUnreachableError
- 其他 HTTP 錯誤 → ManagementQueryError（不重試）
- 暫態錯誤（連線中斷、timeout）最多重試 2 次（1s, 2s）
"""
from __future__ import annotations

import asyncio
import logging
import re
from typing import Any
from urllib.parse import quote

import httpx

from replica_drift.core.config import ManagementEndpointConfig, SourceConfig, settings
from replica_drift.core.errors import (
    HostUnreachableError,
    ManagementQueryError,
    QueryTimeoutError,
)
from replica_drift.fetchers.base import BaseManagementClient, as_record_list
from replica_drift.schemas.inventory import (
    MemoryInfo,
    ProcessorInfo,
    ReplicationRelationship,
    StorageControllerInfo,
    VirtualDiskInfo,
    VMHandle,
)

logger = logging.getLogger(__name__)

# 暫態錯誤：值得重試的例外類型
_TRANSIENT_ERRORS = (
    httpx.ConnectError,
    httpx.TimeoutException,
    httpx.RemoteProtocolError,
)

_UNREACHABLE_STATUS = frozenset({502, 503, 504})

_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")


class ConfiguredManagementClient(BaseManagementClient):
    """
    Generic REST client for a Hyper-V management gateway.

    Reads endpoint templates from settings.management_endpoint and
    base_url / timeout / token from settings.management_source.
    """

    backend_name = "rest"

    def __init__(
        self,
        source: SourceConfig | None = None,
        endpoints: ManagementEndpointConfig | None = None,
        http: httpx.AsyncClient | None = None,
        max_retries: int = 2,
    ):
        self.source = source or settings.management_source
        self.endpoints = endpoints or settings.management_endpoint
        self.max_retries = max_retries
        self._http = http
        self._own_client = http is None

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            self._http = httpx.AsyncClient(timeout=self.source.timeout)
        return self._http

    def _build_url(self, operation: str, variables: dict[str, str]) -> str:
        template = getattr(self.endpoints, operation, "")
        if not template:
            raise ManagementQueryError(
                variables.get("host", "?"), operation,
                f"No endpoint configured for '{operation}'",
            )
        placeholders = set(_PLACEHOLDER_RE.findall(template))
        missing = placeholders - variables.keys()
        if missing:
            raise ManagementQueryError(
                variables.get("host", "?"), operation,
                f"Endpoint template needs {sorted(missing)}",
            )
        endpoint = template.format(
            **{k: quote(variables[k], safe="") for k in placeholders},
        )
        return self.source.base_url.rstrip("/") + endpoint

    async def _get_json(self, operation: str, host: str, **variables: str) -> Any:
        url = self._build_url(operation, {"host": host, **variables})

        headers: dict[str, str] = {"Accept": "application/json"}
        if self.source.token:
            headers["Authorization"] = f"Bearer {self.source.token}"

        last_error: Exception | None = None
        for attempt in range(self.max_retries + 1):
            try:
                resp = await self._client().get(
                    url, headers=headers, timeout=self.source.timeout,
                )
                resp.raise_for_status()
                return resp.json()

            except httpx.HTTPStatusError as e:
                # 伺服器明確回應錯誤 → 不重試
                status = e.response.status_code
                message = f"HTTP {status}: {e.response.text[:200]}"
                if status in _UNREACHABLE_STATUS:
                    raise HostUnreachableError(host, operation, message) from e
                raise ManagementQueryError(host, operation, message) from e
            except _TRANSIENT_ERRORS as e:
                last_error = e
                if attempt < self.max_retries:
                    wait = (attempt + 1) * 1.0  # 1s, 2s
                    logger.warning(
                        "Transient error on %s for %s (attempt %d/%d, "
                        "retry in %.0fs): %s",
                        operation, host,
                        attempt + 1, self.max_retries + 1, wait, e,
                    )
                    await asyncio.sleep(wait)
                    continue
                break
            except ValueError as e:
                raise ManagementQueryError(
                    host, operation, f"Invalid JSON response: {e}",
                ) from e

        # 重試全部失敗
        if isinstance(last_error, httpx.TimeoutException):
            raise QueryTimeoutError(
                host, operation,
                f"Timed out after {self.max_retries + 1} attempts",
            ) from last_error
        raise HostUnreachableError(
            host, operation,
            f"Failed after {self.max_retries + 1} attempts: {last_error}",
        ) from last_error

    # ── Queries ──────────────────────────────────────────────────

    async def get_replication_relationships(
        self, host: str,
    ) -> list[ReplicationRelationship]:
        payload = await self._get_json("get_replication_relationships", host)
        return [
            ReplicationRelationship.model_validate(item)
            for item in as_record_list(payload)
        ]

    async def get_vm(self, host: str, name: str) -> VMHandle:
        payload = await self._get_json("get_vm", host, vm_name=name)
        items = as_record_list(payload)
        if not items:
            raise ManagementQueryError(host, "get_vm", f"VM '{name}' not found")
        data = {"host": host, "name": name, **items[0]}
        return VMHandle.model_validate(data)

    async def get_memory(self, handle: VMHandle) -> MemoryInfo:
        payload = await self._get_json(
            "get_memory", handle.host, **self._vm_vars(handle),
        )
        return MemoryInfo.model_validate(payload)

    async def get_processor(self, handle: VMHandle) -> ProcessorInfo:
        payload = await self._get_json(
            "get_processor", handle.host, **self._vm_vars(handle),
        )
        return ProcessorInfo.model_validate(payload)

    async def get_virtual_disks(self, handle: VMHandle) -> list[VirtualDiskInfo]:
        payload = await self._get_json(
            "get_virtual_disks", handle.host, **self._vm_vars(handle),
        )
        return [VirtualDiskInfo.model_validate(item) for item in as_record_list(payload)]

    async def get_storage_controllers(
        self, handle: VMHandle,
    ) -> list[StorageControllerInfo]:
        payload = await self._get_json(
            "get_storage_controllers", handle.host, **self._vm_vars(handle),
        )
        return [StorageControllerInfo.from_payload(item) for item in as_record_list(payload)]

    @staticmethod
    def _vm_vars(handle: VMHandle) -> dict[str, str]:
        return {"vm_name": handle.name, "vm_id": handle.vm_id or handle.name}

    async def aclose(self) -> None:
        if self._own_client and self._http is not None:
            await self._http.aclose()
            self._http = None

    def __repr__(self) -> str:
        return f"<ConfiguredManagementClient base_url={self.source.base_url!r}>"
