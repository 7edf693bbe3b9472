"""
WinRmManagementClient — 正式環境 backend，直接在 Hyper-V host 上執行 PowerShell。

每個查詢對應一段 Hyper-V cmdlet pipeline，輸出 ``ConvertTo-Json``，
再交給 schemas.inventory 的模型驗證。

pywinrm 是同步 API，所以每次呼叫都透過 asyncio.to_thread 執行，
並以 asyncio.wait_for(settings.winrm.operation_timeout) 限時。

Cmdlet 對照：
    get_replication_relationships → Get-VMReplication
    get_vm                        → Get-VM
    get_memory                    → Get-VMMemory
    get_processor                 → Get-VMProcessor
    get_virtual_disks             → Get-VMHardDiskDrive | Get-VHD
    get_storage_controllers       → Get-VMIdeController + Get-VMScsiController
"""
from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

import winrm
from winrm.exceptions import WinRMError, WinRMTransportError

from replica_drift.core.config import WinRmConfig, settings
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

_REPLICATION_SCRIPT = """
$items = @(Get-VMReplication -ErrorAction Stop | ForEach-Object {
    [pscustomobject]@{
        VMName = $_.VMName
        Mode = $_.Mode.ToString()
        RelationshipType = $_.RelationshipType.ToString()
        PrimaryServer = $_.PrimaryServer
        ReplicaServer = $_.CurrentReplicaServerName
        State = $_.State.ToString()
        Health = $_.Health.ToString()
        FrequencySec = $_.FrequencySec
        LastReplicationTime = if ($_.LastReplicationTime) {
            $_.LastReplicationTime.ToUniversalTime().ToString('o')
        } else { $null }
    }
})
ConvertTo-Json -InputObject $items -Depth 3 -Compress
"""

_VM_SCRIPT = """
Get-VM -Name {name} -ErrorAction Stop |
    Select-Object -First 1 Name, @{{n='Id';e={{$_.Id.ToString()}}}} |
    ConvertTo-Json -Compress
"""

_MEMORY_SCRIPT = """
Get-VMMemory -VMName {name} -ErrorAction Stop |
    Select-Object Startup, Minimum, Maximum, DynamicMemoryEnabled |
    ConvertTo-Json -Compress
"""

_PROCESSOR_SCRIPT = """
Get-VMProcessor -VMName {name} -ErrorAction Stop |
    Select-Object Count |
    ConvertTo-Json -Compress
"""

_DISKS_SCRIPT = """
$items = @(Get-VMHardDiskDrive -VMName {name} -ErrorAction Stop | ForEach-Object {{
    $vhd = Get-VHD -Path $_.Path -ErrorAction Stop
    [pscustomobject]@{{
        Path = $_.Path
        Size = $vhd.Size
        ControllerType = $_.ControllerType.ToString()
        ControllerNumber = $_.ControllerNumber
        ControllerLocation = $_.ControllerLocation
    }}
}})
ConvertTo-Json -InputObject $items -Depth 3 -Compress
"""

_CONTROLLERS_SCRIPT = """
$ide = @(Get-VMIdeController -VMName {name} -ErrorAction SilentlyContinue)
$scsi = @(Get-VMScsiController -VMName {name} -ErrorAction Stop)
$items = @(($ide + $scsi) | ForEach-Object {{
    [pscustomobject]@{{ Name = $_.Name; DriveCount = @($_.Drives).Count }}
}})
ConvertTo-Json -InputObject $items -Depth 3 -Compress
"""


def _ps_quote(value: str) -> str:
    """PowerShell single-quoted literal ('' escapes a quote)."""
    return "'" + value.replace("'", "''") + "'"


class WinRmManagementClient(BaseManagementClient):
    """Runs read-only Hyper-V cmdlets on each host over WinRM."""

    backend_name = "winrm"

    def __init__(self, config: WinRmConfig | None = None):
        self.config = config or settings.winrm
        self._sessions: dict[str, winrm.Session] = {}

    def _session(self, host: str) -> winrm.Session:
        session = self._sessions.get(host)
        if session is None:
            endpoint = f"{self.config.scheme}://{host}:{self.config.port}/wsman"
            session = winrm.Session(
                endpoint,
                auth=(self.config.username, self.config.password.get_secret_value()),
                transport=self.config.transport,
                server_cert_validation=self.config.server_cert_validation,
            )
            self._sessions[host] = session
        return session

    def _execute(self, host: str, operation: str, script: str) -> Any:
        """Blocking: run one script and decode its JSON output."""
        try:
            result = self._session(host).run_ps(script)
        except (WinRMTransportError, OSError) as e:
            raise HostUnreachableError(host, operation, str(e)) from e
        except WinRMError as e:
            raise ManagementQueryError(host, operation, str(e)) from e

        stdout = result.std_out.decode("utf-8", errors="replace").strip().lstrip("\ufeff")
        if result.status_code != 0:
            stderr = result.std_err.decode("utf-8", errors="replace").strip()
            preview = (stderr or stdout)[:300]
            raise ManagementQueryError(
                host, operation, f"exit={result.status_code}: {preview}",
            )
        if not stdout:
            return None
        try:
            return json.loads(stdout)
        except json.JSONDecodeError as e:
            logger.debug("Raw %s output from %s: %s", operation, host, stdout)
            raise ManagementQueryError(
                host, operation, f"Invalid JSON output: {e}",
            ) from e

    async def _run(self, host: str, operation: str, script: str) -> Any:
        """Execute a blocking WinRM call with a timeout."""
        timeout = max(1.0, float(self.config.operation_timeout))
        start = time.perf_counter()
        try:
            payload = await asyncio.wait_for(
                asyncio.to_thread(self._execute, host, operation, script),
                timeout=timeout,
            )
        except TimeoutError as e:
            logger.error(
                "WinRM %s on %s exceeded timeout of %.1fs",
                operation, host, timeout,
            )
            raise QueryTimeoutError(
                host, operation, f"Timed out after {timeout:.1f}s",
            ) from e
        logger.debug(
            "WinRM %s on %s completed in %.2fs",
            operation, host, time.perf_counter() - start,
        )
        return payload

    # ── Queries ──────────────────────────────────────────────────

    async def get_replication_relationships(
        self, host: str,
    ) -> list[ReplicationRelationship]:
        payload = await self._run(
            host, "get_replication_relationships", _REPLICATION_SCRIPT,
        )
        return [
            ReplicationRelationship.model_validate({**item, "host": host})
            for item in as_record_list(payload)
        ]

    async def get_vm(self, host: str, name: str) -> VMHandle:
        payload = await self._run(
            host, "get_vm", _VM_SCRIPT.format(name=_ps_quote(name)),
        )
        items = as_record_list(payload)
        if not items:
            raise ManagementQueryError(host, "get_vm", f"VM '{name}' not found")
        return VMHandle.model_validate({**items[0], "host": host, "name": name})

    async def get_memory(self, handle: VMHandle) -> MemoryInfo:
        payload = await self._run(
            handle.host, "get_memory",
            _MEMORY_SCRIPT.format(name=_ps_quote(handle.name)),
        )
        return MemoryInfo.model_validate(payload)

    async def get_processor(self, handle: VMHandle) -> ProcessorInfo:
        payload = await self._run(
            handle.host, "get_processor",
            _PROCESSOR_SCRIPT.format(name=_ps_quote(handle.name)),
        )
        return ProcessorInfo.model_validate(payload)

    async def get_virtual_disks(self, handle: VMHandle) -> list[VirtualDiskInfo]:
        payload = await self._run(
            handle.host, "get_virtual_disks",
            _DISKS_SCRIPT.format(name=_ps_quote(handle.name)),
        )
        return [VirtualDiskInfo.model_validate(item) for item in as_record_list(payload)]

    async def get_storage_controllers(
        self, handle: VMHandle,
    ) -> list[StorageControllerInfo]:
        payload = await self._run(
            handle.host, "get_storage_controllers",
            _CONTROLLERS_SCRIPT.format(name=_ps_quote(handle.name)),
        )
        return [StorageControllerInfo.from_payload(item) for item in as_record_list(payload)]

    async def aclose(self) -> None:
        self._sessions.clear()

    def __repr__(self) -> str:
        return (
            f"<WinRmManagementClient transport={self.config.transport} "
            f"port={self.config.port}>"
        )
