"""
Mock management backend — in-memory fleet（開發/測試用）。

MockFleet 描述一組假的 Hyper-V host；可以直接在程式中建立，
或從 YAML 載入（mock_server 也讀同一份格式）::

    hosts:
      HV-A01:
        relationships:
          - {vm_name: sql1, mode: Primary, primary_server: HV-A01,
             replica_server: HV-B01, health: Normal, frequency_sec: 300}
        vms:
          sql1:
            memory: {startup: 2147483648, minimum: 1073741824, maximum: 4294967296}
            processor: {count: 2}
            disks:
              - {path: 'D:\\VMs\\sql1\\os.vhdx', size: 53687091200}
            controllers:
              - {name: SCSI Controller, drive_count: 1}
      HV-B01:
        unreachable: true

故障注入：
    - MockHost.unreachable: 所有查詢拋出 HostUnreachableError
    - MockHost.delay: 每個查詢前 sleep（秒），用於測試併發上限與 timeout
    - MockVM.fail_on: 指定的查詢名稱拋出 ManagementQueryError（"*" = 全部）
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from replica_drift.core.errors import HostUnreachableError, ManagementQueryError
from replica_drift.fetchers.base import BaseManagementClient
from replica_drift.schemas.inventory import (
    MemoryInfo,
    ProcessorInfo,
    ReplicationRelationship,
    StorageControllerInfo,
    VirtualDiskInfo,
    VMHandle,
)

logger = logging.getLogger(__name__)


@dataclass
class MockVM:
    """Raw per-category settings of one fake VM."""

    name: str
    memory: dict[str, Any]
    processor: dict[str, Any]
    disks: list[dict[str, Any]] = field(default_factory=list)
    controllers: list[dict[str, Any]] = field(default_factory=list)
    vm_id: str | None = None
    fail_on: set[str] = field(default_factory=set)

    def fails(self, operation: str) -> bool:
        return "*" in self.fail_on or operation in self.fail_on


@dataclass
class MockHost:
    """One fake Hyper-V host."""

    name: str
    relationships: list[dict[str, Any]] = field(default_factory=list)
    vms: dict[str, MockVM] = field(default_factory=dict)
    unreachable: bool = False
    delay: float = 0.0


@dataclass
class MockFleet:
    """A set of fake hosts keyed by host name."""

    hosts: dict[str, MockHost] = field(default_factory=dict)

    def add_host(self, host: MockHost) -> MockHost:
        self.hosts[host.name] = host
        return host

    def get(self, name: str) -> MockHost | None:
        return self.hosts.get(name)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MockFleet:
        fleet = cls()
        for host_name, raw in (data.get("hosts") or {}).items():
            raw = raw or {}
            vms = {
                vm_name: MockVM(
                    name=vm_name,
                    memory=dict(vm.get("memory") or {}),
                    processor=dict(vm.get("processor") or {}),
                    disks=list(vm.get("disks") or []),
                    controllers=list(vm.get("controllers") or []),
                    vm_id=vm.get("vm_id"),
                    fail_on=set(vm.get("fail_on") or []),
                )
                for vm_name, vm in (raw.get("vms") or {}).items()
            }
            fleet.add_host(MockHost(
                name=str(host_name),
                relationships=list(raw.get("relationships") or []),
                vms=vms,
                unreachable=bool(raw.get("unreachable", False)),
                delay=float(raw.get("delay", 0.0)),
            ))
        return fleet

    @classmethod
    def from_yaml(cls, path: str | Path) -> MockFleet:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        fleet = cls.from_dict(data)
        logger.info("Loaded mock fleet with %d host(s) from %s", len(fleet.hosts), path)
        return fleet


class MockManagementClient(BaseManagementClient):
    """
    BaseManagementClient backed by a MockFleet.

    Also records every call (``calls``) and the highest number of calls that
    were in flight at the same time (``max_in_flight``), so tests can check
    the scheduler's concurrency bound.
    """

    backend_name = "mock"

    def __init__(self, fleet: MockFleet):
        self.fleet = fleet
        self.calls: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def _enter(self, host: str, operation: str) -> MockHost:
        self.calls.append((host, operation))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            mock_host = self.fleet.get(host)
            if mock_host is not None and mock_host.delay:
                await asyncio.sleep(mock_host.delay)
        finally:
            self.in_flight -= 1
        if mock_host is None or mock_host.unreachable:
            raise HostUnreachableError(host, operation, "Connection timed out")
        return mock_host

    async def _vm(self, handle: VMHandle, operation: str) -> MockVM:
        mock_host = await self._enter(handle.host, operation)
        vm = mock_host.vms.get(handle.name)
        if vm is None:
            raise ManagementQueryError(
                handle.host, operation, f"VM '{handle.name}' not found",
            )
        if vm.fails(operation):
            raise ManagementQueryError(handle.host, operation, "Injected failure")
        return vm

    async def get_replication_relationships(
        self, host: str,
    ) -> list[ReplicationRelationship]:
        mock_host = await self._enter(host, "get_replication_relationships")
        return [
            ReplicationRelationship.model_validate({"host": host, **rel})
            for rel in mock_host.relationships
        ]

    async def get_vm(self, host: str, name: str) -> VMHandle:
        mock_host = await self._enter(host, "get_vm")
        vm = mock_host.vms.get(name)
        if vm is None:
            raise ManagementQueryError(host, "get_vm", f"VM '{name}' not found")
        if vm.fails("get_vm"):
            raise ManagementQueryError(host, "get_vm", "Injected failure")
        return VMHandle(host=host, name=name, vm_id=vm.vm_id)

    async def get_memory(self, handle: VMHandle) -> MemoryInfo:
        vm = await self._vm(handle, "get_memory")
        return MemoryInfo.model_validate(vm.memory)

    async def get_processor(self, handle: VMHandle) -> ProcessorInfo:
        vm = await self._vm(handle, "get_processor")
        return ProcessorInfo.model_validate(vm.processor)

    async def get_virtual_disks(self, handle: VMHandle) -> list[VirtualDiskInfo]:
        vm = await self._vm(handle, "get_virtual_disks")
        return [VirtualDiskInfo.model_validate(d) for d in vm.disks]

    async def get_storage_controllers(
        self, handle: VMHandle,
    ) -> list[StorageControllerInfo]:
        vm = await self._vm(handle, "get_storage_controllers")
        return [StorageControllerInfo.from_payload(c) for c in vm.controllers]
