"""
Settings Normalizer.

把一台 VM 各類別的原始查詢結果（memory / CPU / disks / controllers）
轉成一筆可比較的 VMSettingsSnapshot：

- disks: 先依穩定的 key 排序，再只取 size（path 與 host 相關識別一律丟棄）
- controllers: 化簡成 (name, drive_count)，依 name 排序
- host 只存作索引用途，不參與比較

同一份原始資料不論 disks / controllers 以何種順序取回，
normalize 結果都必須完全相同（equality engine 依賴這點）。
"""
from __future__ import annotations

import logging
from collections.abc import Iterable

from replica_drift.fetchers.base import BaseManagementClient
from replica_drift.schemas.inventory import (
    MemoryInfo,
    ProcessorInfo,
    StorageControllerInfo,
    VirtualDiskInfo,
    VMHandle,
)
from replica_drift.schemas.snapshot import ControllerSummary, VMSettingsSnapshot

logger = logging.getLogger(__name__)


def _disk_sort_key(disk: VirtualDiskInfo) -> tuple[str, int, int, str, int]:
    # Controller slot first, then path; size breaks any remaining tie.
    return (
        disk.controller_type.lower(),
        disk.controller_number if disk.controller_number is not None else -1,
        disk.controller_location if disk.controller_location is not None else -1,
        disk.path.lower(),
        disk.size,
    )


def normalize_disks(disks: Iterable[VirtualDiskInfo]) -> tuple[int, ...]:
    """Ordered disk sizes, independent of retrieval order."""
    return tuple(d.size for d in sorted(disks, key=_disk_sort_key))


def normalize_controllers(
    controllers: Iterable[StorageControllerInfo],
) -> tuple[ControllerSummary, ...]:
    """(name, drive_count) summaries ordered by name."""
    summaries = [
        ControllerSummary(name=c.name, drive_count=c.drive_count)
        for c in controllers
    ]
    # Hyper-V 的多個 SCSI controller 同名，用 drive_count 當第二排序鍵
    summaries.sort(key=lambda s: (s.name.lower(), s.name, s.drive_count))
    return tuple(summaries)


def normalize_settings(
    host: str,
    vm_name: str,
    memory: MemoryInfo,
    processor: ProcessorInfo,
    disks: Iterable[VirtualDiskInfo],
    controllers: Iterable[StorageControllerInfo],
) -> VMSettingsSnapshot:
    """Build the canonical snapshot of one VM from its raw query results."""
    return VMSettingsSnapshot(
        host=host,
        vm_name=vm_name,
        memory_startup=memory.startup,
        memory_minimum=memory.minimum,
        memory_maximum=memory.maximum,
        processor_count=processor.count,
        disk_sizes=normalize_disks(disks),
        controllers=normalize_controllers(controllers),
    )


async def build_snapshot(
    client: BaseManagementClient,
    handle: VMHandle,
    host: str | None = None,
) -> VMSettingsSnapshot:
    """
    Run the four sub-queries for one VM and normalise them.

    Queries run one after another on the host's channel. Any failure
    propagates: no partial snapshot is ever produced, the caller
    (HostCollector) decides what to do with the VM.

    Args:
        client: management backend
        handle: VM handle from client.get_vm()
        host: host identity to index the snapshot under (defaults to handle.host)
    """
    memory = await client.get_memory(handle)
    processor = await client.get_processor(handle)
    disks = await client.get_virtual_disks(handle)
    controllers = await client.get_storage_controllers(handle)
    snapshot = normalize_settings(
        host=host or handle.host,
        vm_name=handle.name,
        memory=memory,
        processor=processor,
        disks=disks,
        controllers=controllers,
    )
    logger.debug(
        "Normalized %s: %d disk(s), %d controller(s)",
        snapshot.key, len(snapshot.disk_sizes), len(snapshot.controllers),
    )
    return snapshot
