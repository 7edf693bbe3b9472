"""
Per-Host Collector — 單一 host 的採集服務。

職責只有三件事：查 replication 關係 → 查每台 VM 的設定 → normalize。

採集流程：
1. get_replication_relationships(host)；Extended 類型的關係另外放在 extended_links，
   不進入 relationships，只讓 pairing 知道 extended host 是誰
2. 取出關係中出現的 VM 名稱（不重複，保留第一次出現的順序）
3. 對每台 VM：get_vm → 四個子查詢 → VMSettingsSnapshot
   單一 VM 失敗只跳過該 VM（WARNING diagnostic），其餘 VM 繼續
4. 若步驟 1 本身失敗（host 不可達、認證失敗、API 錯誤）
   → 回傳空結果 + 一筆 host 層級 ERROR diagnostic

collect() 永遠不會拋出例外；所有失敗都轉成 diagnostic + 降級的資料。
"""
from __future__ import annotations

import logging
import time as _time
from dataclasses import dataclass, field

from replica_drift.core.enums import (
    DiagnosticLevel,
    DiagnosticScope,
    HostCollectionStatus,
)
from replica_drift.fetchers.base import BaseManagementClient
from replica_drift.schemas.inventory import ReplicationRelationship
from replica_drift.schemas.report import Diagnostic, HostStatus
from replica_drift.schemas.snapshot import VMSettingsSnapshot
from replica_drift.services.diagnostics import record
from replica_drift.services.normalizer import build_snapshot

logger = logging.getLogger(__name__)


@dataclass
class HostCollectionResult:
    """
    HostCollector 回傳結果（task-local，完成後才交給 AggregationIndex）。

    Attributes:
        host: configured host identity
        relationships: replication edges (Extended type already removed)
        extended_links: Extended-type edges (replica → extended replica)
        snapshots: one snapshot per successfully collected VM
        diagnostics: recovered failures of this host
        error: host-level failure message; None when the relationship query worked
        vm_failures: number of VMs skipped
        elapsed_seconds: wall time of the collection
    """

    host: str
    relationships: list[ReplicationRelationship] = field(default_factory=list)
    extended_links: list[ReplicationRelationship] = field(default_factory=list)
    snapshots: list[VMSettingsSnapshot] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)
    error: str | None = None
    vm_failures: int = 0
    elapsed_seconds: float = 0.0

    @property
    def status(self) -> HostCollectionStatus:
        if self.error is not None:
            return HostCollectionStatus.FAILED
        if self.vm_failures:
            return HostCollectionStatus.PARTIAL
        return HostCollectionStatus.OK

    def to_status(self) -> HostStatus:
        return HostStatus(
            host=self.host,
            status=self.status,
            relationship_count=len(self.relationships),
            snapshot_count=len(self.snapshots),
            vm_failures=self.vm_failures,
            elapsed_seconds=round(self.elapsed_seconds, 3),
            error=self.error,
        )

    @classmethod
    def failed(
        cls,
        host: str,
        summary: str,
        exc: BaseException | None = None,
        elapsed_seconds: float = 0.0,
    ) -> HostCollectionResult:
        """Empty result with a single host-level diagnostic."""
        result = cls(host=host, error=str(exc) if exc else summary,
                     elapsed_seconds=elapsed_seconds)
        record(
            result.diagnostics,
            DiagnosticLevel.ERROR,
            DiagnosticScope.HOST,
            summary,
            host=host,
            exc=exc,
            module=__name__,
        )
        return result


class HostCollector:
    """
    Collects relationships and VM snapshots of one host.

    一個 instance 可以被多個 scheduler task 共用：collect() 不保存任何狀態，
    所有資料都在回傳值裡。
    """

    def __init__(self, client: BaseManagementClient):
        self.client = client

    async def collect(self, host: str) -> HostCollectionResult:
        """Collect one host. Never raises."""
        t0 = _time.monotonic()

        # 1. Replication relationships
        try:
            raw = await self.client.get_replication_relationships(host)
        except Exception as e:
            return HostCollectionResult.failed(
                host,
                f"Replication query failed on {host}",
                exc=e,
                elapsed_seconds=_time.monotonic() - t0,
            )

        result = HostCollectionResult(host=host)
        for rel in raw:
            # 統一用設定檔中的 host 名稱，與 snapshot index key 對齊
            if rel.host != host:
                rel = rel.model_copy(update={"host": host})
            if rel.is_extended_type:
                result.extended_links.append(rel)
            else:
                result.relationships.append(rel)

        # 2. Unique VM names, first-seen order
        vm_names = list(dict.fromkeys(rel.vm_name for rel in result.relationships))

        # 3. Per-VM settings
        for vm_name in vm_names:
            try:
                handle = await self.client.get_vm(host, vm_name)
                snapshot = await build_snapshot(self.client, handle, host=host)
            except Exception as e:
                result.vm_failures += 1
                record(
                    result.diagnostics,
                    DiagnosticLevel.WARNING,
                    DiagnosticScope.VM,
                    f"Settings collection failed for {vm_name} on {host}",
                    host=host,
                    vm_name=vm_name,
                    exc=e,
                    module=__name__,
                )
                continue
            result.snapshots.append(snapshot)

        result.elapsed_seconds = _time.monotonic() - t0
        logger.info(
            "Collected %s: %d relationship(s), %d/%d VM snapshot(s), %.2fs",
            host, len(result.relationships), len(result.snapshots),
            len(vm_names), result.elapsed_seconds,
        )
        return result
