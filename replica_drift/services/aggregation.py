"""
Aggregation Index.

所有 host task 收回後（fan-in barrier 之後）才建立，單一 writer。

- relationships: 依設定檔中的 host 順序串接（與完成順序無關）
- extended_links: replica host 回報的 Extended 類型關係，只給 pairing 找 extended host
- snapshots: (host, vm_name) → VMSettingsSnapshot
- host_statuses / unavailable_hosts: 給 pairing 與報表使用
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from replica_drift.core.enums import HostCollectionStatus
from replica_drift.schemas.inventory import ReplicationRelationship
from replica_drift.schemas.report import Diagnostic, HostStatus
from replica_drift.schemas.snapshot import SnapshotKey, VMSettingsSnapshot
from replica_drift.services.host_collector import HostCollectionResult

logger = logging.getLogger(__name__)


class AggregationIndex:
    """Merged, read-only view of one generation's host results."""

    def __init__(self) -> None:
        self.snapshots: dict[SnapshotKey, VMSettingsSnapshot] = {}
        self.relationships: list[ReplicationRelationship] = []
        self.extended_links: list[ReplicationRelationship] = []
        self.diagnostics: list[Diagnostic] = []
        self.host_statuses: list[HostStatus] = []
        self.unavailable_hosts: set[str] = set()

    @classmethod
    def build(
        cls,
        results: Iterable[HostCollectionResult],
        host_order: Sequence[str] | None = None,
    ) -> AggregationIndex:
        """
        Merge host results into one index.

        Args:
            results: HostCollectionResult in any (completion) order
            host_order: configured host list; results are merged in this order
                so the outcome does not depend on completion order.
                Hosts not in the list go last, sorted by name.
        """
        position: dict[str, int] = {}
        for i, h in enumerate(host_order or []):
            # 重複的 host 以第一次出現的位置為準
            position.setdefault(h.casefold(), i)
        unknown = len(host_order or [])

        def _order(r: HostCollectionResult) -> tuple[int, str]:
            return (position.get(r.host.casefold(), unknown), r.host.casefold())

        index = cls()
        for result in sorted(results, key=_order):
            index._merge(result)

        logger.info(
            "Aggregation index: %d snapshot(s), %d relationship(s), "
            "%d unavailable host(s)",
            len(index.snapshots), len(index.relationships),
            len(index.unavailable_hosts),
        )
        return index

    def _merge(self, result: HostCollectionResult) -> None:
        self.relationships.extend(result.relationships)
        self.extended_links.extend(result.extended_links)
        for snapshot in result.snapshots:
            key = snapshot.key
            if key in self.snapshots:
                # 同一 host 上 VM 名稱重複，保留第一筆
                logger.warning("Duplicate snapshot %s ignored", key)
                continue
            self.snapshots[key] = snapshot
        self.diagnostics.extend(result.diagnostics)
        self.host_statuses.append(result.to_status())
        if result.status == HostCollectionStatus.FAILED:
            self.unavailable_hosts.add(result.host)

    def get(self, key: SnapshotKey | None) -> VMSettingsSnapshot | None:
        if key is None:
            return None
        return self.snapshots.get(key)

    def __len__(self) -> int:
        return len(self.snapshots)

    def __contains__(self, key: object) -> bool:
        return key in self.snapshots
