"""
Pairing Resolver.

依 VM 名稱分組合併後的 relationship list，產生每台 VM 最多兩筆 PairingRecord：

- replica pairing: Primary entry vs Replica entry
- extended pairing: Primary entry vs ExtendedReplica entry（存在 ExtendedReplica entry，
  或 replica host 的 Extended 類型關係指名了 extended host 時）

多筆同 mode 的 entry（例如 extended replica 初始化期間的 migration）
→ 取 relationship list 中第一筆，記一筆 PAIRING WARNING，不會失敗。
Unknown mode 的 entry 不參與 pairing。

Primary（或 Extended 類型關係）指名的 partner host 採集失敗、或沒有回報對應 entry 時，
pairing 仍然存在：secondary_key 為 None、expected_host 記下被指名的 host，
下游比較時就是 Indeterminate。
缺少 Primary 時 primary_key 為 None，同樣是 Indeterminate。
"""
from __future__ import annotations

import logging
from collections.abc import Collection, Iterable
from dataclasses import dataclass

from replica_drift.core.enums import (
    DiagnosticLevel,
    DiagnosticScope,
    PairingKind,
    ReplicationMode,
)
from replica_drift.schemas.inventory import ReplicationRelationship
from replica_drift.schemas.report import Diagnostic
from replica_drift.schemas.snapshot import SnapshotKey
from replica_drift.services.diagnostics import record

logger = logging.getLogger(__name__)

_PAIRED_MODES = (
    ReplicationMode.PRIMARY,
    ReplicationMode.REPLICA,
    ReplicationMode.EXTENDED_REPLICA,
)


@dataclass(frozen=True)
class PairingRecord:
    """Index keys to compare for one (VM, kind). Either key may be missing.

    expected_host names the secondary host when a relationship points at it
    but it has no usable entry (collection failed or it reported nothing).
    """

    vm_name: str
    kind: PairingKind
    primary_key: SnapshotKey | None
    secondary_key: SnapshotKey | None
    expected_host: str | None = None

    @property
    def secondary_host(self) -> str | None:
        if self.secondary_key is not None:
            return self.secondary_key.host
        return self.expected_host


@dataclass(frozen=True)
class VMPairing:
    """Both pairings of one VM name; None means no such pairing exists."""

    vm_name: str
    primary_host: str | None
    replica: PairingRecord | None = None
    extended: PairingRecord | None = None

    @property
    def replica_host(self) -> str | None:
        return self.replica.secondary_host if self.replica else None

    @property
    def extended_replica_host(self) -> str | None:
        return self.extended.secondary_host if self.extended else None


def _short(host: str) -> str:
    return host.split(".", 1)[0].casefold()


def host_matches(a: str, b: str) -> bool:
    """
    Host name equality, case-insensitive.

    FQDN 與短名視為同一台（"hv02" == "HV02.corp.local"），
    兩邊都是 FQDN 時必須完全相同。
    """
    if not a or not b:
        return False
    if a.casefold() == b.casefold():
        return True
    if "." in a and "." in b:
        return False
    return _short(a) == _short(b)


def _find_host(name: str, hosts: Iterable[str]) -> str | None:
    for host in hosts:
        if host_matches(name, host):
            return host
    return None


def _pick_first(
    vm_name: str,
    mode: ReplicationMode,
    entries: list[ReplicationRelationship],
    diagnostics: list[Diagnostic],
) -> ReplicationRelationship | None:
    if not entries:
        return None
    chosen = entries[0]
    if len(entries) > 1:
        record(
            diagnostics,
            DiagnosticLevel.WARNING,
            DiagnosticScope.PAIRING,
            f"{vm_name} has {len(entries)} {mode.value} entries, "
            f"using {chosen.host}",
            vm_name=vm_name,
            host=chosen.host,
            context={"candidates": ", ".join(e.host for e in entries)},
            module=__name__,
        )
    return chosen


def _unresolved(
    vm_name: str,
    kind: PairingKind,
    primary_key: SnapshotKey | None,
    expected_host: str,
) -> PairingRecord:
    return PairingRecord(vm_name, kind, primary_key, None, expected_host=expected_host)


def _silent_partner(
    vm_name: str,
    partner: str,
    mode: str,
    diagnostics: list[Diagnostic],
) -> None:
    record(
        diagnostics,
        DiagnosticLevel.WARNING,
        DiagnosticScope.PAIRING,
        f"{partner} reports no {mode} entry for {vm_name}",
        vm_name=vm_name,
        host=partner,
        module=__name__,
    )


def resolve_pairings(
    relationships: Iterable[ReplicationRelationship],
    unavailable_hosts: Collection[str] = (),
    diagnostics: list[Diagnostic] | None = None,
    extended_links: Iterable[ReplicationRelationship] = (),
) -> list[VMPairing]:
    """
    Resolve primary/replica and primary/extended-replica pairings.

    Args:
        relationships: merged relationship list (its order decides "first-seen")
        unavailable_hosts: hosts whose collection failed entirely
        diagnostics: receives ambiguity diagnostics (optional)
        extended_links: Extended-type records reported by replica hosts;
            they name the extended replica host when it reported nothing

    Returns:
        one VMPairing per VM name with a recognised-mode entry, first-seen order
    """
    if diagnostics is None:
        diagnostics = []

    groups: dict[str, dict[ReplicationMode, list[ReplicationRelationship]]] = {}
    for rel in relationships:
        if rel.mode not in _PAIRED_MODES:
            logger.debug(
                "Skipping %s on %s: mode %s", rel.vm_name, rel.host, rel.mode.value,
            )
            continue
        by_mode = groups.setdefault(rel.vm_name, {m: [] for m in _PAIRED_MODES})
        by_mode[rel.mode].append(rel)

    # vm_name → extended replica host, first link wins
    extended_hosts: dict[str, str] = {}
    for link in extended_links:
        if link.replica_server:
            extended_hosts.setdefault(link.vm_name, link.replica_server)

    pairings: list[VMPairing] = []
    for vm_name, by_mode in groups.items():
        primary = _pick_first(
            vm_name, ReplicationMode.PRIMARY, by_mode[ReplicationMode.PRIMARY], diagnostics,
        )
        replica = _pick_first(
            vm_name, ReplicationMode.REPLICA, by_mode[ReplicationMode.REPLICA], diagnostics,
        )
        extended = _pick_first(
            vm_name, ReplicationMode.EXTENDED_REPLICA,
            by_mode[ReplicationMode.EXTENDED_REPLICA], diagnostics,
        )

        primary_key = SnapshotKey(primary.host, vm_name) if primary else None

        replica_record: PairingRecord | None = None
        if replica is not None:
            replica_record = PairingRecord(
                vm_name, PairingKind.REPLICA,
                primary_key, SnapshotKey(replica.host, vm_name),
            )
        elif primary is not None and primary.partner_host:
            failed = _find_host(primary.partner_host, unavailable_hosts)
            if failed is not None:
                replica_record = _unresolved(vm_name, PairingKind.REPLICA, primary_key, failed)
            elif extended is None:
                # replica host 沒有這台 VM 的 Replica entry（有回應、或不在 host 清單中）
                _silent_partner(vm_name, primary.partner_host, "Replica", diagnostics)
                replica_record = _unresolved(
                    vm_name, PairingKind.REPLICA, primary_key, primary.partner_host,
                )
            # 有 ExtendedReplica 而沒有 Replica → replica pairing 不適用

        extended_record: PairingRecord | None = None
        if extended is not None:
            extended_record = PairingRecord(
                vm_name, PairingKind.EXTENDED_REPLICA,
                primary_key, SnapshotKey(extended.host, vm_name),
            )
        elif vm_name in extended_hosts:
            named = extended_hosts[vm_name]
            failed = _find_host(named, unavailable_hosts)
            if failed is None:
                _silent_partner(vm_name, named, "ExtendedReplica", diagnostics)
            extended_record = _unresolved(
                vm_name, PairingKind.EXTENDED_REPLICA, primary_key, failed or named,
            )

        if primary is None:
            logger.info("%s has no Primary entry, comparisons are indeterminate", vm_name)

        pairings.append(
            VMPairing(
                vm_name=vm_name,
                primary_host=primary.host if primary else None,
                replica=replica_record,
                extended=extended_record,
            )
        )

    logger.info("Resolved pairings for %d VM(s)", len(pairings))
    return pairings
