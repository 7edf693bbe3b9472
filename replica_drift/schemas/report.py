"""
Report model — 交給 rendering layer 的完整輸出。

DriftReport
    ├─ hosts: list[HostStatus]                  → host 採集狀態表
    ├─ relationships: list[ReplicationRelationship] → replication 狀態表
    ├─ rows: list[ReportRow]                    → drift 摘要表
    ├─ diagnostics: list[Diagnostic]            → 警告/錯誤清單
    └─ generation_started / generation_finished → staleness 顯示
"""
from __future__ import annotations

from collections import Counter
from datetime import datetime

from pydantic import BaseModel, Field, computed_field

from replica_drift.core.enums import (
    ComparisonOutcome,
    DiagnosticLevel,
    DiagnosticScope,
    HostCollectionStatus,
)
from replica_drift.schemas.inventory import ReplicationRelationship

# Hyper-V ReplicationHealth 的已知值，其餘歸到 "Other"
_KNOWN_HEALTH = ("Normal", "Warning", "Critical")


class Diagnostic(BaseModel):
    """A recovered failure or notable event of one generation run."""

    level: DiagnosticLevel
    scope: DiagnosticScope
    summary: str
    detail: str | None = None
    host: str | None = None
    vm_name: str | None = None
    module: str | None = None


class HostStatus(BaseModel):
    """Collection outcome of one host."""

    host: str
    status: HostCollectionStatus
    relationship_count: int = 0
    snapshot_count: int = 0
    vm_failures: int = 0
    elapsed_seconds: float = 0.0
    error: str | None = None


class ReportRow(BaseModel):
    """Drift summary for one VM name."""

    vm_name: str
    primary_host: str | None = None
    replica_host: str | None = None
    extended_replica_host: str | None = None

    replica_result: ComparisonOutcome
    extended_result: ComparisonOutcome = ComparisonOutcome.NOT_APPLICABLE

    # 不一致的欄位名稱（只有 Mismatch 時才有內容）
    replica_differences: list[str] = Field(default_factory=list)
    extended_differences: list[str] = Field(default_factory=list)

    @property
    def has_drift(self) -> bool:
        return ComparisonOutcome.MISMATCH in (self.replica_result, self.extended_result)


class DriftReport(BaseModel):
    """Everything one generation hands to the rendering layer."""

    generation_started: datetime
    generation_finished: datetime
    stale_after_minutes: float

    hosts: list[HostStatus] = Field(default_factory=list)
    relationships: list[ReplicationRelationship] = Field(default_factory=list)
    rows: list[ReportRow] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def duration_seconds(self) -> float:
        return round(
            (self.generation_finished - self.generation_started).total_seconds(), 3,
        )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_stale(self) -> bool:
        """Generation took longer than the configured staleness window."""
        return self.duration_seconds > self.stale_after_minutes * 60

    @computed_field  # type: ignore[prop-decorator]
    @property
    def outcome_counts(self) -> dict[str, int]:
        """Replica + extended outcomes, counted together (NotApplicable excluded)."""
        counts: Counter[str] = Counter()
        for row in self.rows:
            for outcome in (row.replica_result, row.extended_result):
                if outcome != ComparisonOutcome.NOT_APPLICABLE:
                    counts[outcome.value] += 1
        return {o.value: counts.get(o.value, 0) for o in ComparisonOutcome
                if o != ComparisonOutcome.NOT_APPLICABLE}

    @computed_field  # type: ignore[prop-decorator]
    @property
    def health_counts(self) -> dict[str, int]:
        counts = {h: 0 for h in _KNOWN_HEALTH}
        counts["Other"] = 0
        for rel in self.relationships:
            bucket = rel.health if rel.health in _KNOWN_HEALTH else "Other"
            counts[bucket] += 1
        return counts

    @property
    def failed_hosts(self) -> list[str]:
        return [h.host for h in self.hosts if h.status == HostCollectionStatus.FAILED]
