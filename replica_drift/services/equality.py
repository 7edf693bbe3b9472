"""
Equality Engine.

逐欄位比較兩筆 VMSettingsSnapshot；host 不參與比較。
不做序列化後比字串，避免格式或順序造成假的 mismatch。
回傳 bool；Indeterminate 由 report_service 在 snapshot 缺少時判定。
"""
from __future__ import annotations

from replica_drift.schemas.snapshot import VMSettingsSnapshot

# 參與比較的欄位（順序即 diff 輸出順序）
COMPARED_FIELDS: tuple[str, ...] = (
    "memory_startup",
    "memory_minimum",
    "memory_maximum",
    "processor_count",
    "disk_sizes",
    "controllers",
)


def diff_snapshots(a: VMSettingsSnapshot, b: VMSettingsSnapshot) -> list[str]:
    """Names of the compared fields whose values differ."""
    return [f for f in COMPARED_FIELDS if getattr(a, f) != getattr(b, f)]


def snapshots_equal(a: VMSettingsSnapshot, b: VMSettingsSnapshot) -> bool:
    return all(getattr(a, f) == getattr(b, f) for f in COMPARED_FIELDS)

