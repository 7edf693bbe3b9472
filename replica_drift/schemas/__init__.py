"""Pydantic models shared across fetchers, services and the report."""
from replica_drift.schemas.inventory import (
    MemoryInfo,
    ProcessorInfo,
    ReplicationRelationship,
    StorageControllerInfo,
    VirtualDiskInfo,
    VMHandle,
)
from replica_drift.schemas.report import (
    Diagnostic,
    DriftReport,
    HostStatus,
    ReportRow,
)
from replica_drift.schemas.snapshot import (
    ControllerSummary,
    SnapshotKey,
    VMSettingsSnapshot,
)

__all__ = [
    "ControllerSummary",
    "Diagnostic",
    "DriftReport",
    "HostStatus",
    "MemoryInfo",
    "ProcessorInfo",
    "ReplicationRelationship",
    "ReportRow",
    "SnapshotKey",
    "StorageControllerInfo",
    "VMHandle",
    "VMSettingsSnapshot",
    "VirtualDiskInfo",
]
