"""
Services package.

Provides normalization, per-host collection, scheduling, aggregation,
pairing, comparison and report building.
"""
from replica_drift.services.aggregation import AggregationIndex
from replica_drift.services.equality import (
    COMPARED_FIELDS,
    diff_snapshots,
    snapshots_equal,
)
from replica_drift.services.host_collector import HostCollectionResult, HostCollector
from replica_drift.services.normalizer import build_snapshot, normalize_settings
from replica_drift.services.pairing import PairingRecord, VMPairing, resolve_pairings
from replica_drift.services.report_service import (
    DriftReportService,
    build_report_rows,
    evaluate,
)
from replica_drift.services.scheduler import HostTaskScheduler

__all__ = [
    # Normalizer
    "build_snapshot",
    "normalize_settings",
    # Collection
    "HostCollectionResult",
    "HostCollector",
    "HostTaskScheduler",
    # Aggregation / pairing / comparison
    "AggregationIndex",
    "COMPARED_FIELDS",
    "PairingRecord",
    "VMPairing",
    "diff_snapshots",
    "resolve_pairings",
    "snapshots_equal",
    # Report
    "DriftReportService",
    "build_report_rows",
    "evaluate",
]
