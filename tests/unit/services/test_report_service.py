"""Tests for replica_drift.services.report_service (end-to-end over the mock backend)."""
from __future__ import annotations

import pytest

from replica_drift.core.enums import (
    ComparisonOutcome,
    DiagnosticLevel,
    DiagnosticScope,
    HostCollectionStatus,
    PairingKind,
)
from replica_drift.core.errors import ConfigurationError
from replica_drift.core.run_config import RunConfig
from replica_drift.fetchers.mock import MockManagementClient
from replica_drift.schemas.snapshot import SnapshotKey
from replica_drift.services.aggregation import AggregationIndex
from replica_drift.services.host_collector import HostCollectionResult
from replica_drift.services.pairing import PairingRecord, VMPairing
from replica_drift.services.report_service import (
    DriftReportService,
    build_report_rows,
    evaluate,
)
from tests.factories import MB, build_fleet, relationship, snapshot, two_host_fleet, vm_payload

MEMORY = (2048 * MB, 1024 * MB, 4096 * MB)


async def _generate(fleet, hosts, throttle_limit=2):
    client = MockManagementClient(fleet)
    config = RunConfig(hosts=hosts, throttle_limit=throttle_limit, host_timeout_seconds=5)
    return await DriftReportService(client, stale_after_minutes=60).generate(config)


def _row(report, vm_name):
    return next(r for r in report.rows if r.vm_name == vm_name)


class TestEvaluate:
    def test_match(self):
        assert evaluate(snapshot(), snapshot(host="HV-B")) == (ComparisonOutcome.MATCH, [])

    def test_mismatch(self):
        outcome, diff = evaluate(snapshot(), snapshot(processor_count=4))
        assert outcome == ComparisonOutcome.MISMATCH
        assert diff == ["processor_count"]

    @pytest.mark.parametrize("a,b", [
        (None, snapshot()),
        (snapshot(), None),
        (None, None),
    ])
    def test_missing_side_is_indeterminate(self, a, b):
        assert evaluate(a, b) == (ComparisonOutcome.INDETERMINATE, [])


class TestBuildReportRows:
    def test_not_applicable_when_pairing_absent(self):
        index = AggregationIndex.build([
            HostCollectionResult(host="HV-A", snapshots=[snapshot(host="HV-A")]),
            HostCollectionResult(host="HV-C", snapshots=[snapshot(host="HV-C")]),
        ])
        pairing = VMPairing(
            vm_name="sql1",
            primary_host="HV-A",
            extended=PairingRecord(
                "sql1", PairingKind.EXTENDED_REPLICA,
                SnapshotKey("HV-A", "sql1"), SnapshotKey("HV-C", "sql1"),
            ),
        )
        [row] = build_report_rows([pairing], index)
        assert row.replica_result == ComparisonOutcome.NOT_APPLICABLE
        assert row.extended_result == ComparisonOutcome.MATCH
        assert row.extended_replica_host == "HV-C"

    def test_missing_snapshot_is_indeterminate(self):
        index = AggregationIndex.build([
            HostCollectionResult(host="HV-A", snapshots=[snapshot(host="HV-A")]),
        ])
        pairing = VMPairing(
            vm_name="sql1",
            primary_host="HV-A",
            replica=PairingRecord(
                "sql1", PairingKind.REPLICA,
                SnapshotKey("HV-A", "sql1"), SnapshotKey("HV-B", "sql1"),
            ),
        )
        [row] = build_report_rows([pairing], index)
        assert row.replica_result == ComparisonOutcome.INDETERMINATE


class TestScenarios:
    @pytest.mark.asyncio
    async def test_identical_settings_match(self):
        """Scenario 1: same memory / CPU / disks on both sides → Match."""
        report = await _generate(two_host_fleet(), ["HV-A", "HV-B"])

        row = _row(report, "sql1")
        assert row.primary_host == "HV-A"
        assert row.replica_host == "HV-B"
        assert row.replica_result == ComparisonOutcome.MATCH
        assert row.extended_result == ComparisonOutcome.NOT_APPLICABLE
        assert row.replica_differences == []

    @pytest.mark.asyncio
    async def test_cpu_drift_mismatch(self):
        """Scenario 2: replica has 4 CPUs → Mismatch on processor_count."""
        report = await _generate(two_host_fleet(replica_cpus=4), ["HV-A", "HV-B"])

        row = _row(report, "sql1")
        assert row.replica_result == ComparisonOutcome.MISMATCH
        assert row.replica_differences == ["processor_count"]
        assert row.has_drift
        # web1 unaffected
        assert _row(report, "web1").replica_result == ComparisonOutcome.MATCH

    @pytest.mark.asyncio
    async def test_replica_host_failure_indeterminate(self):
        """Scenario 3: replica host fails entirely → Indeterminate, others unaffected."""
        fleet = build_fleet({
            "HV-A": {
                "relationships": [
                    relationship("sql1", "Primary", "HV-A", "HV-B"),
                    relationship("web1", "Primary", "HV-A", "HV-C"),
                ],
                "vms": {"sql1": vm_payload(), "web1": vm_payload()},
            },
            "HV-B": {"unreachable": True},
            "HV-C": {
                "relationships": [relationship("web1", "Replica", "HV-A", "HV-C")],
                "vms": {"web1": vm_payload()},
            },
        })
        report = await _generate(fleet, ["HV-A", "HV-B", "HV-C"])

        sql1 = _row(report, "sql1")
        assert sql1.replica_result == ComparisonOutcome.INDETERMINATE
        assert sql1.replica_host == "HV-B"
        assert _row(report, "web1").replica_result == ComparisonOutcome.MATCH

        assert report.failed_hosts == ["HV-B"]
        host_errors = [
            d for d in report.diagnostics
            if d.scope == DiagnosticScope.HOST and d.level == DiagnosticLevel.ERROR
        ]
        assert [d.host for d in host_errors] == ["HV-B"]

    @pytest.mark.asyncio
    async def test_two_replica_entries_first_seen(self):
        """Scenario 4: Replica on B and C mid-migration → compare against B only."""
        fleet = build_fleet({
            "HV-A": {
                "relationships": [relationship("sql1", "Primary", "HV-A", "HV-B")],
                "vms": {"sql1": vm_payload()},
            },
            "HV-B": {
                "relationships": [relationship("sql1", "Replica", "HV-A", "HV-B")],
                "vms": {"sql1": vm_payload()},
            },
            "HV-C": {
                "relationships": [relationship("sql1", "Replica", "HV-A", "HV-C")],
                "vms": {"sql1": vm_payload(cpus=8)},
            },
        })
        # HV-C finishes first; configured order still decides "first-seen"
        fleet.get("HV-B").delay = 0.05

        report = await _generate(fleet, ["HV-A", "HV-B", "HV-C"], throttle_limit=3)

        row = _row(report, "sql1")
        assert row.replica_host == "HV-B"
        assert row.replica_result == ComparisonOutcome.MATCH
        pairing_diags = [d for d in report.diagnostics if d.scope == DiagnosticScope.PAIRING]
        assert len(pairing_diags) == 1
        assert pairing_diags[0].vm_name == "sql1"

    @pytest.mark.asyncio
    async def test_extended_without_replica(self):
        """Scenario 5: Primary + ExtendedReplica only → replica N/A, extended computed."""
        fleet = build_fleet({
            "HV-A": {
                "relationships": [relationship("sql1", "Primary", "HV-A", "HV-B")],
                "vms": {"sql1": vm_payload()},
            },
            "HV-C": {
                "relationships": [
                    relationship("sql1", "ExtendedReplica", "HV-B", "HV-C"),
                ],
                "vms": {"sql1": vm_payload(memory=(MEMORY[0], MEMORY[1], 8192 * MB))},
            },
        })
        report = await _generate(fleet, ["HV-A", "HV-C"])

        row = _row(report, "sql1")
        assert row.replica_result == ComparisonOutcome.NOT_APPLICABLE
        assert row.extended_result == ComparisonOutcome.MISMATCH
        assert row.extended_differences == ["memory_maximum"]
        assert row.extended_replica_host == "HV-C"

    @pytest.mark.asyncio
    async def test_extended_host_failure_indeterminate(self):
        """Extended replica host down → extended result Indeterminate, not N/A."""
        fleet = build_fleet({
            "HV-A": {
                "relationships": [relationship("sql1", "Primary", "HV-A", "HV-B")],
                "vms": {"sql1": vm_payload()},
            },
            "HV-B": {
                "relationships": [
                    relationship("sql1", "Replica", "HV-A", "HV-B"),
                    relationship("sql1", "Primary", "HV-B", "HV-C",
                                 relationship_type="Extended"),
                ],
                "vms": {"sql1": vm_payload()},
            },
            "HV-C": {"unreachable": True},
        })
        report = await _generate(fleet, ["HV-A", "HV-B", "HV-C"], throttle_limit=3)

        row = _row(report, "sql1")
        assert row.replica_result == ComparisonOutcome.MATCH
        assert row.extended_result == ComparisonOutcome.INDETERMINATE
        assert row.extended_replica_host == "HV-C"
        # Extended-type records stay out of the relationship table
        assert len(report.relationships) == 2
        assert not [d for d in report.diagnostics if d.scope == DiagnosticScope.PAIRING]

    @pytest.mark.asyncio
    async def test_silent_replica_host_indeterminate(self):
        """Replica host answers but has no Replica entry for the VM → Indeterminate."""
        fleet = build_fleet({
            "HV-A": {
                "relationships": [relationship("sql1", "Primary", "HV-A", "HV-B")],
                "vms": {"sql1": vm_payload()},
            },
            "HV-B": {"relationships": [], "vms": {}},
        })
        report = await _generate(fleet, ["HV-A", "HV-B"])

        row = _row(report, "sql1")
        assert row.replica_result == ComparisonOutcome.INDETERMINATE
        assert row.replica_host == "HV-B"
        assert row.extended_result == ComparisonOutcome.NOT_APPLICABLE
        assert report.failed_hosts == []
        [diag] = [d for d in report.diagnostics if d.scope == DiagnosticScope.PAIRING]
        assert diag.host == "HV-B"
        assert diag.level == DiagnosticLevel.WARNING

    @pytest.mark.asyncio
    async def test_duplicate_host_keeps_first_position(self):
        """A duplicated host merges at its first configured position."""
        fleet = two_host_fleet()
        fleet.get("HV-A").delay = 0.05
        report = await _generate(fleet, ["HV-A", "HV-B", "HV-A"])
        assert [r.host for r in report.relationships] == ["HV-A", "HV-A", "HV-B", "HV-B"]


class TestDriftReportService:
    @pytest.mark.asyncio
    async def test_primary_host_failure_propagates(self):
        """Every VM that depends on the failed host is Indeterminate."""
        fleet = two_host_fleet()
        fleet.get("HV-A").unreachable = True
        report = await _generate(fleet, ["HV-A", "HV-B"])

        assert {r.vm_name for r in report.rows} == {"sql1", "web1"}
        assert all(r.replica_result == ComparisonOutcome.INDETERMINATE for r in report.rows)
        assert all(r.primary_host is None for r in report.rows)

    @pytest.mark.asyncio
    async def test_report_metadata(self):
        report = await _generate(two_host_fleet(), ["HV-A", "HV-B", "HV-A"])

        assert [h.host for h in report.hosts] == ["HV-A", "HV-B"]
        assert all(h.status == HostCollectionStatus.OK for h in report.hosts)
        assert report.generation_started <= report.generation_finished
        assert report.generation_started.tzinfo is not None
        assert not report.is_stale
        assert report.outcome_counts["Match"] == 2
        assert report.health_counts["Normal"] == 4
        # duplicate HV-A → one run-level warning
        assert [d.scope for d in report.diagnostics] == [DiagnosticScope.RUN]

    @pytest.mark.asyncio
    async def test_relationship_order_follows_config(self):
        fleet = two_host_fleet()
        fleet.get("HV-A").delay = 0.05
        report = await _generate(fleet, ["HV-A", "HV-B"])
        assert [r.host for r in report.relationships] == ["HV-A", "HV-A", "HV-B", "HV-B"]

    @pytest.mark.asyncio
    async def test_plain_host_list(self):
        client = MockManagementClient(two_host_fleet())
        report = await DriftReportService(client).generate(["HV-A", "HV-B"])
        assert len(report.rows) == 2

    @pytest.mark.asyncio
    async def test_empty_host_list_is_configuration_error(self):
        client = MockManagementClient(two_host_fleet())
        with pytest.raises(ConfigurationError):
            await DriftReportService(client).generate([])
        assert client.calls == []
