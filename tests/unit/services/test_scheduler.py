"""Tests for replica_drift.services.scheduler."""
from __future__ import annotations

import pytest

from replica_drift.core.enums import DiagnosticScope, HostCollectionStatus
from replica_drift.core.errors import ConfigurationError
from replica_drift.fetchers.mock import MockManagementClient
from replica_drift.services.host_collector import HostCollector
from replica_drift.services.scheduler import HostTaskScheduler, dedupe_hosts
from tests.factories import build_fleet, relationship, vm_payload


def _slow_fleet(n_hosts: int, delay: float = 0.02):
    return build_fleet({
        f"HV-{i:02d}": {
            "relationships": [relationship(f"vm{i}", "Primary", f"HV-{i:02d}", "HV-X")],
            "vms": {f"vm{i}": vm_payload()},
            "delay": delay,
        }
        for i in range(n_hosts)
    })


def _scheduler(client, throttle_limit: int, timeout: float = 0) -> HostTaskScheduler:
    return HostTaskScheduler(
        HostCollector(client),
        throttle_limit=throttle_limit,
        host_timeout_seconds=timeout,
    )


class TestDedupeHosts:
    def test_first_occurrence_wins(self):
        unique, dropped = dedupe_hosts(["HV-A", "HV-B", "hv-a", "HV-B"])
        assert unique == ["HV-A", "HV-B"]
        assert dropped == ["hv-a", "HV-B"]


class TestHostTaskScheduler:
    def test_invalid_throttle_limit(self, mock_client):
        with pytest.raises(ConfigurationError):
            _scheduler(mock_client, throttle_limit=0)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("throttle_limit", [1, 2, 3])
    async def test_concurrency_never_exceeds_throttle_limit(self, throttle_limit):
        client = MockManagementClient(_slow_fleet(6))
        results = await _scheduler(client, throttle_limit).run(
            [f"HV-{i:02d}" for i in range(6)],
        )

        assert len(results) == 6
        assert client.max_in_flight == throttle_limit

    @pytest.mark.asyncio
    async def test_throttle_larger_than_host_count(self):
        client = MockManagementClient(_slow_fleet(2))
        results = await _scheduler(client, 10).run(["HV-00", "HV-01"])
        assert len(results) == 2
        assert client.max_in_flight == 2

    @pytest.mark.asyncio
    async def test_each_host_attempted_once(self):
        client = MockManagementClient(_slow_fleet(3, delay=0))
        scheduler = _scheduler(client, 2)
        results = await scheduler.run(["HV-00", "HV-01", "HV-00", "HV-02", "hv-01"])

        assert sorted(r.host for r in results) == ["HV-00", "HV-01", "HV-02"]
        rel_calls = [h for h, op in client.calls if op == "get_replication_relationships"]
        assert sorted(rel_calls) == ["HV-00", "HV-01", "HV-02"]
        assert len(scheduler.diagnostics) == 2
        assert all(d.scope == DiagnosticScope.RUN for d in scheduler.diagnostics)

    @pytest.mark.asyncio
    async def test_results_in_completion_order(self):
        fleet = build_fleet({
            "HV-SLOW": {"delay": 0.2},
            "HV-FAST": {"delay": 0.0},
        })
        results = await _scheduler(MockManagementClient(fleet), 2).run(["HV-SLOW", "HV-FAST"])
        assert [r.host for r in results] == ["HV-FAST", "HV-SLOW"]

    @pytest.mark.asyncio
    async def test_failed_host_does_not_block_others(self):
        fleet = build_fleet({
            "HV-A": {
                "relationships": [relationship("sql1", "Primary", "HV-A", "HV-B")],
                "vms": {"sql1": vm_payload()},
            },
            "HV-B": {"unreachable": True},
        })
        results = await _scheduler(MockManagementClient(fleet), 1).run(["HV-B", "HV-A"])
        by_host = {r.host: r for r in results}

        assert by_host["HV-B"].status == HostCollectionStatus.FAILED
        assert by_host["HV-A"].status == HostCollectionStatus.OK
        assert len(by_host["HV-A"].snapshots) == 1

    @pytest.mark.asyncio
    async def test_no_retry_of_failed_host(self):
        fleet = build_fleet({"HV-B": {"unreachable": True}})
        client = MockManagementClient(fleet)
        await _scheduler(client, 2).run(["HV-B"])
        assert client.calls == [("HV-B", "get_replication_relationships")]

    @pytest.mark.asyncio
    async def test_host_timeout_is_host_failure(self):
        fleet = build_fleet({
            "HV-HUNG": {"delay": 5.0},
            "HV-OK": {
                "relationships": [relationship("sql1", "Primary", "HV-OK", "HV-B")],
                "vms": {"sql1": vm_payload()},
            },
        })
        results = await _scheduler(MockManagementClient(fleet), 2, timeout=0.1).run(
            ["HV-HUNG", "HV-OK"],
        )
        by_host = {r.host: r for r in results}

        hung = by_host["HV-HUNG"]
        assert hung.status == HostCollectionStatus.FAILED
        assert "timed out" in hung.error
        assert hung.relationships == []
        assert by_host["HV-OK"].status == HostCollectionStatus.OK

    @pytest.mark.asyncio
    async def test_empty_host_list(self, mock_client):
        assert await _scheduler(mock_client, 2).run([]) == []
