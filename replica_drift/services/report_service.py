"""
Report Model Builder.

一次 generation 的完整流程::

    DriftReportService.generate(run_config)
        ├─ HostTaskScheduler.run(hosts)          → list[HostCollectionResult]
        ├─ AggregationIndex.build(results)       → snapshots + relationships
        ├─ resolve_pairings(relationships)       → list[VMPairing]
        ├─ build_report_rows(pairings, index)    → list[ReportRow]
        └─ DriftReport（含 host 狀態、diagnostics、generation 時間）

Rendering (HTML/email) is not done here; the DriftReport model is the output.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from pydantic import ValidationError

from replica_drift.core import timezone
from replica_drift.core.config import settings
from replica_drift.core.enums import ComparisonOutcome
from replica_drift.core.errors import ConfigurationError
from replica_drift.core.run_config import RunConfig
from replica_drift.fetchers.base import BaseManagementClient
from replica_drift.schemas.report import Diagnostic, DriftReport, ReportRow
from replica_drift.schemas.snapshot import VMSettingsSnapshot
from replica_drift.services.aggregation import AggregationIndex
from replica_drift.services.equality import diff_snapshots
from replica_drift.services.host_collector import HostCollector
from replica_drift.services.pairing import PairingRecord, VMPairing, resolve_pairings
from replica_drift.services.scheduler import HostTaskScheduler

logger = logging.getLogger(__name__)


def evaluate(
    a: VMSettingsSnapshot | None,
    b: VMSettingsSnapshot | None,
) -> tuple[ComparisonOutcome, list[str]]:
    """
    Tri-state result of one pairing.

    Returns:
        (outcome, differing fields). Indeterminate when either side is missing.
    """
    if a is None or b is None:
        return ComparisonOutcome.INDETERMINATE, []
    diff = diff_snapshots(a, b)
    return (ComparisonOutcome.MISMATCH if diff else ComparisonOutcome.MATCH), diff


def _evaluate_pairing(
    pairing: PairingRecord | None,
    index: AggregationIndex,
) -> tuple[ComparisonOutcome, list[str]]:
    if pairing is None:
        return ComparisonOutcome.NOT_APPLICABLE, []
    return evaluate(index.get(pairing.primary_key), index.get(pairing.secondary_key))


def build_report_rows(
    pairings: Iterable[VMPairing],
    index: AggregationIndex,
) -> list[ReportRow]:
    """One ReportRow per VM pairing, in pairing order."""
    rows: list[ReportRow] = []
    for pairing in pairings:
        replica_result, replica_diff = _evaluate_pairing(pairing.replica, index)
        extended_result, extended_diff = _evaluate_pairing(pairing.extended, index)
        rows.append(
            ReportRow(
                vm_name=pairing.vm_name,
                primary_host=pairing.primary_host,
                replica_host=pairing.replica_host,
                extended_replica_host=pairing.extended_replica_host,
                replica_result=replica_result,
                extended_result=extended_result,
                replica_differences=replica_diff,
                extended_differences=extended_diff,
            )
        )
    return rows


class DriftReportService:
    """
    Runs one report generation against a management backend.

    Args:
        client: management backend (shared by every host task)
        stale_after_minutes: staleness window, defaults to settings
    """

    def __init__(
        self,
        client: BaseManagementClient,
        stale_after_minutes: float | None = None,
    ):
        self.client = client
        self.stale_after_minutes = (
            settings.stale_after_minutes
            if stale_after_minutes is None else stale_after_minutes
        )

    async def generate(self, run_config: RunConfig | Sequence[str]) -> DriftReport:
        """
        Collect every host and build the drift report.

        Args:
            run_config: validated RunConfig, or a plain host list
                (throttle limit / timeout then come from settings)

        Raises:
            ConfigurationError: invalid host list or throttle limit
        """
        if not isinstance(run_config, RunConfig):
            try:
                run_config = RunConfig(hosts=list(run_config))
            except ValidationError as e:
                raise ConfigurationError(f"Invalid host list: {e}") from e

        started = timezone.now()
        logger.info(
            "Report generation started: %d host(s), throttle_limit=%d",
            len(run_config.hosts), run_config.throttle_limit,
        )

        scheduler = HostTaskScheduler(
            HostCollector(self.client),
            throttle_limit=run_config.throttle_limit,
            host_timeout_seconds=run_config.host_timeout_seconds,
        )
        results = await scheduler.run(run_config.hosts)

        # fan-in barrier 之後才建立 index（單一 writer）
        index = AggregationIndex.build(results, host_order=run_config.hosts)

        diagnostics: list[Diagnostic] = list(scheduler.diagnostics)
        diagnostics.extend(index.diagnostics)
        pairings = resolve_pairings(
            index.relationships, index.unavailable_hosts, diagnostics,
            extended_links=index.extended_links,
        )
        rows = build_report_rows(pairings, index)

        report = DriftReport(
            generation_started=started,
            generation_finished=timezone.now(),
            stale_after_minutes=self.stale_after_minutes,
            hosts=index.host_statuses,
            relationships=index.relationships,
            rows=rows,
            diagnostics=diagnostics,
        )
        logger.info(
            "Report generation finished in %.2fs: %d row(s), outcomes=%s, "
            "%d diagnostic(s)%s",
            report.duration_seconds, len(rows), report.outcome_counts,
            len(diagnostics), " (STALE)" if report.is_stale else "",
        )
        return report
