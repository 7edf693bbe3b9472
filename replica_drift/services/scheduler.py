"""
Host Task Scheduler.

以 semaphore 控制同時採集的 host 數量（throttle_limit），
每個 host 只嘗試一次，不重試；結果依完成順序收回::

    run(hosts)
        ├─ 去除重複 host（保留第一次出現，記 WARNING）
        ├─ 每個 host 一個 task，進入 semaphore 才開始採集
        │     └─ asyncio.wait_for(collector.collect(host), host_timeout_seconds)
        └─ as_completed 收回 HostCollectionResult

每個 task 只回傳自己的結果，不共用任何 list；
合併交給 AggregationIndex 在所有 task 結束後單執行緒完成。
"""
from __future__ import annotations

import asyncio
import logging
import time as _time
from collections.abc import Iterable

from replica_drift.core.enums import DiagnosticLevel, DiagnosticScope
from replica_drift.core.errors import ConfigurationError
from replica_drift.schemas.report import Diagnostic
from replica_drift.services.diagnostics import record
from replica_drift.services.host_collector import HostCollectionResult, HostCollector

logger = logging.getLogger(__name__)


def dedupe_hosts(hosts: Iterable[str]) -> tuple[list[str], list[str]]:
    """
    Remove duplicate host names (case-insensitive), first occurrence wins.

    Returns:
        (unique hosts in original order, dropped duplicates)
    """
    seen: set[str] = set()
    unique: list[str] = []
    dropped: list[str] = []
    for host in hosts:
        key = host.casefold()
        if key in seen:
            dropped.append(host)
            continue
        seen.add(key)
        unique.append(host)
    return unique, dropped


class HostTaskScheduler:
    """
    Bounded fan-out of HostCollector over a host list.

    Args:
        collector: shared, stateless per-host collector
        throttle_limit: max hosts collected concurrently (>= 1)
        host_timeout_seconds: per-host budget; 0 disables the timeout
    """

    def __init__(
        self,
        collector: HostCollector,
        throttle_limit: int,
        host_timeout_seconds: float = 0,
    ):
        if throttle_limit < 1:
            raise ConfigurationError(
                f"throttle_limit must be >= 1, got {throttle_limit}"
            )
        self.collector = collector
        self.throttle_limit = throttle_limit
        self.host_timeout_seconds = host_timeout_seconds
        # run 層級的 diagnostics（例如重複 host），每次 run() 重設
        self.diagnostics: list[Diagnostic] = []

    async def _collect_one(
        self, host: str, sem: asyncio.Semaphore,
    ) -> HostCollectionResult:
        async with sem:
            t0 = _time.monotonic()
            logger.debug("Collecting %s", host)
            if not self.host_timeout_seconds:
                return await self.collector.collect(host)
            try:
                return await asyncio.wait_for(
                    self.collector.collect(host),
                    timeout=self.host_timeout_seconds,
                )
            except asyncio.TimeoutError:
                return HostCollectionResult.failed(
                    host,
                    f"Host collection timed out after "
                    f"{self.host_timeout_seconds:g}s on {host}",
                    elapsed_seconds=_time.monotonic() - t0,
                )

    async def run(self, hosts: Iterable[str]) -> list[HostCollectionResult]:
        """
        Collect every host once, at most ``throttle_limit`` at a time.

        Returns:
            one HostCollectionResult per unique host, in completion order
        """
        self.diagnostics = []
        unique, dropped = dedupe_hosts(hosts)
        for host in dropped:
            record(
                self.diagnostics,
                DiagnosticLevel.WARNING,
                DiagnosticScope.RUN,
                f"Duplicate host {host} ignored",
                host=host,
                module=__name__,
            )
        if not unique:
            return []

        t0 = _time.monotonic()
        sem = asyncio.Semaphore(self.throttle_limit)
        tasks = [
            asyncio.create_task(self._collect_one(host, sem), name=f"collect:{host}")
            for host in unique
        ]

        results: list[HostCollectionResult] = []
        try:
            for next_done in asyncio.as_completed(tasks):
                result = await next_done
                logger.info(
                    "Host %s finished: %s (%d/%d)",
                    result.host, result.status.value, len(results) + 1, len(unique),
                )
                results.append(result)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()

        logger.info(
            "Collected %d host(s) with throttle_limit=%d in %.2fs",
            len(results), self.throttle_limit, _time.monotonic() - t0,
        )
        return results
