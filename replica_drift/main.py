"""
Replica drift report: command line entry point.

一次執行 = 一次 report generation：讀設定 → 採集所有 host → 寫出 report JSON。

Usage:
    python -m replica_drift                                # config/hosts.yaml, backend 依 .env
    python -m replica_drift --config my-hosts.yaml --throttle-limit 8
    python -m replica_drift --backend mock --fleet config/fleet.example.yaml
    python -m replica_drift --output - --debug             # 輸出到 stdout

Exit codes:
    0  report written (drift or failed hosts do not change the exit code)
    2  configuration error, nothing was collected
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from replica_drift.core.config import settings
from replica_drift.core.enums import ManagementBackend
from replica_drift.core.errors import ConfigurationError
from replica_drift.core.run_config import RunConfig, load_run_config
from replica_drift.fetchers import build_management_client
from replica_drift.schemas.report import DriftReport
from replica_drift.services.report_service import DriftReportService

logger = logging.getLogger("replica_drift")

EXIT_OK = 0
EXIT_CONFIG_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="replica-drift",
        description="Inventory Hyper-V replication and report primary/replica drift",
    )
    parser.add_argument(
        "--config", default=None,
        help=f"Host list YAML (default: {settings.hosts_file})",
    )
    parser.add_argument(
        "--output", default=None,
        help="Report JSON path, '-' for stdout (default: from config)",
    )
    parser.add_argument(
        "--throttle-limit", type=int, default=None,
        help="Max hosts collected concurrently (overrides config)",
    )
    parser.add_argument(
        "--host-timeout", type=float, default=None,
        help="Per-host timeout in seconds, 0 disables (overrides config)",
    )
    parser.add_argument(
        "--backend", choices=[b.value for b in ManagementBackend], default=None,
        help=f"Management backend (default: {settings.management_backend.value})",
    )
    parser.add_argument(
        "--fleet", default=None,
        help="Fleet YAML for the mock backend",
    )
    parser.add_argument("--debug", action="store_true", help="Debug logging")
    return parser


def setup_logging(debug: bool = False) -> None:
    level = logging.DEBUG if debug or settings.app_debug else settings.log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def write_report(report: DriftReport, output: str) -> None:
    payload = report.model_dump_json(indent=2)
    if output == "-":
        sys.stdout.write(payload + "\n")
        return
    path = Path(output)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(payload, encoding="utf-8")
    logger.info("Report written to %s", path)


async def generate(
    run_config: RunConfig,
    backend: str | None = None,
    fleet_file: str | None = None,
) -> DriftReport:
    client = build_management_client(backend, fleet_file=fleet_file)
    async with client:
        return await DriftReportService(client).generate(run_config)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.debug)

    try:
        run_config = load_run_config(
            args.config,
            overrides={
                "throttle_limit": args.throttle_limit,
                "host_timeout_seconds": args.host_timeout,
                "output_path": args.output,
            },
        )
        report = asyncio.run(generate(run_config, args.backend, args.fleet))
    except ConfigurationError as e:
        logger.error("Configuration error: %s", e)
        return EXIT_CONFIG_ERROR

    write_report(report, run_config.output_path)

    if report.failed_hosts:
        logger.warning("Failed hosts: %s", ", ".join(report.failed_hosts))
    logger.info(
        "Summary: %s, health=%s", report.outcome_counts, report.health_counts,
    )
    return EXIT_OK


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
