"""
Management client factory.

應用啟動時呼叫 build_management_client()，根據 MANAGEMENT_BACKEND 建立
mock / rest / winrm 其中一種 backend::

    build_management_client()
        ├─ mock  → MockManagementClient(MockFleet.from_yaml(settings.mock_fleet_file))
        ├─ rest  → ConfiguredManagementClient()          # settings.management_source
        └─ winrm → WinRmManagementClient()               # settings.winrm

三者共用 BaseManagementClient 介面，HostCollector 不需要知道是哪一種。
"""
from __future__ import annotations

import logging

import yaml

from replica_drift.core.config import settings
from replica_drift.core.enums import ManagementBackend
from replica_drift.core.errors import ConfigurationError
from replica_drift.fetchers.base import BaseManagementClient

logger = logging.getLogger(__name__)


def build_management_client(
    backend: ManagementBackend | str | None = None,
    fleet_file: str | None = None,
) -> BaseManagementClient:
    """
    Create the management client for this run.

    Args:
        backend: overrides settings.management_backend
        fleet_file: overrides settings.mock_fleet_file (mock backend only)

    Raises:
        ConfigurationError: unknown backend or missing backend config
    """
    try:
        selected = ManagementBackend(backend or settings.management_backend)
    except ValueError as e:
        available = ", ".join(b.value for b in ManagementBackend)
        raise ConfigurationError(
            f"Unknown management backend '{backend}'. Available: [{available}]"
        ) from e

    if selected == ManagementBackend.MOCK:
        from replica_drift.fetchers.mock import MockFleet, MockManagementClient

        path = fleet_file or settings.mock_fleet_file
        try:
            fleet = MockFleet.from_yaml(path)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot load mock fleet {path}: {e}") from e
        client: BaseManagementClient = MockManagementClient(fleet)

    elif selected == ManagementBackend.REST:
        from replica_drift.fetchers.configured import ConfiguredManagementClient

        if not settings.management_source.base_url:
            raise ConfigurationError(
                "MANAGEMENT_SOURCE__BASE_URL is required for the rest backend"
            )
        client = ConfiguredManagementClient()

    else:
        from replica_drift.fetchers.winrm_client import WinRmManagementClient

        client = WinRmManagementClient()

    logger.info("Using %s management backend: %r", selected.value, client)
    return client
