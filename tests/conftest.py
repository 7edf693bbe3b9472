"""Root conftest — shared fixtures for all tests."""
from __future__ import annotations

import os
from pathlib import Path

import pytest

# Settings are read at import time; keep tests independent of any local .env
os.environ.setdefault("MANAGEMENT_BACKEND", "mock")
os.environ.setdefault("TIMEZONE", "UTC")

from replica_drift.fetchers.mock import MockFleet, MockManagementClient  # noqa: E402
from tests.factories import two_host_fleet  # noqa: E402

CONFIG_DIR = Path(__file__).parent.parent / "config"


@pytest.fixture
def scenario_fleet() -> MockFleet:
    """HV-A primary of sql1 / web1, HV-B replica of both, identical settings."""
    return two_host_fleet()


@pytest.fixture
def mock_client(scenario_fleet: MockFleet) -> MockManagementClient:
    return MockManagementClient(scenario_fleet)


@pytest.fixture
def example_fleet_file() -> Path:
    """config/fleet.example.yaml"""
    return CONFIG_DIR / "fleet.example.yaml"


@pytest.fixture
def example_hosts_file() -> Path:
    """config/hosts.yaml"""
    return CONFIG_DIR / "hosts.yaml"
