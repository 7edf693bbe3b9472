"""Tests for replica_drift.fetchers.winrm_client (pywinrm session mocked)."""
from __future__ import annotations

import json
import time
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
from pydantic import SecretStr
from winrm.exceptions import WinRMError, WinRMTransportError

from replica_drift.core.config import WinRmConfig
from replica_drift.core.enums import ReplicationMode
from replica_drift.core.errors import (
    HostUnreachableError,
    ManagementQueryError,
    QueryTimeoutError,
)
from replica_drift.fetchers.winrm_client import WinRmManagementClient, _ps_quote
from replica_drift.schemas.inventory import VMHandle

CONFIG = WinRmConfig(
    transport="ntlm",
    username="CORP\\svc-inventory",
    password=SecretStr("pw"),
    operation_timeout=5,
)


def _result(payload=None, status_code: int = 0, stdout: str | None = None, stderr: str = ""):
    out = stdout if stdout is not None else json.dumps(payload)
    return SimpleNamespace(
        status_code=status_code,
        std_out=out.encode("utf-8"),
        std_err=stderr.encode("utf-8"),
    )


@pytest.fixture
def session():
    with patch("replica_drift.fetchers.winrm_client.winrm.Session") as session_cls:
        instance = MagicMock()
        session_cls.return_value = instance
        instance.session_cls = session_cls
        yield instance


class TestPsQuote:
    def test_quotes(self):
        assert _ps_quote("sql1") == "'sql1'"
        assert _ps_quote("o'brien") == "'o''brien'"


class TestSession:
    @pytest.mark.asyncio
    async def test_session_per_host_with_config(self, session):
        session.run_ps.return_value = _result([])
        client = WinRmManagementClient(CONFIG)

        await client.get_replication_relationships("HV-A01")
        await client.get_replication_relationships("HV-A01")

        session.session_cls.assert_called_once_with(
            "https://HV-A01:5986/wsman",
            auth=("CORP\\svc-inventory", "pw"),
            transport="ntlm",
            server_cert_validation="validate",
        )


class TestQueries:
    @pytest.mark.asyncio
    async def test_replication_single_object_and_host(self, session):
        session.run_ps.return_value = _result({
            "VMName": "sql1", "Mode": "Primary", "RelationshipType": "Simple",
            "PrimaryServer": "HV-A01", "ReplicaServer": "HV-B01",
            "State": "Replicating", "Health": "Normal", "FrequencySec": 300,
            "LastReplicationTime": "2026-01-05T08:00:00.0000000Z",
        })
        client = WinRmManagementClient(CONFIG)

        [rel] = await client.get_replication_relationships("HV-A01")
        assert rel.host == "HV-A01"
        assert rel.mode == ReplicationMode.PRIMARY
        assert rel.last_replication_time.year == 2026
        assert "Get-VMReplication" in session.run_ps.call_args.args[0]

    @pytest.mark.asyncio
    async def test_vm_name_is_quoted(self, session):
        session.run_ps.return_value = _result({"Name": "o'brien", "Id": "guid"})
        client = WinRmManagementClient(CONFIG)

        handle = await client.get_vm("HV-A01", "o'brien")
        script = session.run_ps.call_args.args[0]
        assert "Get-VM -Name 'o''brien'" in script
        assert handle.vm_id == "guid"

    @pytest.mark.asyncio
    async def test_settings_queries(self, session):
        handle = VMHandle(host="HV-A01", name="sql1")
        client = WinRmManagementClient(CONFIG)

        session.run_ps.return_value = _result(
            {"Startup": 2048, "Minimum": 1024, "Maximum": 4096, "DynamicMemoryEnabled": True},
        )
        memory = await client.get_memory(handle)
        session.run_ps.return_value = _result({"Count": 4})
        processor = await client.get_processor(handle)
        session.run_ps.return_value = _result([
            {"Path": "os.vhdx", "Size": 10, "ControllerType": "SCSI",
             "ControllerNumber": 0, "ControllerLocation": 0},
        ])
        disks = await client.get_virtual_disks(handle)
        session.run_ps.return_value = _result([
            {"Name": "IDE Controller 0", "DriveCount": 0},
            {"Name": "SCSI Controller", "DriveCount": 1},
        ])
        controllers = await client.get_storage_controllers(handle)

        assert memory.maximum == 4096
        assert processor.count == 4
        assert disks[0].controller_type == "SCSI"
        assert [c.drive_count for c in controllers] == [0, 1]
        assert "Get-VMScsiController -VMName 'sql1'" in session.run_ps.call_args.args[0]

    @pytest.mark.asyncio
    async def test_bom_and_empty_output(self, session):
        session.run_ps.return_value = _result(stdout="\ufeff[]")
        client = WinRmManagementClient(CONFIG)
        assert await client.get_replication_relationships("HV-A01") == []

        session.run_ps.return_value = _result(stdout="")
        assert await client.get_replication_relationships("HV-A01") == []


class TestErrors:
    @pytest.mark.asyncio
    async def test_transport_error_is_unreachable(self, session):
        session.run_ps.side_effect = WinRMTransportError("http", 500, "refused")
        client = WinRmManagementClient(CONFIG)
        with pytest.raises(HostUnreachableError):
            await client.get_replication_relationships("HV-A01")

    @pytest.mark.asyncio
    async def test_connection_error_is_unreachable(self, session):
        session.run_ps.side_effect = ConnectionRefusedError("refused")
        client = WinRmManagementClient(CONFIG)
        with pytest.raises(HostUnreachableError):
            await client.get_replication_relationships("HV-A01")

    @pytest.mark.asyncio
    async def test_winrm_error(self, session):
        session.run_ps.side_effect = WinRMError("access denied")
        client = WinRmManagementClient(CONFIG)
        with pytest.raises(ManagementQueryError, match="access denied"):
            await client.get_replication_relationships("HV-A01")

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, session):
        session.run_ps.return_value = _result(
            status_code=1, stdout="", stderr="Get-VM : Hyper-V was unable to find a virtual machine",
        )
        client = WinRmManagementClient(CONFIG)
        with pytest.raises(ManagementQueryError, match="exit=1") as exc_info:
            await client.get_vm("HV-A01", "ghost")
        assert exc_info.value.operation == "get_vm"

    @pytest.mark.asyncio
    async def test_invalid_json(self, session):
        session.run_ps.return_value = _result(stdout="WARNING: something")
        client = WinRmManagementClient(CONFIG)
        with pytest.raises(ManagementQueryError, match="Invalid JSON"):
            await client.get_replication_relationships("HV-A01")

    @pytest.mark.asyncio
    async def test_operation_timeout(self, session):
        session.run_ps.side_effect = lambda script: time.sleep(1.5) or _result([])
        client = WinRmManagementClient(CONFIG.model_copy(update={"operation_timeout": 1.0}))
        with pytest.raises(QueryTimeoutError):
            await client.get_replication_relationships("HV-A01")
