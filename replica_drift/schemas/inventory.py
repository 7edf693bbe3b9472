"""
Raw inventory models — management backend 與下游程式之間的嚴格契約。

架構總覽：
    BaseManagementClient (WinRM / REST / Mock)
        ↓ ReplicationRelationship, VMHandle, MemoryInfo, ProcessorInfo,
          VirtualDiskInfo, StorageControllerInfo
    Settings Normalizer
        ↓ VMSettingsSnapshot

Backends hand over whatever the host returned; the models below accept both
the PowerShell property names (``VMName``, ``ReplicationHealth``, ``Size``...)
and snake_case, so a ``ConvertTo-Json`` payload and a REST payload validate
the same way.

- 枚舉欄位透過 before-validator 自動正規化（大小寫不敏感，也接受 Hyper-V 的整數值）
  例如 "primary", "Primary", 1 → ReplicationMode.PRIMARY
- 無法匹配枚舉時 → UNKNOWN（不拋錯，pairing 時直接排除）
- state / health 為不透明字串，原樣帶到報表
"""
from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from replica_drift.core.enums import RelationshipType, ReplicationMode

# Hyper-V 的整數枚舉值（ConvertTo-Json 未轉字串時會出現）
_MODE_BY_INT = {
    1: ReplicationMode.PRIMARY,
    2: ReplicationMode.REPLICA,
    4: ReplicationMode.EXTENDED_REPLICA,
}
_RELATIONSHIP_BY_INT = {
    0: RelationshipType.SIMPLE,
    1: RelationshipType.EXTENDED,
}

# Windows PowerShell 5.1 的 DateTime JSON 格式: "/Date(1700000000000)/"
_MS_DATE_RE = re.compile(r"^/Date\((-?\d+)(?:[+-]\d{4})?\)/$")


# ── Helper ───────────────────────────────────────────────────────


def _normalize_enum(v: Any, enum_cls: type, by_int: dict[int, Any]) -> Any:
    """將字串/整數正規化為枚舉成員，無法匹配時回傳 UNKNOWN。"""
    if v is None:
        return enum_cls.UNKNOWN
    if isinstance(v, enum_cls):
        return v
    if isinstance(v, int) and not isinstance(v, bool):
        return by_int.get(v, enum_cls.UNKNOWN)
    text = str(v).strip().replace(" ", "").lower()
    for member in enum_cls:
        if member.value.lower() == text:
            return member
    return enum_cls.UNKNOWN


def _to_text(v: Any) -> str:
    """不透明欄位：None → ""，其餘轉字串。"""
    if v is None:
        return ""
    return str(v).strip()


def _parse_ms_date(v: Any) -> Any:
    """Accept "/Date(ms)/" in addition to ISO strings and datetimes."""
    if isinstance(v, str):
        m = _MS_DATE_RE.match(v.strip())
        if m:
            return datetime.fromtimestamp(int(m.group(1)) / 1000, tz=UTC)
        if not v.strip():
            return None
    return v


# ── Replication ──────────────────────────────────────────────────


class ReplicationRelationship(BaseModel):
    """One VM-replication edge as reported by one host.

    ``host`` is the reporting host; HostCollector stamps it with the
    configured host identity so it lines up with the snapshot index keys.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    vm_name: str = Field(validation_alias=AliasChoices("vm_name", "VMName", "Name"))
    host: str = Field(
        default="",
        validation_alias=AliasChoices("host", "ComputerName", "HostName"),
    )
    mode: ReplicationMode = Field(
        default=ReplicationMode.UNKNOWN,
        validation_alias=AliasChoices("mode", "Mode", "ReplicationMode"),
    )
    relationship_type: RelationshipType = Field(
        default=RelationshipType.SIMPLE,
        validation_alias=AliasChoices(
            "relationship_type", "RelationshipType", "ReplicationRelationshipType",
        ),
    )
    primary_server: str = Field(
        default="",
        validation_alias=AliasChoices(
            "primary_server", "PrimaryServer", "PrimaryServerName",
        ),
    )
    replica_server: str = Field(
        default="",
        validation_alias=AliasChoices(
            "replica_server", "ReplicaServer", "CurrentReplicaServerName",
            "ReplicaServerName",
        ),
    )
    state: str = Field(
        default="",
        validation_alias=AliasChoices("state", "State", "ReplicationState"),
    )
    health: str = Field(
        default="",
        validation_alias=AliasChoices("health", "Health", "ReplicationHealth"),
    )
    frequency_sec: int | None = Field(
        default=None,
        ge=0,
        validation_alias=AliasChoices(
            "frequency_sec", "FrequencySec", "ReplicationFrequencySec",
        ),
    )
    last_replication_time: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("last_replication_time", "LastReplicationTime"),
    )

    @field_validator("mode", mode="before")
    @classmethod
    def normalize_mode(cls, v: Any) -> Any:
        return _normalize_enum(v, ReplicationMode, _MODE_BY_INT)

    @field_validator("relationship_type", mode="before")
    @classmethod
    def normalize_relationship_type(cls, v: Any) -> Any:
        if v is None:
            return RelationshipType.SIMPLE
        return _normalize_enum(v, RelationshipType, _RELATIONSHIP_BY_INT)

    @field_validator(
        "host", "primary_server", "replica_server", "state", "health",
        mode="before",
    )
    @classmethod
    def normalize_text(cls, v: Any) -> str:
        return _to_text(v)

    @field_validator("vm_name", mode="before")
    @classmethod
    def strip_vm_name(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("last_replication_time", mode="before")
    @classmethod
    def parse_last_replication_time(cls, v: Any) -> Any:
        return _parse_ms_date(v)

    @property
    def partner_host(self) -> str:
        """The host on the other end of this edge."""
        if self.mode == ReplicationMode.PRIMARY:
            return self.replica_server
        return self.primary_server

    @property
    def is_extended_type(self) -> bool:
        return self.relationship_type == RelationshipType.EXTENDED


# ── VM settings (raw, per category) ──────────────────────────────


class VMHandle(BaseModel):
    """Opaque reference to one VM on one host, returned by get_vm()."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    host: str = Field(validation_alias=AliasChoices("host", "ComputerName"))
    name: str = Field(validation_alias=AliasChoices("name", "Name", "VMName"))
    vm_id: str | None = Field(
        default=None, validation_alias=AliasChoices("vm_id", "Id", "VMId"),
    )

    @field_validator("vm_id", mode="before")
    @classmethod
    def stringify_id(cls, v: Any) -> Any:
        return None if v is None else str(v)


class MemoryInfo(BaseModel):
    """Get-VMMemory, all values in bytes."""

    model_config = ConfigDict(populate_by_name=True)

    startup: int = Field(ge=0, validation_alias=AliasChoices("startup", "Startup"))
    minimum: int = Field(ge=0, validation_alias=AliasChoices("minimum", "Minimum"))
    maximum: int = Field(ge=0, validation_alias=AliasChoices("maximum", "Maximum"))
    dynamic_memory_enabled: bool = Field(
        default=False,
        validation_alias=AliasChoices("dynamic_memory_enabled", "DynamicMemoryEnabled"),
    )


class ProcessorInfo(BaseModel):
    """Get-VMProcessor."""

    model_config = ConfigDict(populate_by_name=True)

    count: int = Field(ge=1, validation_alias=AliasChoices("count", "Count"))


class VirtualDiskInfo(BaseModel):
    """One attached virtual hard disk (Get-VMHardDiskDrive | Get-VHD).

    path / controller 欄位只用來排序，不進入比較。
    """

    model_config = ConfigDict(populate_by_name=True)

    path: str = Field(default="", validation_alias=AliasChoices("path", "Path"))
    size: int = Field(ge=0, validation_alias=AliasChoices("size", "Size"))
    controller_type: str = Field(
        default="",
        validation_alias=AliasChoices("controller_type", "ControllerType"),
    )
    controller_number: int | None = Field(
        default=None,
        validation_alias=AliasChoices("controller_number", "ControllerNumber"),
    )
    controller_location: int | None = Field(
        default=None,
        validation_alias=AliasChoices("controller_location", "ControllerLocation"),
    )

    @field_validator("path", "controller_type", mode="before")
    @classmethod
    def normalize_text(cls, v: Any) -> str:
        return _to_text(v)


class StorageControllerInfo(BaseModel):
    """One IDE / SCSI controller (Get-VMIdeController / Get-VMScsiController).

    drive_count 可直接給，也可由 Drives 清單推算。
    """

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(validation_alias=AliasChoices("name", "Name"))
    drive_count: int = Field(
        default=0,
        ge=0,
        validation_alias=AliasChoices("drive_count", "DriveCount"),
    )

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> StorageControllerInfo:
        """Build from a payload that may carry a ``Drives`` list instead of a count."""
        data = dict(payload)
        if "drive_count" not in data and "DriveCount" not in data:
            drives = data.get("Drives", data.get("drives"))
            if isinstance(drives, dict):
                drives = [drives]
            data["drive_count"] = len(drives or [])
        return cls.model_validate(data)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v
