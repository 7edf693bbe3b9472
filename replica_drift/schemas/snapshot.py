"""
Normalised VM settings snapshot.

One VMSettingsSnapshot per (host, VM name) per generation. Frozen: never
mutated after the normalizer builds it.
"""
from __future__ import annotations

from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field


class SnapshotKey(NamedTuple):
    """Host-qualified index key."""

    host: str
    vm_name: str

    def __str__(self) -> str:
        return f"{self.host}/{self.vm_name}"


class ControllerSummary(BaseModel):
    """A storage controller reduced to its name and attached-drive count."""

    model_config = ConfigDict(frozen=True)

    name: str
    drive_count: int = Field(ge=0)


class VMSettingsSnapshot(BaseModel):
    """Canonical, comparable settings of one VM instance on one host.

    ``host`` is stored for indexing only. The equality engine never looks at
    it (see replica_drift.services.equality.COMPARED_FIELDS).
    """

    model_config = ConfigDict(frozen=True)

    host: str
    vm_name: str

    memory_startup: int = Field(ge=0, description="Startup RAM (bytes)")
    memory_minimum: int = Field(ge=0, description="Dynamic memory minimum (bytes)")
    memory_maximum: int = Field(ge=0, description="Dynamic memory maximum (bytes)")
    processor_count: int = Field(ge=1)

    # 已排序：比較時順序有意義
    disk_sizes: tuple[int, ...] = ()
    controllers: tuple[ControllerSummary, ...] = ()

    @property
    def key(self) -> SnapshotKey:
        return SnapshotKey(self.host, self.vm_name)
