"""
Enumeration definitions for the application.

All enums are defined here to maintain consistency and type safety.
"""
from enum import Enum


class ReplicationMode(str, Enum):
    """
    Replication mode of one VM instance, as reported by its host.

    Values match the Hyper-V ``ReplicationMode`` property.
    Anything else (``None``, ``TestReplica``...) is normalised to UNKNOWN
    and never takes part in pairing.
    """

    PRIMARY = "Primary"
    REPLICA = "Replica"
    EXTENDED_REPLICA = "ExtendedReplica"
    UNKNOWN = "Unknown"


class RelationshipType(str, Enum):
    """
    Hyper-V ``ReplicationRelationshipType``.

    - SIMPLE: 一般的 primary → replica 關係
    - EXTENDED: replica → extended replica 的延伸關係（採集時直接過濾）
    """

    SIMPLE = "Simple"
    EXTENDED = "Extended"
    UNKNOWN = "Unknown"


class ComparisonOutcome(str, Enum):
    """
    Outcome of one primary/replica pairing.

    - MATCH: 兩邊設定完全一致
    - MISMATCH: 至少一個欄位不同
    - INDETERMINATE: 至少一邊沒有採集到（host 或 VM 採集失敗）
    - NOT_APPLICABLE: 此 VM 沒有對應的 pairing（例如沒有 extended replica）
    """

    MATCH = "Match"
    MISMATCH = "Mismatch"
    INDETERMINATE = "Indeterminate"
    NOT_APPLICABLE = "NotApplicable"


class PairingKind(str, Enum):
    """Which secondary a pairing compares the primary against."""

    REPLICA = "replica"
    EXTENDED_REPLICA = "extended_replica"


class HostCollectionStatus(str, Enum):
    """
    Per-host collection status for the status table.

    - OK: relationships and every VM snapshot collected
    - PARTIAL: relationships collected, at least one VM skipped
    - FAILED: relationship query failed or timed out, host contributes nothing
    """

    OK = "ok"
    PARTIAL = "partial"
    FAILED = "failed"


class DiagnosticLevel(str, Enum):
    """Severity of a diagnostic record (mirrors logging level names)."""

    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class DiagnosticScope(str, Enum):
    """Where a diagnostic originated."""

    RUN = "run"
    HOST = "host"
    VM = "vm"
    PAIRING = "pairing"


class ManagementBackend(str, Enum):
    """
    Which management-query implementation to use.

    - MOCK: in-memory fleet（開發/測試用）
    - REST: ConfiguredManagementClient，呼叫 HTTP 管理 API
    - WINRM: WinRmManagementClient，直接在 host 上執行 Hyper-V PowerShell
    """

    MOCK = "mock"
    REST = "rest"
    WINRM = "winrm"
