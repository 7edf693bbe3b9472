"""Core module - contains enums, errors, and configuration."""
from .config import settings
from .enums import (
    ComparisonOutcome,
    DiagnosticLevel,
    DiagnosticScope,
    HostCollectionStatus,
    ManagementBackend,
    PairingKind,
    RelationshipType,
    ReplicationMode,
)
from .errors import (
    ConfigurationError,
    HostUnreachableError,
    ManagementQueryError,
    QueryTimeoutError,
    ReplicaDriftError,
)

__all__ = [
    "ComparisonOutcome",
    "ConfigurationError",
    "DiagnosticLevel",
    "DiagnosticScope",
    "HostCollectionStatus",
    "HostUnreachableError",
    "ManagementBackend",
    "ManagementQueryError",
    "PairingKind",
    "QueryTimeoutError",
    "RelationshipType",
    "ReplicaDriftError",
    "ReplicationMode",
    "settings",
]
