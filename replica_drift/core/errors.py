"""
Exception hierarchy.

ConfigurationError 是唯一會中止整個執行的錯誤（在採集開始前）。
ManagementQueryError 系列一律在 HostCollector 邊界被攔截，轉成 diagnostic。
"""
from __future__ import annotations


class ReplicaDriftError(Exception):
    """Base class for all application errors."""


class ConfigurationError(ReplicaDriftError):
    """Invalid or missing run configuration (no hosts, bad throttle limit...)."""


class ManagementQueryError(ReplicaDriftError):
    """A management query against one host failed."""

    def __init__(self, host: str, operation: str, message: str):
        super().__init__(f"{operation} on {host} failed: {message}")
        self.host = host
        self.operation = operation
        self.detail = message


class HostUnreachableError(ManagementQueryError):
    """The host did not answer at all (connection refused, DNS, 504...)."""


class QueryTimeoutError(ManagementQueryError):
    """A single management query exceeded its timeout."""
