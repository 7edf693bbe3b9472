"""
Fetchers package.

提供管理查詢抽象層，處理「如何向 Hyper-V host 讀取資料」。

核心 API:
    - BaseManagementClient: 所有 backend 的基底類別
    - build_management_client(): 依設定建立 mock / rest / winrm backend
"""
from replica_drift.fetchers.base import BaseManagementClient, QUERY_OPERATIONS
from replica_drift.fetchers.registry import build_management_client

__all__ = [
    "BaseManagementClient",
    "QUERY_OPERATIONS",
    "build_management_client",
]
