"""
Diagnostics.

提供統一的診斷紀錄介面：每個被吞下（recovered）的錯誤都同時
1. 寫進 logging（依 level），
2. 產生一筆結構化 Diagnostic，隨報表一起交給 rendering layer。

Diagnostic 清單是 task-local 的：每個 HostCollector 回傳自己的清單，
最後在 AggregationIndex 合併，不會有多個 task 同時 append 同一個 list。
"""
from __future__ import annotations

import logging
import traceback as tb_module

from replica_drift.core.enums import DiagnosticLevel, DiagnosticScope
from replica_drift.core.errors import ManagementQueryError
from replica_drift.schemas.report import Diagnostic

_LOG_LEVELS = {
    DiagnosticLevel.INFO: logging.INFO,
    DiagnosticLevel.WARNING: logging.WARNING,
    DiagnosticLevel.ERROR: logging.ERROR,
}


def format_error_detail(
    exc: BaseException | None = None,
    context: dict[str, str] | None = None,
) -> str:
    """
    格式化錯誤詳情，方便在報表中快速定位問題。

    Args:
        exc: 例外物件
        context: 業務上下文（如 host、VM、查詢名稱）

    Returns:
        格式化後的 detail 字串
    """
    lines: list[str] = []

    if exc is not None:
        lines.append(f"type: {type(exc).__name__}")
        message = exc.detail if isinstance(exc, ManagementQueryError) else str(exc)
        # 截斷過長的訊息
        if len(message) > 300:
            message = message[:300] + "..."
        if message:
            lines.append(f"message: {message}")
        if isinstance(exc, ManagementQueryError):
            lines.append(f"operation: {exc.operation}")
        frames = tb_module.extract_tb(exc.__traceback__) if exc.__traceback__ else []
        if frames:
            last = frames[-1]
            lines.append(f"location: {last.filename}:{last.lineno} ({last.name})")

    for key, value in (context or {}).items():
        lines.append(f"{key}: {value}")

    return "\n".join(lines)


def record(
    diagnostics: list[Diagnostic],
    level: DiagnosticLevel,
    scope: DiagnosticScope,
    summary: str,
    *,
    host: str | None = None,
    vm_name: str | None = None,
    exc: BaseException | None = None,
    context: dict[str, str] | None = None,
    module: str | None = None,
) -> Diagnostic:
    """Log a recovered event and append it to ``diagnostics``."""
    detail = format_error_detail(exc=exc, context=context) if (exc or context) else None
    diagnostic = Diagnostic(
        level=level,
        scope=scope,
        summary=summary,
        detail=detail,
        host=host,
        vm_name=vm_name,
        module=module,
    )
    logging.getLogger(module or __name__).log(
        _LOG_LEVELS[level], "%s%s", summary, f": {exc}" if exc else "",
    )
    diagnostics.append(diagnostic)
    return diagnostic
