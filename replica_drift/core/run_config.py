"""
Run configuration loader.

讀取 config/hosts.yaml，驗證後回傳 RunConfig::

    hosts:
      - HV-A01
      - HV-B01
    throttle_limit: 4          # optional, defaults to settings.throttle_limit
    host_timeout_seconds: 300  # optional
    output_path: reports/replica-drift.json  # optional

Any problem here is a configuration failure: it raises ConfigurationError
before a single host is contacted.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from replica_drift.core.config import settings
from replica_drift.core.errors import ConfigurationError

logger = logging.getLogger(__name__)


class RunConfig(BaseModel):
    """Validated inputs of one report generation."""

    hosts: list[str] = Field(min_length=1)
    throttle_limit: int = Field(default_factory=lambda: settings.throttle_limit, ge=1)
    host_timeout_seconds: float = Field(
        default_factory=lambda: settings.host_timeout_seconds, ge=0,
    )
    output_path: str = Field(default_factory=lambda: settings.output_path)

    @field_validator("hosts", mode="before")
    @classmethod
    def _strip_hosts(cls, v: Any) -> Any:
        """去除空白與空字串；重複的 host 留給 scheduler 處理（會記錄 warning）。"""
        if isinstance(v, str):
            v = [v]
        if isinstance(v, list):
            return [str(h).strip() for h in v if h is not None and str(h).strip()]
        return v

    @field_validator("output_path")
    @classmethod
    def _output_path_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("output_path must not be empty")
        return v


def load_run_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> RunConfig:
    """
    Load and validate the run configuration.

    Args:
        path: YAML file, defaults to settings.hosts_file
        overrides: values that win over the file (e.g. CLI flags);
            None values are ignored

    Raises:
        ConfigurationError: file missing / unreadable / invalid
    """
    config_path = Path(path or settings.hosts_file)
    if not config_path.exists():
        raise ConfigurationError(f"Host configuration not found: {config_path}")

    try:
        with open(config_path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Cannot read {config_path}: {e}") from e

    if isinstance(raw, list):
        # 允許檔案只寫一個 host 清單
        raw = {"hosts": raw}
    if not isinstance(raw, dict):
        raise ConfigurationError(
            f"{config_path}: expected a mapping, got {type(raw).__name__}"
        )

    data = dict(raw)
    for key, value in (overrides or {}).items():
        if value is not None:
            data[key] = value

    try:
        config = RunConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e

    logger.info(
        "Loaded %d host(s) from %s (throttle_limit=%d)",
        len(config.hosts), config_path, config.throttle_limit,
    )
    return config
