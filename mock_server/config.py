"""Mock Server 設定。"""
from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class MockServerSettings(BaseSettings):
    """Mock management server 的配置。讀取同一個 .env 檔。"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # 與 MockManagementClient 共用同一份 fleet 描述
    mock_fleet_file: str = "config/fleet.example.yaml"

    # 所有查詢額外延遲（秒），模擬慢速的管理閘道
    mock_base_delay: float = 0.0

    # 服務器設定
    mock_server_port: int = 9999


settings = MockServerSettings()
