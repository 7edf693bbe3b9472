"""
Application configuration using pydantic-settings.

All settings are loaded from environment variables or .env file.
The host list and throttle limit of a run live in config/hosts.yaml
(see replica_drift.core.run_config); values there override these defaults.

Nested config 使用 ``__`` 分隔符：
    MANAGEMENT_SOURCE__BASE_URL=http://hv-gateway:8080
    MANAGEMENT_SOURCE__TIMEOUT=30
    WINRM__TRANSPORT=kerberos
"""
from functools import lru_cache

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from replica_drift.core.enums import ManagementBackend


class SourceConfig(BaseModel):
    """Connection config for the REST management gateway."""

    base_url: str = ""
    timeout: int = 30
    token: str = ""


class ManagementEndpointConfig(BaseModel):
    """Per-query endpoint templates for ConfiguredManagementClient.

    屬性名與 BaseManagementClient 的查詢方法一一對應。
    支援佔位符: {host}, {vm_name}, {vm_id}。

    .env 設定範例::

        MANAGEMENT_ENDPOINT__GET_MEMORY=/api/hosts/{host}/vms/{vm_name}/memory
    """

    get_replication_relationships: str = "/api/hosts/{host}/replication"
    get_vm: str = "/api/hosts/{host}/vms/{vm_name}"
    get_memory: str = "/api/hosts/{host}/vms/{vm_name}/memory"
    get_processor: str = "/api/hosts/{host}/vms/{vm_name}/processor"
    get_virtual_disks: str = "/api/hosts/{host}/vms/{vm_name}/disks"
    get_storage_controllers: str = "/api/hosts/{host}/vms/{vm_name}/controllers"


class WinRmConfig(BaseModel):
    """WinRM channel config for WinRmManagementClient.

    認證由 pywinrm transport 處理（kerberos / ntlm / credssp），
    本程式只負責把設定原樣傳下去。
    """

    transport: str = "kerberos"
    scheme: str = "https"
    port: int = 5986
    username: str = ""
    password: SecretStr = SecretStr("")
    server_cert_validation: str = "validate"
    operation_timeout: float = 120.0


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_nested_delimiter="__",
    )

    # Management backend
    management_backend: ManagementBackend = Field(
        default=ManagementBackend.WINRM,
        description="Which management-query implementation to use (mock / rest / winrm).",
    )
    management_source: SourceConfig = SourceConfig()
    management_endpoint: ManagementEndpointConfig = ManagementEndpointConfig()
    winrm: WinRmConfig = WinRmConfig()
    mock_fleet_file: str = Field(
        default="config/fleet.example.yaml",
        description="Fleet description used by the mock backend and mock_server.",
    )

    # Run
    hosts_file: str = Field(
        default="config/hosts.yaml",
        description="YAML file holding the host list and run options.",
    )
    throttle_limit: int = Field(
        default=4,
        description="Maximum number of hosts collected concurrently.",
    )
    host_timeout_seconds: float = Field(
        default=300.0,
        description="Per-host collection timeout in seconds (0 disables it).",
    )
    stale_after_minutes: float = Field(
        default=60.0,
        description="A generation that took longer than this is flagged as stale.",
    )
    output_path: str = Field(
        default="reports/replica-drift.json",
        description="Where the report model is written.",
    )

    # Application
    app_name: str = Field(default="replica-drift", description="Application name")
    app_debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # Timezone
    timezone: str = Field(
        default="UTC",
        description="Timezone for report timestamps (e.g. 'UTC', 'Europe/Berlin').",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance (Singleton pattern)."""
    return Settings()


# Global settings instance
settings = get_settings()
