"""Configuration management for Profile Bridge using Pydantic.

This module provides type-safe configuration models for the two platform
accounts, throttling and concurrency tuning, logging, and output paths.
"""

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from profile_bridge.resources import EntityType, get_info, normalize_entity_type

DEFAULT_API_URL = "https://api.tago.io"


class PathConfig(BaseModel):
    """Configuration for output paths."""

    backup_dir: str = Field(
        default="exportBackup",
        description="Directory for pre-change snapshots written during export",
    )
    report_dir: str = Field(default="reports", description="Directory for run reports")


class AccountConfig(BaseModel):
    """Connection settings for one platform account (source or target)."""

    url: str = Field(default=DEFAULT_API_URL, description="API base URL for the account's region")
    token: str = Field(..., description="Account or profile token")
    label: str | None = Field(default=None, description="Display name used in logs and prompts")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    timeout: int = Field(default=60, ge=1, le=1200, description="API request timeout in seconds")

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate and normalize URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("URL must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("token")
    @classmethod
    def validate_token(cls, v: str) -> str:
        """Validate token is not empty."""
        if not v or v.strip() == "":
            raise ValueError("Token cannot be empty")
        return v


class PerformanceConfig(BaseModel):
    """Throttling and concurrency tuning."""

    rate_limit: int = Field(
        default=10, ge=0, le=100, description="Requests per second per client (0 = unlimited)"
    )
    max_connections: int = Field(default=20, ge=1, le=200, description="HTTP connection pool size")
    max_keepalive_connections: int = Field(
        default=10, ge=1, le=200, description="Keep-alive connections kept in the pool"
    )
    page_size: int = Field(default=100, ge=1, le=10000, description="Items per listing page")
    retry_attempts: int = Field(
        default=1,
        ge=1,
        le=10,
        description="Attempts per request on connection failures or timeouts (1 = no retry)",
    )
    concurrency: dict[str, int] = Field(
        default_factory=dict, description="Per entity type worker count overrides"
    )
    delay_ms: dict[str, int] = Field(
        default_factory=dict, description="Per entity type post-item delay overrides (ms)"
    )
    widget_delay_ms: int = Field(
        default=500, ge=0, le=10000, description="Pause after each widget written to a dashboard"
    )

    @field_validator("concurrency", "delay_ms")
    @classmethod
    def validate_overrides(cls, v: dict[str, int]) -> dict[str, int]:
        """Normalize entity type keys and reject negative values."""
        normalized = {}
        for name, value in v.items():
            if value < 0:
                raise ValueError(f"Value for {name} must be non-negative")
            normalized[normalize_entity_type(name).value] = value
        return normalized

    def concurrency_for(self, entity_type: EntityType) -> int:
        return self.concurrency.get(entity_type.value, get_info(entity_type).concurrency)

    def delay_for(self, entity_type: EntityType) -> float:
        """Post-item delay in seconds."""
        delay_ms = self.delay_ms.get(entity_type.value, get_info(entity_type).delay_ms)
        return delay_ms / 1000


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="WARNING",
        description="Console log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    file_level: str = Field(
        default="DEBUG",
        description="File log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )
    format: str = Field(default="json", description="Log format (json or console)")
    file: str | None = Field(default="logs/profile-bridge.log", description="Log file path")

    disable_progress: bool = Field(
        default=False, description="Disable live progress display (useful for CI/logging)"
    )

    log_payloads: bool = Field(
        default=False,
        description=(
            "Enable request/response payload logging at DEBUG level. "
            "Tokens and passwords are redacted."
        ),
    )
    max_payload_size: int = Field(
        default=10000,
        ge=100,
        le=1000000,
        description="Maximum payload size (characters) to log. Larger payloads will be truncated.",
    )

    @field_validator("level", "file_level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of: {', '.join(valid_levels)}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        valid_formats = ["json", "console"]
        v_lower = v.lower()
        if v_lower not in valid_formats:
            raise ValueError(f"Log format must be one of: {', '.join(valid_formats)}")
        return v_lower


class SyncConfig(BaseSettings):
    """Main sync configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PROFILE_BRIDGE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Accounts (source is only needed for export)
    source: AccountConfig | None = Field(default=None, description="Account entities are read from")
    target: AccountConfig = Field(..., description="Account entities are written to")

    export_tag: str = Field(
        default="export_id",
        description="Tag key correlating source and target entities during export",
    )
    entities: list[EntityType] = Field(
        default_factory=list, description="Entity types to process (empty = all)"
    )
    archive_dir: str | None = Field(
        default=None, description="Extracted backup directory used as restore source"
    )

    paths: PathConfig = Field(default_factory=PathConfig, description="Path configuration")
    performance: PerformanceConfig = Field(
        default_factory=PerformanceConfig, description="Performance configuration"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )

    @field_validator("entities", mode="before")
    @classmethod
    def validate_entities(cls, v: list[str] | None) -> list[EntityType]:
        """Accept aliases and drop duplicates while keeping order."""
        result: list[EntityType] = []
        for name in v or []:
            entity_type = normalize_entity_type(name)
            if entity_type not in result:
                result.append(entity_type)
        return result

    @field_validator("export_tag")
    @classmethod
    def validate_export_tag(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("export_tag cannot be empty")
        return v.strip()


def load_config_from_yaml(config_path: str | Path) -> SyncConfig:
    """Load configuration from YAML file.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        SyncConfig: Loaded configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config file is invalid
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        config_data = yaml.safe_load(f)

    if not config_data:
        raise ValueError(f"Empty configuration file: {config_path}")

    config_data = _expand_env_vars(config_data)

    return SyncConfig(**config_data)


def _expand_env_vars(data: dict) -> dict:
    """Recursively expand ${VAR_NAME} references in config values.

    Args:
        data: Configuration dictionary

    Returns:
        dict: Dictionary with expanded environment variables
    """
    if isinstance(data, dict):
        return {k: _expand_env_vars(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item) for item in data]
    elif isinstance(data, str):
        if data.startswith("${") and data.endswith("}"):
            var_name = data[2:-1]
            env_value = os.environ.get(var_name)
            if env_value is None:
                raise ValueError(
                    f"Environment variable '{var_name}' not found. "
                    f"Please set it in your environment or .env file."
                )
            return env_value
        return data
    else:
        return data
