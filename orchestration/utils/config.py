"""Application configuration management.

This module provides configuration loading from environment variables and YAML files.
"""

import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator


class Environment(str, Enum):
    """Application environment types."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class LogFormat(str, Enum):
    """Log output format types."""

    JSON = "json"
    CONSOLE = "console"


class AppSettings(BaseModel):
    """Application settings."""

    env: Environment = Field(
        default=Environment.DEVELOPMENT, description="Application environment"
    )
    debug: bool = Field(default=False, description="Debug mode")
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=8000, description="Server port")
    name: str = Field(default="Agent Orchestration", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    workspace_id: str = Field(
        default="default", description="Workspace (tenant) served by this process"
    )

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        if not 1 <= v <= 65535:
            raise ValueError("Port must be between 1 and 65535")
        return v

    @field_validator("workspace_id")
    @classmethod
    def validate_workspace_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("workspace_id must not be empty")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: LogFormat = Field(default=LogFormat.JSON, description="Log format")

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v_upper


class MemoryConfig(BaseModel):
    """Shared memory expiry and promotion settings."""

    short_term_ttl_hours: int = Field(default=24, description="short_term expiry")
    medium_term_ttl_days: int = Field(default=30, description="medium_term expiry")
    short_to_medium_importance: int = Field(default=70, ge=0, le=100)
    short_to_medium_access: int = Field(default=3, ge=0)
    medium_to_long_importance: int = Field(default=85, ge=0, le=100)
    medium_to_long_access: int = Field(default=10, ge=0)
    default_limit: int = Field(default=50, description="Default retrieve limit")

    @field_validator("short_term_ttl_hours", "medium_term_ttl_days", "default_limit")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Value must be positive")
        return v


class WorkflowConfig(BaseModel):
    """Workflow engine settings."""

    scheduler_workers: int = Field(default=4, description="Step queue workers")
    default_max_attempts: int = Field(default=3, description="Default retry budget")
    default_backoff_ms: int = Field(default=1000, description="Default retry backoff")
    stale_execution_hours: int = Field(
        default=24, description="Age after which a running execution is failed"
    )
    list_limit: int = Field(default=20, description="Default execution list size")
    auto_complete: bool = Field(
        default=False,
        description="Treat dispatched steps as completed without a callback",
    )

    @field_validator("scheduler_workers", "default_max_attempts", "stale_execution_hours")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("Value must be positive")
        return v


class AutonomyConfig(BaseModel):
    """Approval gate settings."""

    approval_expiry_hours: int = Field(
        default=24, description="Default pending action lifetime"
    )
    high_pending_threshold: int = Field(
        default=10, description="Pending count that triggers an alert"
    )
    notify_user_ids: list[str] = Field(
        default_factory=list, description="Users notified about approvals"
    )
    risk_rules: dict[str, list[str]] = Field(
        default_factory=dict,
        description="Per risk level action patterns merged over the built-in rules",
    )

    @field_validator("risk_rules")
    @classmethod
    def validate_risk_rules(cls, v: dict[str, list[str]]) -> dict[str, list[str]]:
        allowed = {"low", "medium", "high", "critical"}
        unknown = set(v) - allowed
        if unknown:
            raise ValueError(f"Unknown risk levels: {sorted(unknown)}")
        return v


class TemplateConfig(BaseModel):
    """Template catalog settings."""

    directory: str | None = Field(
        default=None,
        description="Catalog root with teams/ and workflows/; the bundled catalog when unset",
    )


class AppConfig(BaseModel):
    """Main application configuration."""

    app: AppSettings = Field(default_factory=AppSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    workflow: WorkflowConfig = Field(default_factory=WorkflowConfig)
    autonomy: AutonomyConfig = Field(default_factory=AutonomyConfig)
    templates: TemplateConfig = Field(default_factory=TemplateConfig)

    @classmethod
    def from_env(cls, env_file: str | Path | None = None) -> "AppConfig":
        """Load configuration from environment variables.

        Args:
            env_file: Optional path to .env file

        Returns:
            AppConfig instance populated from environment
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        return cls._apply_env_overrides(cls())

    @classmethod
    def from_yaml(cls, yaml_path: str | Path) -> "AppConfig":
        """Load configuration from YAML file.

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            AppConfig instance populated from YAML

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            ValueError: If YAML content is invalid
        """
        path = Path(yaml_path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ValueError("YAML content must be a dictionary")

        return cls._from_yaml_dict(data)

    @classmethod
    def _from_yaml_dict(cls, data: dict[str, Any]) -> "AppConfig":
        """Create config from parsed YAML dictionary."""
        config_data: dict[str, Any] = {}

        if "app" in data:
            app_data = dict(data["app"])
            if "env" in app_data:
                app_data["env"] = Environment(app_data["env"])
            config_data["app"] = AppSettings(**app_data)

        if "logging" in data:
            log_data = dict(data["logging"])
            if "format" in log_data:
                log_data["format"] = LogFormat(log_data["format"])
            config_data["logging"] = LoggingConfig(**log_data)

        if "memory" in data:
            config_data["memory"] = MemoryConfig(**data["memory"])

        if "workflow" in data:
            config_data["workflow"] = WorkflowConfig(**data["workflow"])

        if "autonomy" in data:
            config_data["autonomy"] = AutonomyConfig(**data["autonomy"])

        if "templates" in data:
            config_data["templates"] = TemplateConfig(**data["templates"])

        return cls(**config_data)

    @classmethod
    def load(
        cls,
        yaml_path: str | Path | None = None,
        env_file: str | Path | None = None,
    ) -> "AppConfig":
        """Load configuration with YAML as base and environment overrides.

        Environment variables take precedence over YAML settings.

        Args:
            yaml_path: Optional path to YAML configuration file
            env_file: Optional path to .env file

        Returns:
            AppConfig instance with merged configuration
        """
        if yaml_path:
            config = cls.from_yaml(yaml_path)
        else:
            config = cls()

        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        return cls._apply_env_overrides(config)

    @classmethod
    def _apply_env_overrides(cls, config: "AppConfig") -> "AppConfig":
        """Apply environment variable overrides to existing config."""
        data = config.model_dump()

        # App settings
        if os.getenv("APP_ENV"):
            data["app"]["env"] = os.getenv("APP_ENV")
        if os.getenv("APP_DEBUG"):
            data["app"]["debug"] = os.getenv("APP_DEBUG", "").lower() == "true"
        if os.getenv("APP_HOST"):
            data["app"]["host"] = os.getenv("APP_HOST")
        if os.getenv("APP_PORT"):
            data["app"]["port"] = int(os.getenv("APP_PORT", "8000"))
        if os.getenv("WORKSPACE_ID"):
            data["app"]["workspace_id"] = os.getenv("WORKSPACE_ID")

        # Logging
        if os.getenv("LOG_LEVEL"):
            data["logging"]["level"] = os.getenv("LOG_LEVEL", "INFO")
        if os.getenv("LOG_FORMAT"):
            data["logging"]["format"] = os.getenv("LOG_FORMAT", "json")

        # Workflow
        if os.getenv("SCHEDULER_WORKERS"):
            data["workflow"]["scheduler_workers"] = int(
                os.getenv("SCHEDULER_WORKERS", "4")
            )

        # Autonomy
        if os.getenv("APPROVAL_EXPIRY_HOURS"):
            data["autonomy"]["approval_expiry_hours"] = int(
                os.getenv("APPROVAL_EXPIRY_HOURS", "24")
            )
        if os.getenv("APPROVAL_NOTIFY_USER_IDS"):
            data["autonomy"]["notify_user_ids"] = [
                user_id.strip()
                for user_id in os.getenv("APPROVAL_NOTIFY_USER_IDS", "").split(",")
                if user_id.strip()
            ]

        # Templates
        if os.getenv("TEMPLATES_DIR"):
            data["templates"]["directory"] = os.getenv("TEMPLATES_DIR")

        return cls._from_yaml_dict(data)


# Process-wide configuration, used by the application entry point only
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get the global configuration instance.

    Returns:
        The global AppConfig instance

    Raises:
        RuntimeError: If configuration has not been initialized
    """
    global _config
    if _config is None:
        raise RuntimeError("Configuration not initialized. Call init_config() first.")
    return _config


def init_config(
    yaml_path: str | Path | None = None,
    env_file: str | Path | None = None,
) -> AppConfig:
    """Initialize the global configuration.

    Args:
        yaml_path: Optional path to YAML configuration file
        env_file: Optional path to .env file

    Returns:
        The initialized AppConfig instance
    """
    global _config
    _config = AppConfig.load(yaml_path=yaml_path, env_file=env_file)
    return _config


def reset_config() -> None:
    """Reset the global configuration (mainly for testing)."""
    global _config
    _config = None
