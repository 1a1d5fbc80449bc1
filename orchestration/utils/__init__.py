"""Utility modules for the orchestration core.

This package provides utility functions and classes for:
- Configuration management
- Structured logging
- Exception handling
"""

from .config import (
    AppConfig,
    AppSettings,
    AutonomyConfig,
    Environment,
    LogFormat,
    LoggingConfig,
    MemoryConfig,
    TemplateConfig,
    WorkflowConfig,
    get_config,
    init_config,
    reset_config,
)
from .error_handlers import (
    create_error_response,
    register_error_handlers,
)
from .exceptions import (
    APIError,
    ApprovalExpiredError,
    BadRequestError,
    ConfigurationError,
    ConflictError,
    DispatchError,
    InternalServerError,
    InvalidConfigurationError,
    InvalidStateError,
    MissingConfigurationError,
    NotFoundError,
    OrchestrationError,
    RetryExhaustedError,
    ValidationError,
)
from .logging import (
    LoggerAdapter,
    clear_correlation_id,
    get_api_logger,
    get_correlation_id,
    get_logger,
    get_team_logger,
    get_workflow_logger,
    set_correlation_id,
    setup_logging,
)

__all__ = [
    # Config
    "AppConfig",
    "AppSettings",
    "LoggingConfig",
    "MemoryConfig",
    "WorkflowConfig",
    "AutonomyConfig",
    "TemplateConfig",
    "Environment",
    "LogFormat",
    "get_config",
    "init_config",
    "reset_config",
    # Logging
    "setup_logging",
    "get_logger",
    "LoggerAdapter",
    "get_team_logger",
    "get_workflow_logger",
    "get_api_logger",
    "get_correlation_id",
    "set_correlation_id",
    "clear_correlation_id",
    # Exceptions
    "OrchestrationError",
    "ConfigurationError",
    "MissingConfigurationError",
    "InvalidConfigurationError",
    "NotFoundError",
    "InvalidStateError",
    "ApprovalExpiredError",
    "DispatchError",
    "RetryExhaustedError",
    "APIError",
    "BadRequestError",
    "ConflictError",
    "ValidationError",
    "InternalServerError",
    # Error Handlers
    "register_error_handlers",
    "create_error_response",
]
