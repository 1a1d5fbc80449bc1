"""Exception hierarchy for the orchestration core.

Domain errors (not found, invalid state, expired approvals, dispatch and retry
failures) live next to the HTTP-facing API errors so that the FastAPI error
handlers can map both onto the standard error envelope.
"""

from typing import Any


class OrchestrationError(Exception):
    """Base exception for all orchestration errors.

    All custom exceptions in this system should inherit from this class.
    """

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        """Initialize the exception.

        Args:
            message: Human-readable error message
            details: Optional dictionary with additional error details
            cause: Optional original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        result: dict[str, Any] = {
            "error": self.__class__.__name__,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        if self.cause:
            result["cause"] = str(self.cause)
        return result


# ============================================================================
# Configuration Errors
# ============================================================================


class ConfigurationError(OrchestrationError):
    """Raised when there's a configuration error."""

    pass


class MissingConfigurationError(ConfigurationError):
    """Raised when a required configuration is missing."""

    def __init__(self, config_key: str, message: str | None = None):
        self.config_key = config_key
        msg = message or f"Missing required configuration: {config_key}"
        super().__init__(msg, details={"config_key": config_key})


class InvalidConfigurationError(ConfigurationError):
    """Raised when a configuration value is invalid."""

    def __init__(self, config_key: str, value: Any, message: str | None = None):
        self.config_key = config_key
        self.value = value
        msg = message or f"Invalid configuration value for {config_key}: {value}"
        super().__init__(msg, details={"config_key": config_key, "value": str(value)})


# ============================================================================
# Domain Errors
# ============================================================================


class NotFoundError(OrchestrationError):
    """Raised when a team, agent, workflow, execution or message is absent."""

    def __init__(
        self,
        resource_type: str,
        resource_id: str,
        message: str | None = None,
    ):
        self.resource_type = resource_type
        self.resource_id = resource_id
        msg = message or f"{resource_type} not found: {resource_id}"
        super().__init__(
            msg,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class InvalidStateError(OrchestrationError):
    """Raised when an operation is not allowed in the resource's current state."""

    def __init__(
        self,
        message: str,
        current_state: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        details = details or {}
        if current_state is not None:
            details["current_state"] = current_state
        super().__init__(message, details=details)
        self.current_state = current_state


class ApprovalExpiredError(OrchestrationError):
    """Raised when a pending action is reviewed after its deadline."""

    def __init__(self, action_id: str):
        super().__init__(
            f"Pending action has expired: {action_id}",
            details={"action_id": action_id},
        )
        self.action_id = action_id


class DispatchError(OrchestrationError):
    """Raised when handing a task to an agent fails."""

    def __init__(
        self,
        agent_id: str,
        message: str | None = None,
        cause: Exception | None = None,
    ):
        msg = message or f"Failed to dispatch task to agent: {agent_id}"
        super().__init__(msg, details={"agent_id": agent_id}, cause=cause)
        self.agent_id = agent_id


class RetryExhaustedError(OrchestrationError):
    """Raised when a step has used up its retry budget."""

    def __init__(self, step_id: str, max_attempts: int):
        super().__init__(
            f"Max retry attempts ({max_attempts}) exceeded",
            details={"step_id": step_id, "max_attempts": max_attempts},
        )
        self.step_id = step_id
        self.max_attempts = max_attempts


# ============================================================================
# API Errors
# ============================================================================


class APIError(OrchestrationError):
    """Base class for API-related errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, details, cause)
        self.status_code = status_code


class BadRequestError(APIError):
    """Raised for bad request errors (400)."""

    def __init__(
        self,
        message: str = "Bad request",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, status_code=400, details=details)


class ConflictError(APIError):
    """Raised for conflict errors (409)."""

    def __init__(
        self,
        message: str = "Resource conflict",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, status_code=409, details=details)


class ValidationError(APIError):
    """Raised for validation errors (422)."""

    def __init__(
        self,
        message: str = "Validation error",
        errors: list[dict[str, Any]] | None = None,
    ):
        details = {"validation_errors": errors} if errors else None
        super().__init__(message, status_code=422, details=details)
        self.errors = errors or []


class InternalServerError(APIError):
    """Raised for internal server errors (500)."""

    def __init__(
        self,
        message: str = "Internal server error",
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message, status_code=500, details=details, cause=cause)
