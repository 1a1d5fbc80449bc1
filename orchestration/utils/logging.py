"""Structured logging for the orchestration service.

Everything logs through structlog. Production renders JSON lines and
development renders colored console output with rich tracebacks. A
correlation id set per HTTP request is stamped on every event, and the
scoped loggers at the bottom of this module tag events with the agent,
team run or workflow execution they belong to.
"""

import logging
import sys
from contextvars import ContextVar
from typing import Any
from uuid import uuid4

import structlog
from structlog.types import EventDict, Processor

# Correlation ID follows a request or an execution across awaits
correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str | None:
    """Return the correlation ID bound to the current task, if any."""
    return correlation_id_var.get()


def set_correlation_id(correlation_id: str | None = None) -> str:
    """Bind a correlation ID to the current task.

    The request middleware calls this with the incoming ``X-Request-ID``
    header so that every event logged while serving the request carries it.

    Args:
        correlation_id: ID to bind. A fresh UUID4 is generated when omitted.

    Returns:
        The ID now bound to the context.
    """
    if correlation_id is None:
        correlation_id = str(uuid4())
    correlation_id_var.set(correlation_id)
    return correlation_id


def clear_correlation_id() -> None:
    """Unbind the correlation ID once a request has been answered."""
    correlation_id_var.set(None)


def add_correlation_id(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """structlog processor: copy the bound correlation ID onto the event."""
    correlation_id = get_correlation_id()
    if correlation_id:
        event_dict["correlation_id"] = correlation_id
    return event_dict


def add_app_context(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """structlog processor: tag the event with the service name."""
    event_dict.setdefault("app", "agent-orchestration")
    return event_dict


def setup_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: str | None = None,
) -> None:
    """Configure structlog and the standard library root logger.

    Called once at application start from ``create_app`` with the values of
    the ``logging`` config section. Calling it again replaces the previous
    handlers.

    Args:
        level: Minimum level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Unknown names fall back to INFO.
        json_format: Render JSON lines when True, colored console output
            when False.
        log_file: Optional path that receives a copy of every record.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        add_correlation_id,
        add_app_context,
    ]

    if json_format:
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.rich_traceback,
            ),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)

    handlers: list[logging.Handler] = [handler]
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(log_level)
        handlers.append(file_handler)

    logging.basicConfig(
        format="%(message)s",
        level=log_level,
        handlers=handlers,
        force=True,
    )

    # Per-request access lines come from our own middleware
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger.

    Service modules call this once at import time with ``__name__``.

    Args:
        name: Logger name shown as ``logger`` on each event.

    Returns:
        A structlog BoundLogger.
    """
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger


class LoggerAdapter:
    """Logger carrying a fixed set of context keys.

    Used where a whole operation (a team run, a workflow execution) should
    tag every event with the same identifiers. Adapters are immutable:
    ``bind`` and ``unbind`` return new adapters sharing the underlying
    logger.
    """

    def __init__(self, name: str | None = None, **initial_context: Any):
        """Create an adapter.

        Args:
            name: Logger name, e.g. "team" or "workflow".
            **initial_context: Keys added to every event.
        """
        self._logger = get_logger(name)
        self._context = initial_context

    def bind(self, **new_context: Any) -> "LoggerAdapter":
        """Return a new adapter with additional context merged in.

        Args:
            **new_context: Keys to add. They override existing keys.

        Returns:
            The new adapter. This adapter is left unchanged.
        """
        adapter = LoggerAdapter.__new__(LoggerAdapter)
        adapter._logger = self._logger
        adapter._context = {**self._context, **new_context}
        return adapter

    def unbind(self, *keys: str) -> "LoggerAdapter":
        """Return a new adapter without the given keys.

        Args:
            *keys: Context keys to drop. Missing keys are ignored.

        Returns:
            The new adapter. This adapter is left unchanged.
        """
        adapter = LoggerAdapter.__new__(LoggerAdapter)
        adapter._logger = self._logger
        adapter._context = {k: v for k, v in self._context.items() if k not in keys}
        return adapter

    @property
    def context(self) -> dict[str, Any]:
        """A copy of the keys this adapter adds to each event."""
        return dict(self._context)

    def _log(self, level: str, event: str, **kwargs: Any) -> None:
        # Per-call keys win over bound context
        merged = {**self._context, **kwargs}
        getattr(self._logger, level)(event, **merged)

    def debug(self, event: str, **kwargs: Any) -> None:
        """Log a debug event."""
        self._log("debug", event, **kwargs)

    def info(self, event: str, **kwargs: Any) -> None:
        """Log an info event."""
        self._log("info", event, **kwargs)

    def warning(self, event: str, **kwargs: Any) -> None:
        """Log a warning event."""
        self._log("warning", event, **kwargs)

    def error(self, event: str, **kwargs: Any) -> None:
        """Log an error event."""
        self._log("error", event, **kwargs)

    def exception(self, event: str, **kwargs: Any) -> None:
        """Log an error event with the active exception's traceback."""
        self._log("exception", event, **kwargs)


def get_agent_logger(agent_id: str, agent_name: str | None = None) -> LoggerAdapter:
    """Get a logger for routing and delegation events about one agent.

    Args:
        agent_id: The agent's unique identifier.
        agent_name: Optional display name, added when given.

    Returns:
        LoggerAdapter with ``agent_id`` (and ``agent_name``) bound.
    """
    context: dict[str, Any] = {"agent_id": agent_id}
    if agent_name:
        context["agent_name"] = agent_name
    return LoggerAdapter("agent", **context)


def get_team_logger(team_id: str, execution_id: str | None = None) -> LoggerAdapter:
    """Get a logger for one team run.

    Args:
        team_id: The team being run.
        execution_id: The run's id, added when given.

    Returns:
        LoggerAdapter with ``team_id`` (and ``execution_id``) bound.
    """
    context: dict[str, Any] = {"team_id": team_id}
    if execution_id:
        context["execution_id"] = execution_id
    return LoggerAdapter("team", **context)


def get_workflow_logger(workflow_id: str, execution_id: str) -> LoggerAdapter:
    """Get a logger for one workflow execution.

    Args:
        workflow_id: The workflow definition.
        execution_id: The execution being advanced.

    Returns:
        LoggerAdapter with both ids bound.
    """
    return LoggerAdapter(
        "workflow", workflow_id=workflow_id, execution_id=execution_id
    )


def get_api_logger() -> LoggerAdapter:
    """Get a logger for request handling in the API layer."""
    return LoggerAdapter("api")
