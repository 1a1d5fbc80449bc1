"""Dispatch handles for the agent execution boundary.

A handle is created when a task is handed to an agent and is completed
exactly once by the completion callback.
"""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from .message import MessageContent, MessagePriority, MessageType
from .workflow import RetryConfig


class DispatchStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class DispatchRequest(BaseModel):
    """What to hand to an agent and how to key its completion."""

    agent_id: str
    content: MessageContent
    message_type: MessageType = MessageType.TASK
    from_agent_id: str | None = None
    team_id: str | None = None
    execution_id: str | None = None
    step_id: str | None = None
    task_id: str = Field(default_factory=lambda: f"task_{uuid.uuid4().hex}")
    timeout: int | None = Field(default=None, description="Advisory, in seconds")
    retry_config: RetryConfig | None = None

    model_config = {"extra": "forbid"}

    @classmethod
    def task(
        cls,
        agent_id: str,
        subject: str,
        body: str = "",
        data: dict[str, Any] | None = None,
        priority: MessagePriority = MessagePriority.NORMAL,
        **kwargs: Any,
    ) -> "DispatchRequest":
        """Build a task dispatch with a plain content envelope."""
        return cls(
            agent_id=agent_id,
            content=MessageContent(
                subject=subject, body=body, data=data, priority=priority
            ),
            **kwargs,
        )


class DispatchHandle(BaseModel):
    """Pending (then completed) record of one dispatched task."""

    id: str = Field(..., description="Task id")
    workspace_id: str
    agent_id: str
    message_id: str
    team_id: str | None = None
    execution_id: str | None = None
    step_id: str | None = None
    status: DispatchStatus = DispatchStatus.PENDING
    output: dict[str, Any] | None = None
    error: str | None = None
    timeout: int | None = None
    retry_config: RetryConfig | None = None
    dispatched_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None

    model_config = {"extra": "forbid"}

    @property
    def is_pending(self) -> bool:
        return self.status == DispatchStatus.PENDING
