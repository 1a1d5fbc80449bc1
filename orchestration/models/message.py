"""Agent message models.

Every message belongs to exactly one thread; replies inherit the thread of
their parent.
"""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class MessageType(str, Enum):
    """Kind of message exchanged between agents."""

    TASK = "task"
    RESULT = "result"
    CONTEXT = "context"
    HANDOFF = "handoff"
    STATUS = "status"
    QUERY = "query"


class MessageStatus(str, Enum):
    """Delivery status, in lifecycle order."""

    PENDING = "pending"
    DELIVERED = "delivered"
    READ = "read"
    PROCESSED = "processed"


class MessagePriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


# Position in the lifecycle, used to keep status transitions monotonic
MESSAGE_STATUS_ORDER: dict[MessageStatus, int] = {
    MessageStatus.PENDING: 0,
    MessageStatus.DELIVERED: 1,
    MessageStatus.READ: 2,
    MessageStatus.PROCESSED: 3,
}


class MessageContent(BaseModel):
    """Content envelope carried by every message."""

    subject: str = Field(..., description="Short subject line")
    body: str = Field(default="", description="Message body")
    data: dict[str, Any] | None = Field(default=None, description="Structured data")
    priority: MessagePriority = Field(default=MessagePriority.NORMAL)
    task_id: str | None = Field(default=None, description="Related task")
    workflow_execution_id: str | None = Field(
        default=None, description="Related workflow execution"
    )

    model_config = {"extra": "forbid"}


class AgentMessage(BaseModel):
    """A persisted unit of communication."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workspace_id: str = Field(..., description="Owning workspace")
    team_id: str | None = Field(default=None, description="Team (broadcasts)")
    from_agent_id: str | None = Field(default=None, description="Sender agent")
    to_agent_id: str | None = Field(default=None, description="Direct recipient")
    message_type: MessageType = Field(..., description="Message type")
    content: MessageContent = Field(..., description="Content envelope")
    thread_id: str = Field(..., description="Thread shared across a causal chain")
    parent_message_id: str | None = Field(default=None)
    status: MessageStatus = Field(default=MessageStatus.PENDING)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    delivered_at: datetime | None = None
    read_at: datetime | None = None
    processed_at: datetime | None = None

    model_config = {"extra": "forbid"}


class SendMessageInput(BaseModel):
    """Input for MessageBus.send."""

    message_type: MessageType
    content: MessageContent
    from_agent_id: str | None = None
    to_agent_id: str | None = None
    team_id: str | None = None
    parent_message_id: str | None = None

    model_config = {"extra": "forbid"}


class MessageFilters(BaseModel):
    """Inbox query filters."""

    message_type: MessageType | None = None
    status: MessageStatus | None = None
    team_id: str | None = None
    from_agent_id: str | None = None
    since: datetime | None = None
    limit: int = Field(default=50, ge=1)

    model_config = {"extra": "forbid"}
