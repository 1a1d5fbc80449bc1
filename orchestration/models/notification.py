"""Notification payloads emitted by the autonomy service."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class NotificationEventType(str, Enum):
    PENDING_APPROVAL = "pending_approval"
    ACTION_APPROVED = "action_approved"
    ACTION_REJECTED = "action_rejected"
    ACTION_EXPIRED = "action_expired"
    AUTONOMY_LEVEL_CHANGED = "autonomy_level_changed"
    DAILY_DIGEST = "daily_digest"
    HIGH_PENDING_COUNT = "high_pending_count"
    CRITICAL_ACTION = "critical_action"
    ACTION_FAILED = "action_failed"


class NotificationType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class NotificationEvent(BaseModel):
    """A notification the delivery system should send to ``user_ids``."""

    event_type: NotificationEventType
    workspace_id: str
    user_ids: list[str] = Field(default_factory=list)
    title: str
    message: str
    type: NotificationType = NotificationType.INFO
    action_url: str | None = None
    action_label: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {"extra": "forbid"}
