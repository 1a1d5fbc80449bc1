"""Shared memory models."""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class MemoryTier(str, Enum):
    """Persistence tier; determines the default expiry."""

    SHORT_TERM = "short_term"
    MEDIUM_TERM = "medium_term"
    LONG_TERM = "long_term"


class MemoryCategory(str, Enum):
    CONTEXT = "context"
    PATTERN = "pattern"
    PREFERENCE = "preference"
    KNOWLEDGE = "knowledge"
    RELATIONSHIP = "relationship"


class SharedMemory(BaseModel):
    """One memory entry, unique per (workspace, team, agent, key)."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workspace_id: str = Field(..., description="Owning workspace")
    team_id: str | None = Field(default=None, description="Team scope")
    agent_id: str | None = Field(default=None, description="Agent scope")
    tier: MemoryTier = Field(..., description="Memory tier")
    category: MemoryCategory = Field(..., description="Memory category")
    key: str = Field(..., description="Key, unique within the scope")
    value: Any = Field(default=None, description="Arbitrary payload")
    metadata: dict[str, Any] = Field(default_factory=dict)
    importance: int = Field(default=50, ge=0, le=100)
    access_count: int = Field(default=0, ge=0)
    last_accessed_at: datetime | None = None
    expires_at: datetime | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    model_config = {"extra": "forbid"}

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at <= (now or datetime.now(UTC))

    def in_scope(self, team_id: str | None, agent_id: str | None) -> bool:
        """Exact scope match; a None scope component only matches None."""
        return self.team_id == team_id and self.agent_id == agent_id


class MemoryQuery(BaseModel):
    """Filters for MemoryService.retrieve.

    ``team_id``/``agent_id`` left as None do not restrict the scope.
    """

    team_id: str | None = None
    agent_id: str | None = None
    tier: MemoryTier | None = None
    category: MemoryCategory | None = None
    key_pattern: str | None = Field(default=None, description="Key substring")
    min_importance: int | None = Field(default=None, ge=0, le=100)
    limit: int = Field(default=50, ge=1)

    model_config = {"extra": "forbid"}
