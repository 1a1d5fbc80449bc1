"""Repository interfaces for the persistence boundary.

Components depend on these abstractions only; the concrete store is built
once at process start and injected.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from orchestration.models import (
    ActionAuditEntry,
    Agent,
    AgentMessage,
    DispatchHandle,
    PendingAction,
    SharedMemory,
    Team,
    TeamMember,
    Workflow,
    WorkflowExecution,
)

T = TypeVar("T", bound=BaseModel)

Predicate = Callable[[T], bool]
SortKey = Callable[[T], Any]
# Receives the current record, returns the changes to apply (None skips the write)
Mutator = Callable[[T], dict[str, Any] | None]


class RepositoryError(Exception):
    """Base exception for repository errors."""

    pass


class DuplicateRecordError(RepositoryError):
    """Raised when inserting a record whose id already exists."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Record already exists: {record_id}")


class ImmutableRecordError(RepositoryError):
    """Raised when mutating a record in an append-only repository."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Record is append-only: {record_id}")


class Repository(ABC, Generic[T]):
    """Filtered CRUD over one record type.

    Every write is atomic with respect to the record it touches.
    """

    @abstractmethod
    async def get(self, record_id: str) -> T | None:
        """Find a record by id."""

    @abstractmethod
    async def find_one(self, where: Predicate | None = None) -> T | None:
        """Return the first record (insertion order) matching ``where``."""

    @abstractmethod
    async def find_many(
        self,
        where: Predicate | None = None,
        order_by: SortKey | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[T]:
        """Return matching records, optionally sorted and paginated."""

    @abstractmethod
    async def count(self, where: Predicate | None = None) -> int:
        """Count matching records."""

    @abstractmethod
    async def insert(self, record: T) -> T:
        """Insert a new record.

        Raises:
            DuplicateRecordError: If a record with the same id exists.
        """

    @abstractmethod
    async def update(self, record_id: str, **changes: Any) -> T | None:
        """Apply field changes to a record; None if it does not exist."""

    @abstractmethod
    async def modify(self, record_id: str, mutate: Mutator) -> T | None:
        """Atomic read-modify-write of one record.

        Returns the stored record after the write, or None if missing.
        """

    @abstractmethod
    async def upsert(
        self,
        where: Predicate,
        create: Callable[[], T],
        mutate: Mutator,
    ) -> tuple[T, bool]:
        """Update the record matching ``where`` or insert ``create()``.

        The lookup and the write happen under one lock, so two callers
        racing on the same key never create duplicates.

        Returns:
            (stored record, True if it was inserted)
        """

    @abstractmethod
    async def delete(self, record_id: str) -> bool:
        """Delete a record by id."""

    @abstractmethod
    async def delete_many(self, where: Predicate) -> int:
        """Delete all matching records and return how many were removed."""


class Database:
    """The set of repositories the orchestration core works against."""

    def __init__(
        self,
        agents: Repository[Agent],
        teams: Repository[Team],
        team_members: Repository[TeamMember],
        messages: Repository[AgentMessage],
        memories: Repository[SharedMemory],
        workflows: Repository[Workflow],
        executions: Repository[WorkflowExecution],
        dispatches: Repository[DispatchHandle],
        pending_actions: Repository[PendingAction],
        audit_log: Repository[ActionAuditEntry],
    ):
        self.agents = agents
        self.teams = teams
        self.team_members = team_members
        self.messages = messages
        self.memories = memories
        self.workflows = workflows
        self.executions = executions
        self.dispatches = dispatches
        self.pending_actions = pending_actions
        self.audit_log = audit_log
