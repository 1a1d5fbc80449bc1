"""In-memory repositories.

Suitable for development, tests and single-process deployments. Records are
copied on the way in and out so callers never alias stored state.
"""

import asyncio
import copy
from collections.abc import Callable
from typing import Any, Generic

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

from .base import (
    Database,
    DuplicateRecordError,
    ImmutableRecordError,
    Mutator,
    Predicate,
    Repository,
    SortKey,
    T,
)


class InMemoryRepository(Repository[T], Generic[T]):
    """Dictionary-backed repository guarded by a single asyncio lock."""

    def __init__(self, append_only: bool = False) -> None:
        self._records: dict[str, T] = {}
        self._lock = asyncio.Lock()
        self._append_only = append_only

    @staticmethod
    def _copy(record: T) -> T:
        return record.model_copy(deep=True)

    def _check_mutable(self, record_id: str) -> None:
        if self._append_only:
            raise ImmutableRecordError(record_id)

    def _matching(self, where: Predicate | None) -> list[T]:
        if where is None:
            return list(self._records.values())
        return [record for record in self._records.values() if where(record)]

    async def get(self, record_id: str) -> T | None:
        async with self._lock:
            record = self._records.get(record_id)
            return self._copy(record) if record is not None else None

    async def find_one(self, where: Predicate | None = None) -> T | None:
        async with self._lock:
            for record in self._records.values():
                if where is None or where(record):
                    return self._copy(record)
            return None

    async def find_many(
        self,
        where: Predicate | None = None,
        order_by: SortKey | None = None,
        descending: bool = False,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[T]:
        async with self._lock:
            records = self._matching(where)
            if order_by is not None:
                # sorted() is stable, so ties keep insertion order
                records = sorted(records, key=order_by, reverse=descending)
            end = offset + limit if limit is not None else None
            return [self._copy(record) for record in records[offset:end]]

    async def count(self, where: Predicate | None = None) -> int:
        async with self._lock:
            return len(self._matching(where))

    async def insert(self, record: T) -> T:
        record_id = getattr(record, "id")
        async with self._lock:
            if record_id in self._records:
                raise DuplicateRecordError(record_id)
            self._records[record_id] = self._copy(record)
            return self._copy(record)

    async def update(self, record_id: str, **changes: Any) -> T | None:
        return await self.modify(record_id, lambda _: changes)

    async def modify(self, record_id: str, mutate: Mutator) -> T | None:
        self._check_mutable(record_id)
        async with self._lock:
            current = self._records.get(record_id)
            if current is None:
                return None
            changes = mutate(self._copy(current))
            if changes:
                current = current.model_copy(update=copy.deepcopy(changes), deep=True)
                self._records[record_id] = current
            return self._copy(current)

    async def upsert(
        self,
        where: Predicate,
        create: Callable[[], T],
        mutate: Mutator,
    ) -> tuple[T, bool]:
        async with self._lock:
            for record_id, current in self._records.items():
                if where(current):
                    self._check_mutable(record_id)
                    changes = mutate(self._copy(current))
                    if changes:
                        current = current.model_copy(update=copy.deepcopy(changes), deep=True)
                        self._records[record_id] = current
                    return self._copy(current), False

            record = create()
            record_id = getattr(record, "id")
            if record_id in self._records:
                raise DuplicateRecordError(record_id)
            self._records[record_id] = self._copy(record)
            return self._copy(record), True

    async def delete(self, record_id: str) -> bool:
        self._check_mutable(record_id)
        async with self._lock:
            return self._records.pop(record_id, None) is not None

    async def delete_many(self, where: Predicate) -> int:
        async with self._lock:
            doomed = [rid for rid, record in self._records.items() if where(record)]
            if doomed and self._append_only:
                raise ImmutableRecordError(doomed[0])
            for record_id in doomed:
                del self._records[record_id]
            return len(doomed)

    def __len__(self) -> int:
        return len(self._records)


class InMemoryDatabase(Database):
    """Database made of in-memory repositories; the audit log is append-only."""

    def __init__(self) -> None:
        super().__init__(
            agents=InMemoryRepository[Agent](),
            teams=InMemoryRepository[Team](),
            team_members=InMemoryRepository[TeamMember](),
            messages=InMemoryRepository[AgentMessage](),
            memories=InMemoryRepository[SharedMemory](),
            workflows=InMemoryRepository[Workflow](),
            executions=InMemoryRepository[WorkflowExecution](),
            dispatches=InMemoryRepository[DispatchHandle](),
            pending_actions=InMemoryRepository[PendingAction](),
            audit_log=InMemoryRepository[ActionAuditEntry](append_only=True),
        )
