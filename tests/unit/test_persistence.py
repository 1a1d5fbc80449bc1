"""In-memory repository unit tests."""

import asyncio

import pytest

from orchestration.models import ActionAuditEntry, Agent, AgentStatus, RiskLevel
from orchestration.persistence import (
    DuplicateRecordError,
    ImmutableRecordError,
    InMemoryDatabase,
    InMemoryRepository,
)


def _agent(name, **kwargs):
    return Agent(workspace_id="ws_test", name=name, type="general", **kwargs)


class TestInMemoryRepository:
    """Test InMemoryRepository class."""

    @pytest.fixture
    def repo(self):
        """Create a fresh repository for each test."""
        return InMemoryRepository[Agent]()

    @pytest.mark.asyncio
    async def test_insert_and_get(self, repo):
        """Test inserting and reading back a record."""
        agent = await repo.insert(_agent("a"))

        found = await repo.get(agent.id)

        assert found == agent
        assert await repo.get("missing") is None

    @pytest.mark.asyncio
    async def test_insert_duplicate(self, repo):
        """Test inserting the same id twice raises."""
        agent = _agent("a")
        await repo.insert(agent)

        with pytest.raises(DuplicateRecordError):
            await repo.insert(agent)

    @pytest.mark.asyncio
    async def test_records_are_copied(self, repo):
        """Test mutating a returned record does not touch the store."""
        agent = await repo.insert(_agent("a"))
        agent.name = "changed"

        stored = await repo.get(agent.id)

        assert stored.name == "a"

    @pytest.mark.asyncio
    async def test_find_many_sort_and_paginate(self, repo):
        """Test ordering, limit and offset."""
        for i, name in enumerate(["c", "a", "b"]):
            await repo.insert(_agent(name, execution_count=i))

        ordered = await repo.find_many(order_by=lambda a: a.name)
        page = await repo.find_many(order_by=lambda a: a.name, limit=1, offset=1)
        newest = await repo.find_many(order_by=lambda a: a.execution_count, descending=True)

        assert [a.name for a in ordered] == ["a", "b", "c"]
        assert [a.name for a in page] == ["b"]
        assert [a.name for a in newest] == ["b", "a", "c"]

    @pytest.mark.asyncio
    async def test_find_one_and_count(self, repo):
        """Test predicate lookups."""
        await repo.insert(_agent("a"))
        await repo.insert(_agent("b", status=AgentStatus.INACTIVE))

        inactive = await repo.find_one(lambda a: a.status == AgentStatus.INACTIVE)

        assert inactive.name == "b"
        assert await repo.count() == 2
        assert await repo.count(lambda a: a.status == AgentStatus.ACTIVE) == 1

    @pytest.mark.asyncio
    async def test_update_and_modify(self, repo):
        """Test field updates and read-modify-write."""
        agent = await repo.insert(_agent("a"))

        updated = await repo.update(agent.id, name="renamed")
        bumped = await repo.modify(
            agent.id, lambda a: {"execution_count": a.execution_count + 1}
        )
        unchanged = await repo.modify(agent.id, lambda a: None)

        assert updated.name == "renamed"
        assert bumped.execution_count == 1
        assert unchanged.execution_count == 1
        assert await repo.update("missing", name="x") is None

    @pytest.mark.asyncio
    async def test_concurrent_modify_is_atomic(self, repo):
        """Test concurrent increments are not lost."""
        agent = await repo.insert(_agent("a"))

        await asyncio.gather(
            *[
                repo.modify(agent.id, lambda a: {"execution_count": a.execution_count + 1})
                for _ in range(20)
            ]
        )

        assert (await repo.get(agent.id)).execution_count == 20

    @pytest.mark.asyncio
    async def test_upsert(self, repo):
        """Test upsert inserts once then updates."""
        where = lambda a: a.name == "a"  # noqa: E731

        first, created = await repo.upsert(
            where, lambda: _agent("a"), lambda a: {"execution_count": a.execution_count + 1}
        )
        second, created_again = await repo.upsert(
            where, lambda: _agent("a"), lambda a: {"execution_count": a.execution_count + 1}
        )

        assert created is True
        assert created_again is False
        assert first.id == second.id
        assert second.execution_count == 1
        assert await repo.count() == 1

    @pytest.mark.asyncio
    async def test_delete(self, repo):
        """Test single and bulk deletes."""
        a = await repo.insert(_agent("a"))
        await repo.insert(_agent("b"))
        await repo.insert(_agent("c"))

        assert await repo.delete(a.id) is True
        assert await repo.delete(a.id) is False
        assert await repo.delete_many(lambda r: r.name in ("b", "c")) == 2
        assert len(repo) == 0


class TestInMemoryDatabase:
    """Test InMemoryDatabase class."""

    @pytest.mark.asyncio
    async def test_audit_log_is_append_only(self):
        """Test audit entries cannot be changed or deleted."""
        db = InMemoryDatabase()
        entry = await db.audit_log.insert(
            ActionAuditEntry(
                workspace_id="ws_test",
                action_type="send_email",
                was_automatic=True,
                risk_level=RiskLevel.HIGH,
                success=True,
            )
        )

        with pytest.raises(ImmutableRecordError):
            await db.audit_log.update(entry.id, action_type="other")
        with pytest.raises(ImmutableRecordError):
            await db.audit_log.delete(entry.id)

        assert await db.audit_log.count() == 1
