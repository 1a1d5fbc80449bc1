"""Memory service unit tests."""

from datetime import UTC, datetime, timedelta

import pytest

from orchestration.core import MemoryService
from orchestration.models import MemoryCategory, MemoryQuery, MemoryTier
from orchestration.utils.config import MemoryConfig


class TestStore:
    """Test MemoryService.store."""

    @pytest.mark.asyncio
    async def test_store_new_memory(self, memory, db):
        """Test storing a memory applies defaults."""
        memory_id = await memory.store(
            "lead_source",
            {"channel": "web"},
            tier=MemoryTier.SHORT_TERM,
            category=MemoryCategory.CONTEXT,
        )

        stored = await db.memories.get(memory_id)
        assert stored.value == {"channel": "web"}
        assert stored.importance == 50
        assert stored.access_count == 0
        assert stored.workspace_id == "ws_test"

    @pytest.mark.asyncio
    async def test_store_default_expiry_by_tier(self, memory, db):
        """Test short and medium term entries expire, long term never does."""
        now = datetime.now(UTC)
        short_id = await memory.store(
            "s", 1, tier=MemoryTier.SHORT_TERM, category=MemoryCategory.CONTEXT
        )
        medium_id = await memory.store(
            "m", 1, tier=MemoryTier.MEDIUM_TERM, category=MemoryCategory.PATTERN
        )
        long_id = await memory.store(
            "l", 1, tier=MemoryTier.LONG_TERM, category=MemoryCategory.KNOWLEDGE
        )

        short = await db.memories.get(short_id)
        medium = await db.memories.get(medium_id)
        long = await db.memories.get(long_id)

        assert now + timedelta(hours=23) < short.expires_at <= now + timedelta(hours=25)
        assert now + timedelta(days=29) < medium.expires_at <= now + timedelta(days=31)
        assert long.expires_at is None

    @pytest.mark.asyncio
    async def test_store_same_key_updates_in_place(self, memory, db):
        """Test a second write to the same scoped key updates the entry."""
        first = await memory.store(
            "preference",
            "email",
            tier=MemoryTier.LONG_TERM,
            category=MemoryCategory.PREFERENCE,
            agent_id="agent_1",
            importance=80,
            metadata={"a": 1},
        )
        second = await memory.store(
            "preference",
            "phone",
            tier=MemoryTier.LONG_TERM,
            category=MemoryCategory.PREFERENCE,
            agent_id="agent_1",
            metadata={"b": 2},
        )

        assert first == second
        stored = await db.memories.get(first)
        assert stored.value == "phone"
        assert stored.importance == 80
        assert stored.access_count == 1
        assert stored.metadata == {"a": 1, "b": 2}
        assert await db.memories.count() == 1

    @pytest.mark.asyncio
    async def test_store_different_scope_creates_new_entry(self, memory, db):
        """Test the same key under another agent is a separate entry."""
        first = await memory.store(
            "k", 1, tier=MemoryTier.LONG_TERM, category=MemoryCategory.CONTEXT,
            agent_id="agent_1",
        )
        second = await memory.store(
            "k", 2, tier=MemoryTier.LONG_TERM, category=MemoryCategory.CONTEXT,
            agent_id="agent_2",
        )

        assert first != second
        assert await db.memories.count() == 2


class TestRetrieve:
    """Test MemoryService.retrieve and get."""

    @pytest.mark.asyncio
    async def test_retrieve_orders_by_importance(self, memory):
        """Test results are most important first."""
        await memory.store("low", 1, tier=MemoryTier.LONG_TERM,
                           category=MemoryCategory.KNOWLEDGE, importance=10)
        await memory.store("high", 2, tier=MemoryTier.LONG_TERM,
                           category=MemoryCategory.KNOWLEDGE, importance=90)
        await memory.store("mid", 3, tier=MemoryTier.LONG_TERM,
                           category=MemoryCategory.KNOWLEDGE, importance=50)

        results = await memory.retrieve(MemoryQuery())

        assert [m.key for m in results] == ["high", "mid", "low"]

    @pytest.mark.asyncio
    async def test_retrieve_increments_access_count(self, memory):
        """Test every read counts as an access."""
        await memory.store("k", 1, tier=MemoryTier.LONG_TERM,
                           category=MemoryCategory.KNOWLEDGE)

        await memory.retrieve(MemoryQuery())
        results = await memory.retrieve(MemoryQuery())

        assert results[0].access_count == 2
        assert results[0].last_accessed_at is not None

    @pytest.mark.asyncio
    async def test_retrieve_excludes_expired(self, memory):
        """Test expired entries are never returned."""
        await memory.store(
            "stale", 1, tier=MemoryTier.SHORT_TERM, category=MemoryCategory.CONTEXT,
            expires_at=datetime.now(UTC) - timedelta(minutes=1),
        )
        await memory.store("fresh", 2, tier=MemoryTier.SHORT_TERM,
                           category=MemoryCategory.CONTEXT)

        results = await memory.retrieve(MemoryQuery())

        assert [m.key for m in results] == ["fresh"]
        assert await memory.get("stale") is None

    @pytest.mark.asyncio
    async def test_retrieve_filters(self, memory):
        """Test tier, category, key pattern and importance filters."""
        await memory.store("deal_stage", 1, tier=MemoryTier.LONG_TERM,
                           category=MemoryCategory.KNOWLEDGE, importance=70,
                           team_id="team_1")
        await memory.store("deal_size", 2, tier=MemoryTier.SHORT_TERM,
                           category=MemoryCategory.CONTEXT, importance=70,
                           team_id="team_1")
        await memory.store("contact", 3, tier=MemoryTier.LONG_TERM,
                           category=MemoryCategory.KNOWLEDGE, importance=20,
                           team_id="team_1")

        by_pattern = await memory.retrieve(MemoryQuery(key_pattern="deal"))
        by_tier = await memory.retrieve(MemoryQuery(tier=MemoryTier.LONG_TERM))
        by_importance = await memory.retrieve(MemoryQuery(min_importance=50))
        other_team = await memory.retrieve(MemoryQuery(team_id="team_2"))

        assert {m.key for m in by_pattern} == {"deal_stage", "deal_size"}
        assert {m.key for m in by_tier} == {"deal_stage", "contact"}
        assert {m.key for m in by_importance} == {"deal_stage", "deal_size"}
        assert other_team == []

    @pytest.mark.asyncio
    async def test_retrieve_respects_limit(self, memory):
        """Test the limit caps the result size."""
        for i in range(5):
            await memory.store(f"k{i}", i, tier=MemoryTier.LONG_TERM,
                               category=MemoryCategory.KNOWLEDGE)

        results = await memory.retrieve(MemoryQuery(limit=2))

        assert len(results) == 2

    @pytest.mark.asyncio
    async def test_get_by_key(self, memory):
        """Test looking up one memory by key and scope."""
        await memory.store("k", "team", tier=MemoryTier.LONG_TERM,
                           category=MemoryCategory.KNOWLEDGE, team_id="team_1")

        found = await memory.get("k", team_id="team_1")
        missing = await memory.get("k", team_id="team_2")

        assert found.value == "team"
        assert found.access_count == 1
        assert missing is None

    @pytest.mark.asyncio
    async def test_workspace_isolation(self, memory, db):
        """Test memories of another workspace are invisible."""
        other = MemoryService(db, "ws_other")
        await other.store("k", 1, tier=MemoryTier.LONG_TERM,
                          category=MemoryCategory.KNOWLEDGE)

        assert await memory.retrieve(MemoryQuery()) == []
        assert await memory.get("k") is None


class TestPromotion:
    """Test tier promotion."""

    async def _accessed(self, memory, db, tier, importance, accesses):
        memory_id = await memory.store(
            "k", 1, tier=tier, category=MemoryCategory.PATTERN, importance=importance
        )
        await db.memories.update(memory_id, access_count=accesses)
        return memory_id

    @pytest.mark.asyncio
    async def test_promote_short_to_medium(self, memory, db):
        """Test short term promotion at importance 70 and 3 accesses."""
        memory_id = await self._accessed(memory, db, MemoryTier.SHORT_TERM, 70, 3)

        assert await memory.promote_memory(memory_id) is True

        promoted = await db.memories.get(memory_id)
        assert promoted.tier == MemoryTier.MEDIUM_TERM
        assert promoted.expires_at > datetime.now(UTC) + timedelta(days=29)

    @pytest.mark.asyncio
    async def test_promote_medium_to_long(self, memory, db):
        """Test medium term promotion at importance 85 and 10 accesses."""
        memory_id = await self._accessed(memory, db, MemoryTier.MEDIUM_TERM, 85, 10)

        assert await memory.promote_memory(memory_id) is True

        promoted = await db.memories.get(memory_id)
        assert promoted.tier == MemoryTier.LONG_TERM
        assert promoted.expires_at is None

    @pytest.mark.asyncio
    async def test_no_promotion_below_thresholds(self, memory, db):
        """Test either threshold alone is not enough."""
        low_access = await self._accessed(memory, db, MemoryTier.SHORT_TERM, 90, 2)

        assert await memory.promote_memory(low_access) is False
        assert (await db.memories.get(low_access)).tier == MemoryTier.SHORT_TERM

    @pytest.mark.asyncio
    async def test_long_term_never_promotes(self, memory, db):
        """Test long term is the last tier."""
        memory_id = await self._accessed(memory, db, MemoryTier.LONG_TERM, 100, 50)

        assert await memory.promote_memory(memory_id) is False

    @pytest.mark.asyncio
    async def test_promote_unknown_memory(self, memory):
        """Test promoting a missing memory returns False."""
        assert await memory.promote_memory("missing") is False

    @pytest.mark.asyncio
    async def test_check_promotions(self, memory, db):
        """Test the batch pass promotes every eligible entry."""
        eligible = await memory.store("a", 1, tier=MemoryTier.SHORT_TERM,
                                      category=MemoryCategory.PATTERN, importance=75)
        await db.memories.update(eligible, access_count=5)
        await memory.store("b", 1, tier=MemoryTier.SHORT_TERM,
                           category=MemoryCategory.PATTERN, importance=75)
        await memory.store("c", 1, tier=MemoryTier.SHORT_TERM,
                           category=MemoryCategory.PATTERN, importance=10)

        assert await memory.check_promotions() == 1
        assert (await db.memories.get(eligible)).tier == MemoryTier.MEDIUM_TERM

    @pytest.mark.asyncio
    async def test_custom_thresholds(self, db):
        """Test promotion thresholds come from configuration."""
        memory = MemoryService(
            db, "ws_test",
            config=MemoryConfig(short_to_medium_importance=40, short_to_medium_access=0),
        )
        memory_id = await memory.store("k", 1, tier=MemoryTier.SHORT_TERM,
                                       category=MemoryCategory.PATTERN, importance=40)

        assert await memory.promote_memory(memory_id) is True


class TestMaintenanceAndSharing:
    """Test cleanup, context sharing and importance updates."""

    @pytest.mark.asyncio
    async def test_cleanup_deletes_expired(self, memory, db):
        """Test cleanup removes only expired entries."""
        await memory.store("old", 1, tier=MemoryTier.SHORT_TERM,
                           category=MemoryCategory.CONTEXT,
                           expires_at=datetime.now(UTC) - timedelta(seconds=1))
        await memory.store("new", 1, tier=MemoryTier.SHORT_TERM,
                           category=MemoryCategory.CONTEXT)

        assert await memory.cleanup() == 1
        assert await db.memories.count() == 1

    @pytest.mark.asyncio
    async def test_share_context(self, memory, db):
        """Test shared context lands in the recipient's short term memory."""
        memory_id = await memory.share_context("agent_a", "agent_b", {"lead": "acme"})

        stored = await db.memories.get(memory_id)
        assert stored.key.startswith("shared_from_agent_a_")
        assert stored.agent_id == "agent_b"
        assert stored.tier == MemoryTier.SHORT_TERM
        assert stored.category == MemoryCategory.CONTEXT
        assert stored.importance == 60
        assert stored.metadata == {"source": "agent:agent_a"}

    @pytest.mark.asyncio
    async def test_get_shared_context_merges(self, memory):
        """Test shared context entries merge into one dictionary."""
        await memory.share_context("agent_a", "agent_b", {"lead": "acme"})
        await memory.share_context("agent_c", "agent_b", {"budget": 1000})
        await memory.share_context("agent_a", "agent_x", {"other": True})

        context = await memory.get_shared_context("agent_b")

        assert context == {"lead": "acme", "budget": 1000}

    @pytest.mark.asyncio
    async def test_update_importance_clamps(self, memory, db):
        """Test importance is clamped to 0-100."""
        memory_id = await memory.store("k", 1, tier=MemoryTier.LONG_TERM,
                                       category=MemoryCategory.KNOWLEDGE)

        assert await memory.update_importance(memory_id, 150) is True
        assert (await db.memories.get(memory_id)).importance == 100

        await memory.update_importance(memory_id, -5)
        assert (await db.memories.get(memory_id)).importance == 0

    @pytest.mark.asyncio
    async def test_update_importance_missing(self, memory):
        """Test updating a missing memory returns False."""
        assert await memory.update_importance("missing", 10) is False

    @pytest.mark.asyncio
    async def test_delete(self, memory):
        """Test deleting a memory."""
        memory_id = await memory.store("k", 1, tier=MemoryTier.LONG_TERM,
                                       category=MemoryCategory.KNOWLEDGE)

        assert await memory.delete(memory_id) is True
        assert await memory.delete(memory_id) is False
