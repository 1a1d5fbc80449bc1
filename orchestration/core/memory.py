"""Memory Service - Tiered shared memory for cross-agent context.

Entries live in one of three tiers. short_term and medium_term entries expire
(24 hours and 30 days by default), long_term entries never do. Frequently used,
important entries are promoted to the next tier.
"""

import uuid
from datetime import UTC, datetime, timedelta
from typing import Any

from orchestration.models import MemoryCategory, MemoryQuery, MemoryTier, SharedMemory
from orchestration.persistence import Database
from orchestration.utils.config import MemoryConfig
from orchestration.utils.logging import get_logger

logger = get_logger(__name__)

SHARED_CONTEXT_LIMIT = 20
SHARED_CONTEXT_IMPORTANCE = 60


class MemoryService:
    """Workspace-scoped memory store.

    Writes are upserts keyed by (workspace, team, agent, key); reads exclude
    expired entries and count as an access.
    """

    def __init__(
        self,
        db: Database,
        workspace_id: str,
        config: MemoryConfig | None = None,
    ):
        """Initialize the memory service.

        Args:
            db: Database holding the memories repository.
            workspace_id: Workspace every operation is scoped to.
            config: Expiry and promotion settings.
        """
        self._db = db
        self.workspace_id = workspace_id
        self._config = config or MemoryConfig()

    def default_expiry(
        self, tier: MemoryTier, now: datetime | None = None
    ) -> datetime | None:
        """Expiry applied when a write does not specify one."""
        now = now or datetime.now(UTC)
        if tier == MemoryTier.SHORT_TERM:
            return now + timedelta(hours=self._config.short_term_ttl_hours)
        if tier == MemoryTier.MEDIUM_TERM:
            return now + timedelta(days=self._config.medium_term_ttl_days)
        return None

    async def store(
        self,
        key: str,
        value: Any,
        *,
        tier: MemoryTier,
        category: MemoryCategory,
        team_id: str | None = None,
        agent_id: str | None = None,
        importance: int | None = None,
        expires_at: datetime | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Store a memory, updating in place if the scoped key already exists.

        Args:
            key: Key, unique within the (team, agent) scope.
            value: Arbitrary payload.
            tier: Memory tier.
            category: Memory category.
            team_id: Optional team scope.
            agent_id: Optional agent scope.
            importance: 0-100. Defaults to 50 on insert, unchanged on update.
            expires_at: Explicit expiry; defaults by tier.
            metadata: Merged into existing metadata on update.

        Returns:
            The memory id.

        Raises:
            Exception: Any persistence failure is logged and re-raised.
        """
        now = datetime.now(UTC)
        expiry = expires_at if expires_at is not None else self.default_expiry(tier, now)
        logger.debug(
            "Storing memory",
            workspace_id=self.workspace_id,
            tier=tier.value,
            category=category.value,
            key=key,
        )

        def matches(memory: SharedMemory) -> bool:
            return (
                memory.workspace_id == self.workspace_id
                and memory.key == key
                and memory.in_scope(team_id, agent_id)
            )

        def create() -> SharedMemory:
            return SharedMemory(
                workspace_id=self.workspace_id,
                team_id=team_id,
                agent_id=agent_id,
                tier=tier,
                category=category,
                key=key,
                value=value,
                metadata=dict(metadata or {}),
                importance=importance if importance is not None else 50,
                expires_at=expiry,
                created_at=now,
                updated_at=now,
            )

        def merge(existing: SharedMemory) -> dict[str, Any]:
            return {
                "value": value,
                "tier": tier,
                "category": category,
                "metadata": {**existing.metadata, **(metadata or {})},
                "importance": (
                    importance if importance is not None else existing.importance
                ),
                "access_count": existing.access_count + 1,
                "last_accessed_at": now,
                "expires_at": expiry,
                "updated_at": now,
            }

        try:
            memory, created = await self._db.memories.upsert(matches, create, merge)
        except Exception:
            logger.error("Failed to store memory", key=key, exc_info=True)
            raise

        logger.info(
            "Memory stored" if created else "Memory updated",
            memory_id=memory.id,
            key=key,
            tier=tier.value,
        )
        return memory.id

    async def retrieve(self, query: MemoryQuery | None = None) -> list[SharedMemory]:
        """Find unexpired memories, most important and most recent first.

        Each returned entry has its access count incremented.
        """
        query = query or MemoryQuery(limit=self._config.default_limit)
        now = datetime.now(UTC)

        def matches(memory: SharedMemory) -> bool:
            if memory.workspace_id != self.workspace_id or memory.is_expired(now):
                return False
            if query.team_id is not None and memory.team_id != query.team_id:
                return False
            if query.agent_id is not None and memory.agent_id != query.agent_id:
                return False
            if query.tier is not None and memory.tier != query.tier:
                return False
            if query.category is not None and memory.category != query.category:
                return False
            if query.key_pattern and query.key_pattern not in memory.key:
                return False
            if (
                query.min_importance is not None
                and memory.importance < query.min_importance
            ):
                return False
            return True

        try:
            memories = await self._db.memories.find_many(
                where=matches,
                order_by=lambda m: (m.importance, m.updated_at),
                descending=True,
                limit=query.limit,
            )
            accessed = []
            for memory in memories:
                updated = await self._record_access(memory.id)
                accessed.append(updated or memory)
            return accessed
        except Exception:
            logger.error("Failed to retrieve memories", exc_info=True)
            return []

    async def get(
        self,
        key: str,
        team_id: str | None = None,
        agent_id: str | None = None,
    ) -> SharedMemory | None:
        """Look up one unexpired memory by key, recording the access."""
        now = datetime.now(UTC)

        def matches(memory: SharedMemory) -> bool:
            return (
                memory.workspace_id == self.workspace_id
                and memory.key == key
                and (team_id is None or memory.team_id == team_id)
                and (agent_id is None or memory.agent_id == agent_id)
                and not memory.is_expired(now)
            )

        try:
            memory = await self._db.memories.find_one(matches)
            if memory is None:
                return None
            return await self._record_access(memory.id) or memory
        except Exception:
            logger.error("Failed to get memory", key=key, exc_info=True)
            return None

    async def promote_memory(self, memory_id: str) -> bool:
        """Move a memory to the next tier if it meets both thresholds.

        short_term -> medium_term needs importance >= 70 and 3+ accesses,
        medium_term -> long_term needs importance >= 85 and 10+ accesses.
        The expiry is reset to the new tier's default.
        """
        cfg = self._config
        promoted: dict[str, MemoryTier] = {}

        def promote(memory: SharedMemory) -> dict[str, Any] | None:
            if memory.workspace_id != self.workspace_id:
                return None
            if (
                memory.tier == MemoryTier.SHORT_TERM
                and memory.importance >= cfg.short_to_medium_importance
                and memory.access_count >= cfg.short_to_medium_access
            ):
                new_tier = MemoryTier.MEDIUM_TERM
            elif (
                memory.tier == MemoryTier.MEDIUM_TERM
                and memory.importance >= cfg.medium_to_long_importance
                and memory.access_count >= cfg.medium_to_long_access
            ):
                new_tier = MemoryTier.LONG_TERM
            else:
                return None
            promoted["from"] = memory.tier
            promoted["to"] = new_tier
            now = datetime.now(UTC)
            return {
                "tier": new_tier,
                "expires_at": self.default_expiry(new_tier, now),
                "updated_at": now,
            }

        try:
            await self._db.memories.modify(memory_id, promote)
        except Exception:
            logger.error("Failed to promote memory", memory_id=memory_id, exc_info=True)
            return False

        if not promoted:
            return False
        logger.info(
            "Memory promoted",
            memory_id=memory_id,
            from_tier=promoted["from"].value,
            to_tier=promoted["to"].value,
        )
        return True

    async def check_promotions(self) -> int:
        """Attempt promotion of every entry above its tier's importance bar.

        Returns:
            Number of memories promoted.
        """
        cfg = self._config

        def candidate(memory: SharedMemory) -> bool:
            if memory.workspace_id != self.workspace_id:
                return False
            if memory.tier == MemoryTier.SHORT_TERM:
                return memory.importance >= cfg.short_to_medium_importance
            if memory.tier == MemoryTier.MEDIUM_TERM:
                return memory.importance >= cfg.medium_to_long_importance
            return False

        try:
            candidates = await self._db.memories.find_many(where=candidate)
        except Exception:
            logger.error("Failed to check promotions", exc_info=True)
            return 0

        promoted = 0
        for memory in candidates:
            if await self.promote_memory(memory.id):
                promoted += 1
        return promoted

    async def cleanup(self) -> int:
        """Delete every expired memory in the workspace.

        Returns:
            Number of memories deleted.
        """
        now = datetime.now(UTC)
        try:
            deleted = await self._db.memories.delete_many(
                lambda m: m.workspace_id == self.workspace_id and m.is_expired(now)
            )
        except Exception:
            logger.error("Failed to clean up memories", exc_info=True)
            return 0

        if deleted:
            logger.info(
                "Cleaned up expired memories",
                workspace_id=self.workspace_id,
                deleted_count=deleted,
            )
        return deleted

    async def share_context(
        self,
        from_agent_id: str,
        to_agent_id: str,
        context: dict[str, Any],
    ) -> str:
        """Write a short-term context entry addressed to ``to_agent_id``."""
        logger.info(
            "Sharing context",
            from_agent_id=from_agent_id,
            to_agent_id=to_agent_id,
            context_keys=list(context.keys()),
        )
        stamp = int(datetime.now(UTC).timestamp() * 1000)
        return await self.store(
            f"shared_from_{from_agent_id}_{stamp}_{uuid.uuid4().hex[:8]}",
            context,
            tier=MemoryTier.SHORT_TERM,
            category=MemoryCategory.CONTEXT,
            agent_id=to_agent_id,
            importance=SHARED_CONTEXT_IMPORTANCE,
            metadata={"source": f"agent:{from_agent_id}"},
        )

    async def get_shared_context(self, agent_id: str) -> dict[str, Any]:
        """Merge the agent's most relevant short-term context entries.

        Entries are merged in retrieval order, so a later entry overwrites
        keys set by an earlier one.
        """
        memories = await self.retrieve(
            MemoryQuery(
                agent_id=agent_id,
                tier=MemoryTier.SHORT_TERM,
                category=MemoryCategory.CONTEXT,
                limit=SHARED_CONTEXT_LIMIT,
            )
        )
        context: dict[str, Any] = {}
        for memory in memories:
            if isinstance(memory.value, dict):
                context.update(memory.value)
        return context

    async def update_importance(self, memory_id: str, importance: int) -> bool:
        """Set a memory's importance, clamped to 0-100."""
        clamped = max(0, min(100, importance))
        try:
            updated = await self._db.memories.update(
                memory_id, importance=clamped, updated_at=datetime.now(UTC)
            )
        except Exception:
            logger.error(
                "Failed to update memory importance", memory_id=memory_id, exc_info=True
            )
            return False
        return updated is not None

    async def delete(self, memory_id: str) -> bool:
        try:
            return await self._db.memories.delete(memory_id)
        except Exception:
            logger.error("Failed to delete memory", memory_id=memory_id, exc_info=True)
            return False

    async def _record_access(self, memory_id: str) -> SharedMemory | None:
        now = datetime.now(UTC)
        return await self._db.memories.modify(
            memory_id,
            lambda m: {"access_count": m.access_count + 1, "last_accessed_at": now},
        )
