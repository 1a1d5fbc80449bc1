"""Message Bus - Direct and team messaging between agents.

Messages are persisted through the messages repository. Delivery is modelled
as acceptance into the recipient's inbox, no external transport is involved.
"""

import uuid
from datetime import UTC, datetime

from orchestration.models import (
    MESSAGE_STATUS_ORDER,
    AgentMessage,
    MessageContent,
    MessageFilters,
    MessageStatus,
    MessageType,
    SendMessageInput,
)
from orchestration.persistence import Database
from orchestration.utils.exceptions import NotFoundError
from orchestration.utils.logging import get_logger

logger = get_logger(__name__)

UNREAD_STATUSES = frozenset({MessageStatus.PENDING, MessageStatus.DELIVERED})


class MessageBus:
    """Workspace-scoped message bus.

    Write paths (``send``, ``broadcast``, ``reply``) raise on failure; read
    paths log and return empty results; status transitions never raise.
    """

    def __init__(self, db: Database, workspace_id: str):
        """Initialize the message bus.

        Args:
            db: Database holding the messages and team membership repositories.
            workspace_id: Workspace every operation is scoped to.
        """
        self._db = db
        self.workspace_id = workspace_id

    async def send(self, message: SendMessageInput) -> str:
        """Persist a message and deliver it if it has a direct recipient.

        The thread is inherited from the parent message (or rooted at the
        parent's id if the parent has no thread); otherwise a new thread is
        started.

        Args:
            message: The message to send.

        Returns:
            The new message id.
        """
        try:
            thread_id = await self._resolve_thread_id(message.parent_message_id)
            now = datetime.now(UTC)
            record = AgentMessage(
                workspace_id=self.workspace_id,
                team_id=message.team_id,
                from_agent_id=message.from_agent_id,
                to_agent_id=message.to_agent_id,
                message_type=message.message_type,
                content=message.content,
                thread_id=thread_id,
                parent_message_id=message.parent_message_id,
                status=MessageStatus.PENDING,
                created_at=now,
            )
            if message.to_agent_id:
                record.status = MessageStatus.DELIVERED
                record.delivered_at = now

            stored = await self._db.messages.insert(record)
        except Exception:
            logger.error(
                "Failed to send message",
                to_agent_id=message.to_agent_id,
                message_type=message.message_type.value,
                exc_info=True,
            )
            raise

        logger.info(
            "Message sent",
            message_id=stored.id,
            from_agent_id=message.from_agent_id,
            to_agent_id=message.to_agent_id,
            message_type=message.message_type.value,
            thread_id=thread_id,
        )
        return stored.id

    async def broadcast(
        self,
        team_id: str,
        message_type: MessageType,
        content: MessageContent,
        from_agent_id: str | None = None,
    ) -> list[str]:
        """Fan a message out to every team member except the sender.

        All copies share one new thread and are delivered immediately.

        Returns:
            Ids of the messages created; empty if the team has no members.
        """
        try:
            members = await self._db.team_members.find_many(
                where=lambda m: m.team_id == team_id
            )
            if not members:
                logger.warning("Team has no members", team_id=team_id)
                return []

            thread_id = str(uuid.uuid4())
            message_ids: list[str] = []
            for member in members:
                if member.agent_id == from_agent_id:
                    continue
                now = datetime.now(UTC)
                stored = await self._db.messages.insert(
                    AgentMessage(
                        workspace_id=self.workspace_id,
                        team_id=team_id,
                        from_agent_id=from_agent_id,
                        to_agent_id=member.agent_id,
                        message_type=message_type,
                        content=content,
                        thread_id=thread_id,
                        status=MessageStatus.DELIVERED,
                        created_at=now,
                        delivered_at=now,
                    )
                )
                message_ids.append(stored.id)
        except Exception:
            logger.error("Failed to broadcast", team_id=team_id, exc_info=True)
            raise

        logger.info(
            "Broadcast complete",
            team_id=team_id,
            thread_id=thread_id,
            recipient_count=len(message_ids),
        )
        return message_ids

    async def get_message(self, message_id: str) -> AgentMessage | None:
        message = await self._db.messages.get(message_id)
        if message is None or message.workspace_id != self.workspace_id:
            return None
        return message

    async def get_messages(
        self, agent_id: str, filters: MessageFilters | None = None
    ) -> list[AgentMessage]:
        """Inbox query for ``agent_id``, newest first."""
        filters = filters or MessageFilters()

        def matches(message: AgentMessage) -> bool:
            if (
                message.workspace_id != self.workspace_id
                or message.to_agent_id != agent_id
            ):
                return False
            if filters.message_type and message.message_type != filters.message_type:
                return False
            if filters.status and message.status != filters.status:
                return False
            if filters.team_id and message.team_id != filters.team_id:
                return False
            if filters.from_agent_id and message.from_agent_id != filters.from_agent_id:
                return False
            if filters.since and message.created_at < filters.since:
                return False
            return True

        try:
            return await self._db.messages.find_many(
                where=matches,
                order_by=lambda m: m.created_at,
                descending=True,
                limit=filters.limit,
            )
        except Exception:
            logger.error("Failed to get messages", agent_id=agent_id, exc_info=True)
            return []

    async def get_unread_count(self, agent_id: str) -> int:
        """Count messages addressed to the agent that are pending or delivered."""
        try:
            return await self._db.messages.count(
                lambda m: m.workspace_id == self.workspace_id
                and m.to_agent_id == agent_id
                and m.status in UNREAD_STATUSES
            )
        except Exception:
            logger.error("Failed to count unread messages", agent_id=agent_id, exc_info=True)
            return 0

    async def get_thread(self, thread_id: str) -> list[AgentMessage]:
        """Return the whole thread in chronological order."""
        try:
            return await self._db.messages.find_many(
                where=lambda m: m.workspace_id == self.workspace_id
                and m.thread_id == thread_id,
                order_by=lambda m: m.created_at,
            )
        except Exception:
            logger.error("Failed to get thread", thread_id=thread_id, exc_info=True)
            return []

    async def mark_as_read(self, message_id: str) -> bool:
        """Move a message to ``read``. Never moves it backwards."""
        return await self._advance_status(message_id, MessageStatus.READ)

    async def acknowledge(self, message_id: str) -> bool:
        """Move a message to ``processed``."""
        return await self._advance_status(message_id, MessageStatus.PROCESSED)

    async def mark_multiple_as_read(self, message_ids: list[str]) -> int:
        """Mark each message as read independently.

        Returns:
            Number of messages that exist in this workspace.
        """
        marked = 0
        for message_id in message_ids:
            if await self.mark_as_read(message_id):
                marked += 1
        return marked

    async def reply(
        self,
        message_id: str,
        from_agent_id: str,
        content: MessageContent,
    ) -> str:
        """Reply to a message as a ``result`` in the same thread.

        The recipient is the other party of the original message.

        Raises:
            NotFoundError: If the original message does not exist.
        """
        original = await self.get_message(message_id)
        if original is None:
            raise NotFoundError("Message", message_id)

        if original.from_agent_id == from_agent_id:
            recipient = original.to_agent_id
        else:
            recipient = original.from_agent_id

        return await self.send(
            SendMessageInput(
                from_agent_id=from_agent_id,
                to_agent_id=recipient,
                team_id=original.team_id,
                message_type=MessageType.RESULT,
                content=content,
                parent_message_id=original.id,
            )
        )

    async def _resolve_thread_id(self, parent_message_id: str | None) -> str:
        if parent_message_id:
            parent = await self.get_message(parent_message_id)
            if parent is not None:
                return parent.thread_id or parent.id
        return str(uuid.uuid4())

    async def _advance_status(self, message_id: str, target: MessageStatus) -> bool:
        now = datetime.now(UTC)
        timestamp_field = {
            MessageStatus.READ: "read_at",
            MessageStatus.PROCESSED: "processed_at",
        }[target]

        def advance(message: AgentMessage) -> dict | None:
            if message.workspace_id != self.workspace_id:
                return None
            if MESSAGE_STATUS_ORDER[message.status] >= MESSAGE_STATUS_ORDER[target]:
                return None
            return {"status": target, timestamp_field: now}

        try:
            updated = await self._db.messages.modify(message_id, advance)
        except Exception:
            logger.error(
                "Failed to update message status",
                message_id=message_id,
                status=target.value,
                exc_info=True,
            )
            return False
        return updated is not None and updated.workspace_id == self.workspace_id
