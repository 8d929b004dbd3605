"""Message repository for database operations on chat messages."""

import logging

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.entities import ChatSummary, Message, ToolExecutionRecord
from infrastructure.models import ChatSessionModel, MessageModel

logger = logging.getLogger(__name__)


class MessageRepository:
    """Repository for message operations using SQLAlchemy ORM.

    All methods accept an AsyncSession to support transactions.
    """

    async def create(
        self,
        session: AsyncSession,
        session_id: str,
        role: str,
        content: str,
        token_count: int | None = None,
        tool_results: list[ToolExecutionRecord] | None = None,
    ) -> Message:
        """Create a new message.

        Args:
            session: SQLAlchemy async session (can be part of a transaction)
            session_id: Session identifier
            role: Message role (user, assistant)
            content: Message content
            token_count: Optional size estimate of the content
            tool_results: Tool executions performed while producing the message

        Returns:
            Message: Created message
        """
        db_message = MessageModel(
            session_id=session_id,
            role=role,
            content=content,
            token_count=token_count,
            tool_results=(
                [record.model_dump(mode="json") for record in tool_results]
                if tool_results
                else None
            ),
        )
        session.add(db_message)
        await session.flush()
        await session.refresh(db_message)

        logger.info(f"Created {role} message {db_message.id} in session {session_id}")
        return Message.from_model(db_message)

    async def get_by_session(
        self,
        session: AsyncSession,
        session_id: str,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[Message]:
        """Get messages for a session, oldest first.

        Args:
            session: SQLAlchemy async session
            session_id: Session identifier
            limit: Optional limit on number of messages
            offset: Number of messages to skip

        Returns:
            list[Message]: List of messages
        """
        stmt = (
            select(MessageModel)
            .where(MessageModel.session_id == session_id)
            .order_by(MessageModel.created_at.asc(), MessageModel.id.asc())
            .offset(offset)
        )

        if limit is not None:
            stmt = stmt.limit(limit)

        result = await session.execute(stmt)
        messages = [Message.from_model(db_message) for db_message in result.scalars()]

        logger.info(f"Retrieved {len(messages)} messages for session {session_id}")
        return messages

    async def get_recent_by_session(
        self,
        session: AsyncSession,
        session_id: str,
        limit: int,
    ) -> list[Message]:
        """Get the latest messages of a session in chronological order.

        Args:
            session: SQLAlchemy async session
            session_id: Session identifier
            limit: Maximum number of messages to return

        Returns:
            list[Message]: Up to ``limit`` newest messages, oldest first
        """
        stmt = (
            select(MessageModel)
            .where(MessageModel.session_id == session_id)
            .order_by(MessageModel.created_at.desc(), MessageModel.id.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        messages = [Message.from_model(db_message) for db_message in result.scalars()]
        messages.reverse()

        logger.debug(f"Loaded {len(messages)} history messages for session {session_id}")
        return messages

    async def count_by_session(self, session: AsyncSession, session_id: str) -> int:
        """Count messages in a session.

        Args:
            session: SQLAlchemy async session
            session_id: Session identifier

        Returns:
            int: Message count
        """
        stmt = (
            select(func.count())
            .select_from(MessageModel)
            .where(MessageModel.session_id == session_id)
        )
        result = await session.execute(stmt)
        return result.scalar_one()

    async def search(
        self,
        session: AsyncSession,
        query: str,
        agent_id: str | None = None,
        limit: int = 100,
    ) -> list[Message]:
        """Find messages whose content contains the query, newest first.

        Matching is case-insensitive and treats ``%`` and ``_`` literally.

        Args:
            session: SQLAlchemy async session
            query: Text to look for
            agent_id: Only search sessions of this agent when given
            limit: Maximum number of messages to return

        Returns:
            list[Message]: Matching messages
        """
        stmt = select(MessageModel).where(
            MessageModel.content.icontains(query, autoescape=True)
        )
        if agent_id is not None:
            stmt = stmt.join(
                ChatSessionModel, MessageModel.session_id == ChatSessionModel.id
            ).where(ChatSessionModel.agent_id == agent_id)
        stmt = stmt.order_by(
            MessageModel.created_at.desc(), MessageModel.id.desc()
        ).limit(limit)

        result = await session.execute(stmt)
        messages = [Message.from_model(db_message) for db_message in result.scalars()]

        logger.info(f"Found {len(messages)} messages matching '{query}'")
        return messages

    async def summarize_by_agent(
        self, session: AsyncSession, agent_id: str
    ) -> ChatSummary:
        """Aggregate message counts and token usage over an agent's sessions.

        ``total_sessions`` is left at zero; sessions are counted by the
        session repository.
        """
        stmt = (
            select(
                MessageModel.role,
                func.count(MessageModel.id),
                func.coalesce(func.sum(MessageModel.token_count), 0),
                func.min(MessageModel.created_at),
                func.max(MessageModel.created_at),
            )
            .join(ChatSessionModel, MessageModel.session_id == ChatSessionModel.id)
            .where(ChatSessionModel.agent_id == agent_id)
            .group_by(MessageModel.role)
        )
        result = await session.execute(stmt)

        summary = ChatSummary(agent_id=agent_id)
        for role, count, tokens, oldest, newest in result.all():
            summary.messages_by_role[role] = count
            summary.total_messages += count
            summary.total_tokens += tokens
            if summary.oldest_message is None or oldest < summary.oldest_message:
                summary.oldest_message = oldest
            if summary.newest_message is None or newest > summary.newest_message:
                summary.newest_message = newest

        return summary

    async def delete_by_session(self, session: AsyncSession, session_id: str) -> int:
        """Delete all messages in a session.

        Args:
            session: SQLAlchemy async session
            session_id: Session identifier

        Returns:
            int: Number of messages deleted
        """
        stmt = delete(MessageModel).where(MessageModel.session_id == session_id)
        result = await session.execute(stmt)
        count: int = result.rowcount or 0  # type: ignore[attr-defined]
        logger.info(f"Deleted {count} messages from session {session_id}")
        return count
