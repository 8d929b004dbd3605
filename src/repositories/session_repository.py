"""Session repository for database operations on chat sessions."""

import logging
from datetime import UTC, datetime

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from domain.entities import ChatSession
from infrastructure.models import ChatSessionModel

logger = logging.getLogger(__name__)


class SessionRepository:
    """Repository for chat session operations using SQLAlchemy ORM.

    All methods accept an AsyncSession to support transactions.
    """

    async def create(
        self,
        session: AsyncSession,
        session_id: str,
        agent_id: str,
        title: str,
        user_id: str | None = None,
    ) -> ChatSession:
        """Create a new chat session bound to an agent.

        Args:
            session: SQLAlchemy async session (can be part of a transaction)
            session_id: Unique session identifier
            agent_id: Agent the session belongs to
            title: Session title
            user_id: Optional owner of the session

        Returns:
            ChatSession: Created session
        """
        db_session = ChatSessionModel(
            id=session_id, agent_id=agent_id, title=title, user_id=user_id
        )
        session.add(db_session)
        await session.flush()  # Flush to get created_at/updated_at values
        await session.refresh(db_session)

        logger.info(f"Created chat session {session_id} for agent {agent_id}")
        return ChatSession.from_model(db_session)

    async def get_by_id(
        self, session: AsyncSession, session_id: str
    ) -> ChatSession | None:
        """Get a chat session by ID.

        Args:
            session: SQLAlchemy async session
            session_id: Session identifier

        Returns:
            ChatSession | None: Session if found, None otherwise
        """
        stmt = select(ChatSessionModel).where(ChatSessionModel.id == session_id)
        result = await session.execute(stmt)
        db_session = result.scalar_one_or_none()

        if db_session is None:
            logger.debug(f"Session not found: {session_id}")
            return None

        return ChatSession.from_model(db_session)

    async def list_all(
        self,
        session: AsyncSession,
        agent_id: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[ChatSession]:
        """List chat sessions, most recently active first.

        Args:
            session: SQLAlchemy async session
            agent_id: Only list sessions of this agent when given
            limit: Maximum number of sessions to return
            offset: Number of sessions to skip

        Returns:
            list[ChatSession]: List of sessions
        """
        stmt = select(ChatSessionModel)
        if agent_id is not None:
            stmt = stmt.where(ChatSessionModel.agent_id == agent_id)
        stmt = (
            stmt.order_by(ChatSessionModel.updated_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await session.execute(stmt)
        sessions = [ChatSession.from_model(db_session) for db_session in result.scalars()]

        logger.info(f"Listed {len(sessions)} sessions")
        return sessions

    async def count(self, session: AsyncSession, agent_id: str | None = None) -> int:
        """Count sessions, optionally for a single agent.

        Args:
            session: SQLAlchemy async session
            agent_id: Only count sessions of this agent when given

        Returns:
            int: Session count
        """
        stmt = select(func.count()).select_from(ChatSessionModel)
        if agent_id is not None:
            stmt = stmt.where(ChatSessionModel.agent_id == agent_id)
        result = await session.execute(stmt)
        return result.scalar_one()

    async def delete(self, session: AsyncSession, session_id: str) -> bool:
        """Delete a chat session.

        Args:
            session: SQLAlchemy async session
            session_id: Session identifier

        Returns:
            bool: True if deleted, False if not found
        """
        stmt = delete(ChatSessionModel).where(ChatSessionModel.id == session_id)
        result = await session.execute(stmt)

        deleted = bool(result.rowcount)  # type: ignore[attr-defined]
        if deleted:
            logger.info(f"Deleted session: {session_id}")
        else:
            logger.warning(f"Session not found for deletion: {session_id}")

        return deleted

    async def update_title(
        self, session: AsyncSession, session_id: str, title: str
    ) -> ChatSession | None:
        """Rename a chat session.

        Args:
            session: SQLAlchemy async session
            session_id: Session identifier
            title: New title for the session

        Returns:
            ChatSession | None: Updated session if found, None otherwise
        """
        stmt = (
            update(ChatSessionModel)
            .where(ChatSessionModel.id == session_id)
            .values(title=title, updated_at=datetime.now(UTC))
            .returning(ChatSessionModel)
        )
        result = await session.execute(stmt)
        db_session = result.scalar_one_or_none()

        if db_session is None:
            logger.warning(f"Session not found for update: {session_id}")
            return None

        logger.info(f"Renamed session {session_id} to: {title}")
        return ChatSession.from_model(db_session)

    async def close(
        self, session: AsyncSession, session_id: str
    ) -> ChatSession | None:
        """Mark a chat session as closed.

        Closing an already closed session keeps its original ``closed_at``.

        Args:
            session: SQLAlchemy async session
            session_id: Session identifier

        Returns:
            ChatSession | None: Closed session if found, None otherwise
        """
        now = datetime.now(UTC)
        stmt = (
            update(ChatSessionModel)
            .where(ChatSessionModel.id == session_id)
            .values(
                closed_at=func.coalesce(ChatSessionModel.closed_at, now),
                updated_at=now,
            )
            .returning(ChatSessionModel)
        )
        result = await session.execute(stmt)
        db_session = result.scalar_one_or_none()

        if db_session is None:
            logger.warning(f"Session not found for closing: {session_id}")
            return None

        logger.info(f"Closed session: {session_id}")
        return ChatSession.from_model(db_session)

    async def update_timestamp(self, session: AsyncSession, session_id: str) -> None:
        """Update the session's updated_at timestamp.

        Args:
            session: SQLAlchemy async session
            session_id: Session identifier
        """
        stmt = (
            update(ChatSessionModel)
            .where(ChatSessionModel.id == session_id)
            .values(updated_at=datetime.now(UTC))
        )
        await session.execute(stmt)
        logger.debug(f"Updated timestamp for session: {session_id}")
