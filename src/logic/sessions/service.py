"""Session service for business logic related to chat sessions."""

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from domain.entities import ChatSession, ChatSummary, Message, ToolExecutionRecord
from repositories.agent_repository import AgentRepository
from repositories.message_repository import MessageRepository
from repositories.session_repository import SessionRepository
from repositories.tool_execution_repository import ToolExecutionRepository

logger = logging.getLogger(__name__)


class AgentNotFoundError(Exception):
    """Raised when an operation references an unknown agent."""


class SessionService:
    """Service for managing chat sessions with transactional operations.

    Session maker is injected via DI, service manages its own database sessions.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        session_repo: SessionRepository,
        message_repo: MessageRepository,
        agent_repo: AgentRepository,
        execution_repo: ToolExecutionRepository,
    ) -> None:
        """Initialize session service.

        Args:
            session_maker: Async session maker for database connections
            session_repo: Session repository instance
            message_repo: Message repository instance
            agent_repo: Agent repository instance
            execution_repo: Tool execution log repository
        """
        self.session_maker = session_maker
        self.session_repo = session_repo
        self.message_repo = message_repo
        self.agent_repo = agent_repo
        self.execution_repo = execution_repo

    async def create_session(
        self,
        agent_id: str,
        title: str | None = None,
        user_id: str | None = None,
    ) -> ChatSession:
        """Create a new chat session with a unique ID.

        Args:
            agent_id: Agent the session talks to
            title: Optional title for the session. Auto-generated if not provided.
            user_id: Optional owner of the session

        Returns:
            ChatSession: Created session

        Raises:
            AgentNotFoundError: If the agent does not exist
        """
        session_id = str(uuid.uuid4())

        if title is None:
            title = f"Chat {datetime.now(UTC).strftime('%Y-%m-%d %H:%M')}"

        async with self.session_maker() as db_session:
            agent = await self.agent_repo.get_by_id(db_session, agent_id)
            if agent is None:
                raise AgentNotFoundError(f"Agent {agent_id} not found")

            logger.info(f"Creating new session: {session_id} with title: {title}")
            chat_session = await self.session_repo.create(
                db_session, session_id, agent_id, title, user_id
            )
            await db_session.commit()

        return chat_session

    async def get_session(self, session_id: str) -> ChatSession | None:
        """Get a chat session by ID.

        Args:
            session_id: Session identifier

        Returns:
            ChatSession | None: Session if found, None otherwise
        """
        async with self.session_maker() as db_session:
            return await self.session_repo.get_by_id(db_session, session_id)

    async def list_sessions(
        self, agent_id: str | None = None, limit: int = 100, offset: int = 0
    ) -> tuple[list[ChatSession], int]:
        """List chat sessions with pagination.

        Args:
            agent_id: Only list sessions of this agent when given
            limit: Maximum number of sessions to return
            offset: Number of sessions to skip

        Returns:
            tuple[list[ChatSession], int]: List of sessions and total count
        """
        async with self.session_maker() as db_session:
            sessions = await self.session_repo.list_all(
                db_session, agent_id=agent_id, limit=limit, offset=offset
            )
            total = await self.session_repo.count(db_session, agent_id=agent_id)

        return sessions, total

    async def update_session(self, session_id: str, title: str) -> ChatSession | None:
        """Rename a chat session.

        Args:
            session_id: Session identifier
            title: New title for the session

        Returns:
            ChatSession | None: Updated session if found, None otherwise
        """
        logger.info(f"Updating session {session_id} with title: {title}")

        async with self.session_maker() as db_session:
            updated_session = await self.session_repo.update_title(
                db_session, session_id, title
            )
            if updated_session:
                await db_session.commit()
            return updated_session

    async def close_session(self, session_id: str) -> ChatSession | None:
        """Close a chat session so it accepts no further turns.

        Args:
            session_id: Session identifier

        Returns:
            ChatSession | None: Closed session if found, None otherwise
        """
        async with self.session_maker() as db_session:
            closed_session = await self.session_repo.close(db_session, session_id)
            if closed_session:
                await db_session.commit()
            return closed_session

    async def delete_session(self, session_id: str) -> bool:
        """Delete a chat session and all its messages.

        Args:
            session_id: Session identifier

        Returns:
            bool: True if deleted, False if not found
        """
        async with self.session_maker() as db_session:
            await self.message_repo.delete_by_session(db_session, session_id)
            deleted = await self.session_repo.delete(db_session, session_id)
            await db_session.commit()

        return deleted

    async def get_message_history(
        self, session_id: str, limit: int | None = None, offset: int = 0
    ) -> tuple[list[Message], int]:
        """Get messages of a session, oldest first.

        Args:
            session_id: Session identifier
            limit: Optional limit on number of messages
            offset: Number of messages to skip

        Returns:
            tuple[list[Message], int]: List of messages and total count
        """
        async with self.session_maker() as db_session:
            messages = await self.message_repo.get_by_session(
                db_session, session_id, limit=limit, offset=offset
            )
            count = await self.message_repo.count_by_session(db_session, session_id)

        return messages, count

    async def list_tool_executions(
        self,
        agent_id: str | None = None,
        session_id: str | None = None,
        limit: int = 100,
    ) -> list[ToolExecutionRecord]:
        """List logged tool executions, newest first."""
        async with self.session_maker() as db_session:
            return await self.execution_repo.list_recent(
                db_session, agent_id=agent_id, session_id=session_id, limit=limit
            )

    async def get_tool_execution(self, execution_id: int) -> ToolExecutionRecord | None:
        async with self.session_maker() as db_session:
            return await self.execution_repo.get_by_id(db_session, execution_id)

    async def search_messages(
        self, query: str, agent_id: str | None = None, limit: int = 100
    ) -> list[Message]:
        """Search message content across sessions, newest first.

        Args:
            query: Text to look for (case-insensitive)
            agent_id: Only search sessions of this agent when given
            limit: Maximum number of messages to return

        Returns:
            list[Message]: Matching messages
        """
        async with self.session_maker() as db_session:
            return await self.message_repo.search(
                db_session, query, agent_id=agent_id, limit=limit
            )

    async def get_chat_summary(self, agent_id: str) -> ChatSummary:
        """Summarize message counts and token usage for an agent.

        Args:
            agent_id: Agent identifier

        Returns:
            ChatSummary: Statistics over every session of the agent

        Raises:
            AgentNotFoundError: If the agent does not exist
        """
        async with self.session_maker() as db_session:
            agent = await self.agent_repo.get_by_id(db_session, agent_id)
            if agent is None:
                raise AgentNotFoundError(f"Agent {agent_id} not found")

            summary = await self.message_repo.summarize_by_agent(db_session, agent_id)
            summary.total_sessions = await self.session_repo.count(
                db_session, agent_id=agent_id
            )

        return summary
