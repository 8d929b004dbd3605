"""Dependency injection placeholders for FastAPI.

These functions are overridden by AppBuilder at runtime.
Services use these via Depends() for automatic dependency injection.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config import Settings
from infrastructure.openai_client import OpenAIClient
from logic.chat import ChatService, ConversationManager
from logic.sessions import SessionService
from logic.tools import ToolBackendRegistry, ToolExecutor
from repositories.agent_repository import AgentRepository
from repositories.message_repository import MessageRepository
from repositories.session_repository import SessionRepository
from repositories.tool_execution_repository import ToolExecutionRepository


# Placeholder dependencies - will be overridden by AppBuilder
def get_db() -> async_sessionmaker[AsyncSession]:
    """Database session maker dependency.

    This is a placeholder that will be overridden by AppBuilder.
    Use with FastAPI Depends():
        db: async_sessionmaker[AsyncSession] = Depends(get_db)

    Returns:
        async_sessionmaker: Session maker instance

    Raises:
        NotImplementedError: If called before AppBuilder initialization
    """
    raise NotImplementedError("Database session maker not initialized. Use AppBuilder.")


def get_settings() -> Settings:
    """Application settings dependency.

    This is a placeholder that will be overridden by AppBuilder.

    Raises:
        NotImplementedError: If called before AppBuilder initialization
    """
    raise NotImplementedError("Settings not initialized. Use AppBuilder.")


def get_openai_client() -> OpenAIClient:
    """OpenAI client dependency.

    This is a placeholder that will be overridden by AppBuilder.
    Use with FastAPI Depends():
        openai_client: OpenAIClient = Depends(get_openai_client)

    Returns:
        OpenAIClient: OpenAI client instance

    Raises:
        NotImplementedError: If called before AppBuilder initialization
    """
    raise NotImplementedError("OpenAI client not initialized. Use AppBuilder.")


def get_tool_registry() -> ToolBackendRegistry:
    """Tool backend registry dependency.

    This is a placeholder that will be overridden by AppBuilder.

    Raises:
        NotImplementedError: If called before AppBuilder initialization
    """
    raise NotImplementedError("Tool backend registry not initialized. Use AppBuilder.")


def get_agent_repository() -> AgentRepository:
    return AgentRepository()


def get_session_repository() -> SessionRepository:
    return SessionRepository()


def get_message_repository() -> MessageRepository:
    return MessageRepository()


def get_tool_execution_repository() -> ToolExecutionRepository:
    return ToolExecutionRepository()


def get_session_service(
    session_maker: Annotated[async_sessionmaker[AsyncSession], Depends(get_db)],
    session_repo: Annotated[SessionRepository, Depends(get_session_repository)],
    message_repo: Annotated[MessageRepository, Depends(get_message_repository)],
    agent_repo: Annotated[AgentRepository, Depends(get_agent_repository)],
    execution_repo: Annotated[
        ToolExecutionRepository, Depends(get_tool_execution_repository)
    ],
) -> SessionService:
    """Session service dependency.

    Use with FastAPI Depends():
        service: SessionService = Depends(get_session_service)

    Returns:
        SessionService: Session service instance
    """
    return SessionService(
        session_maker=session_maker,
        session_repo=session_repo,
        message_repo=message_repo,
        agent_repo=agent_repo,
        execution_repo=execution_repo,
    )


def get_tool_executor(
    session_maker: Annotated[async_sessionmaker[AsyncSession], Depends(get_db)],
    registry: Annotated[ToolBackendRegistry, Depends(get_tool_registry)],
    execution_repo: Annotated[
        ToolExecutionRepository, Depends(get_tool_execution_repository)
    ],
) -> ToolExecutor:
    """Tool executor dependency.

    Returns:
        ToolExecutor: Tool executor bound to the application's backends
    """
    return ToolExecutor(
        registry=registry,
        session_maker=session_maker,
        execution_repo=execution_repo,
    )


def get_chat_service(
    settings: Annotated[Settings, Depends(get_settings)],
    session_maker: Annotated[async_sessionmaker[AsyncSession], Depends(get_db)],
    openai_client: Annotated[OpenAIClient, Depends(get_openai_client)],
    tool_executor: Annotated[ToolExecutor, Depends(get_tool_executor)],
    agent_repo: Annotated[AgentRepository, Depends(get_agent_repository)],
    session_repo: Annotated[SessionRepository, Depends(get_session_repository)],
    message_repo: Annotated[MessageRepository, Depends(get_message_repository)],
) -> ChatService:
    """Chat service dependency.

    Use with FastAPI Depends():
        service: ChatService = Depends(get_chat_service)

    Args:
        settings: Application settings (injected)
        session_maker: Database session maker (injected)
        openai_client: OpenAI client (injected)
        tool_executor: Tool executor (injected)
        agent_repo: Agent repository (injected)
        session_repo: Session repository (injected)
        message_repo: Message repository (injected)

    Returns:
        ChatService: Chat service instance
    """
    return ChatService(
        session_maker=session_maker,
        openai_client=openai_client,
        tool_executor=tool_executor,
        agent_repo=agent_repo,
        conversation_manager=ConversationManager(
            session_maker, session_repo, message_repo
        ),
        history_limit=settings.history_limit,
        max_tool_rounds=settings.max_tool_rounds,
        preview_length=settings.history_preview_length,
    )
