"""Pytest configuration and shared fixtures."""

import json
import os
from collections.abc import AsyncIterator
from typing import Any, AsyncGenerator

os.environ.setdefault("OPENAI_API_KEY", "test-key")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from api.app import AppBuilder
from domain.entities import (
    Agent,
    LlmConfig,
    Prompt,
    StreamDelta,
    Tool,
    ToolCallFragment,
)
from infrastructure.models import Base
from infrastructure.tool_backends import NativeFunctionBackend
from logic.chat import ChatService, ConversationManager
from logic.tools import ToolBackendRegistry, ToolExecutor
from repositories.agent_repository import AgentRepository
from repositories.message_repository import MessageRepository
from repositories.session_repository import SessionRepository
from repositories.tool_execution_repository import ToolExecutionRepository


def text_delta(content: str) -> StreamDelta:
    return StreamDelta(content=content)


def tool_delta(
    index: int,
    id: str | None = None,
    name: str | None = None,
    arguments: str | None = None,
) -> StreamDelta:
    return StreamDelta(
        tool_call=ToolCallFragment(index=index, id=id, name=name, arguments=arguments)
    )


class FakeModelClient:
    """Stands in for OpenAIClient, replaying one scripted response per call."""

    def __init__(self, responses: list[list[StreamDelta]] | None = None) -> None:
        self.responses = list(responses or [])
        self.calls: list[dict[str, Any]] = []

    def script(self, *responses: list[StreamDelta]) -> None:
        self.responses.extend(responses)

    async def stream_chat_completion(
        self,
        messages: list[Any],
        tools: list[Any] | None = None,
        llm_config: LlmConfig | None = None,
    ) -> AsyncIterator[StreamDelta]:
        self.calls.append(
            {"messages": messages, "tools": tools, "llm_config": llm_config}
        )
        deltas = self.responses.pop(0) if self.responses else []
        for delta in deltas:
            yield delta

    async def close(self) -> None:
        pass


def native_tool(
    name: str,
    description: str = "",
    parameters: list[dict[str, Any]] | None = None,
    is_active: bool = True,
    type: str = "native",
) -> Tool:
    return Tool(
        id=f"tool-{name}",
        name=name,
        description=description or f"{name} tool",
        type=type,
        is_active=is_active,
        parameters=json.dumps(parameters or []),
    )


@pytest_asyncio.fixture
async def test_db_engine():
    """Create a test database engine."""
    # Use in-memory SQLite shared across connections for tests
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_maker(test_db_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        test_db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
def fake_model() -> FakeModelClient:
    return FakeModelClient()


@pytest.fixture
def native_backend() -> NativeFunctionBackend:
    """Native backend with the tools used across tests."""
    backend = NativeFunctionBackend()
    backend.register("get_weather", lambda city="": "18C, sunny")
    backend.register("echo", lambda **kwargs: kwargs)

    def explode(**_: Any) -> str:
        raise RuntimeError("boom")

    backend.register("explode", explode)
    return backend


@pytest.fixture
def tool_registry(native_backend) -> ToolBackendRegistry:
    return ToolBackendRegistry([native_backend])


@pytest.fixture
def tool_executor(tool_registry, session_maker) -> ToolExecutor:
    return ToolExecutor(tool_registry, session_maker, ToolExecutionRepository())


@pytest.fixture
def chat_service(session_maker, fake_model, tool_executor) -> ChatService:
    return ChatService(
        session_maker=session_maker,
        openai_client=fake_model,  # type: ignore[arg-type]
        tool_executor=tool_executor,
        agent_repo=AgentRepository(),
        conversation_manager=ConversationManager(
            session_maker, SessionRepository(), MessageRepository()
        ),
        history_limit=50,
        max_tool_rounds=3,
    )


@pytest_asyncio.fixture
async def create_agent(session_maker):
    """Factory fixture persisting an agent with prompts and tools."""

    async def _create(
        name: str = "Test Agent",
        prompt: str | None = "You are a helpful assistant.",
        prompt_active: bool = True,
        tools: list[Tool] | None = None,
        llm_config: LlmConfig | None = None,
    ) -> Agent:
        prompts = []
        if prompt is not None:
            prompts.append(
                Prompt(id=f"prompt-{name}", content=prompt, is_active=prompt_active)
            )
        async with session_maker() as db_session:
            agent = await AgentRepository().create(
                db_session,
                name=name,
                prompts=prompts,
                tools=tools,
                llm_config=llm_config,
            )
            await db_session.commit()
        return agent

    return _create


@pytest_asyncio.fixture
async def weather_agent(create_agent) -> Agent:
    return await create_agent(
        name="Weather Bot",
        prompt="You report the weather.",
        tools=[
            native_tool(
                "get_weather",
                description="Current weather for a city",
                parameters=[
                    {
                        "name": "city",
                        "type": "string",
                        "description": "City name",
                        "required": True,
                    }
                ],
            )
        ],
    )


@pytest_asyncio.fixture
async def client(
    session_maker, fake_model, tool_registry
) -> AsyncGenerator[AsyncClient, None]:
    """Create an HTTP client for testing with initialized app."""
    app_builder = AppBuilder()

    # Override async resources that are normally created on startup
    app_builder._session_maker = session_maker
    app_builder._openai_client = fake_model  # type: ignore[assignment]
    app_builder._tool_registry = tool_registry

    async with AsyncClient(
        transport=ASGITransport(app=app_builder.app),
        base_url="http://test",
    ) as ac:
        yield ac
