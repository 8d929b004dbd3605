"""Tests for the SQLAlchemy repositories."""

import pytest

from conftest import native_tool
from domain.entities import LlmConfig, ToolExecutionRecord
from repositories.agent_repository import AgentRepository
from repositories.message_repository import MessageRepository
from repositories.session_repository import SessionRepository


@pytest.mark.asyncio
async def test_agent_is_loaded_with_relationships(create_agent, session_maker):
    """Test that prompts, tools and LLM config come back with the agent."""
    created = await create_agent(
        name="Loaded",
        tools=[native_tool("echo"), native_tool("get_weather")],
        llm_config=LlmConfig(id="cfg-1", model="gpt-test", temperature=0.1),
    )

    async with session_maker() as db_session:
        agent = await AgentRepository().get_by_id(db_session, created.id)

    assert agent is not None
    assert agent.active_prompt.content == "You are a helpful assistant."
    assert sorted(tool.name for tool in agent.tools) == ["echo", "get_weather"]
    assert agent.llm_config.model == "gpt-test"
    assert agent.find_tool("ECHO").name == "echo"


@pytest.mark.asyncio
async def test_tools_are_shared_between_agents(create_agent, session_maker):
    """Test that a tool id used twice is linked instead of duplicated."""
    first = await create_agent(name="First", tools=[native_tool("echo")])
    second = await create_agent(name="Second", tools=[native_tool("echo")])

    assert first.tools[0].id == second.tools[0].id


@pytest.mark.asyncio
async def test_missing_agent_returns_none(session_maker):
    async with session_maker() as db_session:
        assert await AgentRepository().get_by_id(db_session, "missing") is None


@pytest.mark.asyncio
async def test_recent_history_returns_latest_messages_in_order(
    create_agent, session_maker
):
    """Test that the history window keeps the newest messages, oldest first."""
    agent = await create_agent()
    repo = MessageRepository()

    async with session_maker() as db_session:
        await SessionRepository().create(db_session, "s1", agent.id, "Title")
        for i in range(6):
            await repo.create(db_session, "s1", "user", f"m{i}")
        await db_session.commit()

        recent = await repo.get_recent_by_session(db_session, "s1", limit=3)

    assert [m.content for m in recent] == ["m3", "m4", "m5"]


@pytest.mark.asyncio
async def test_message_tool_results_round_trip(create_agent, session_maker):
    """Test that tool records attached to a message are stored as JSON."""
    agent = await create_agent()
    record = ToolExecutionRecord(
        tool_id="tool-echo",
        tool_name="echo",
        parameters={"x": 1},
        result={"x": 1},
        success=True,
        execution_time_ms=1.5,
    )

    async with session_maker() as db_session:
        await SessionRepository().create(db_session, "s1", agent.id, "Title")
        await MessageRepository().create(
            db_session, "s1", "assistant", "done", token_count=4, tool_results=[record]
        )
        await db_session.commit()

        [message] = await MessageRepository().get_by_session(db_session, "s1")

    assert message.token_count == 4
    assert message.tool_results[0].tool_name == "echo"
    assert message.tool_results[0].result == {"x": 1}
    assert message.tool_results[0].execution_time_ms == 1.5


@pytest.mark.asyncio
async def test_search_treats_wildcards_literally(create_agent, session_maker):
    agent = await create_agent()
    repo = MessageRepository()

    async with session_maker() as db_session:
        await SessionRepository().create(db_session, "s1", agent.id, "Title")
        await repo.create(db_session, "s1", "user", "100% sure")
        await repo.create(db_session, "s1", "user", "1000 times")
        await db_session.commit()

        found = await repo.search(db_session, "0%")

    assert [m.content for m in found] == ["100% sure"]


@pytest.mark.asyncio
async def test_summary_of_agent_without_messages(create_agent, session_maker):
    agent = await create_agent()

    async with session_maker() as db_session:
        summary = await MessageRepository().summarize_by_agent(db_session, agent.id)

    assert summary.total_messages == 0
    assert summary.total_tokens == 0
    assert summary.oldest_message is None
    assert summary.messages_by_role == {}
