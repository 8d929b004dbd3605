"""Tests for the chat endpoints, streaming and non-streaming."""

import json

import pytest
from httpx import AsyncClient

from conftest import text_delta, tool_delta


def parse_sse(body: str) -> list[tuple[str, dict]]:
    """Split an SSE body into (event, data) pairs."""
    events = []
    event, data = "message", []
    for line in body.splitlines():
        if line.startswith("event:"):
            event = line[len("event:") :].strip()
        elif line.startswith("data:"):
            data.append(line[len("data:") :].strip())
        elif not line.strip() and data:
            events.append((event, json.loads("\n".join(data))))
            event, data = "message", []
    if data:
        events.append((event, json.loads("\n".join(data))))
    return events


@pytest.mark.asyncio
async def test_stream_emits_completion_chunks_and_done(
    client: AsyncClient, fake_model, weather_agent
):
    """Test that streamed content arrives as chat.completion.chunk events."""
    fake_model.script(
        [tool_delta(0, id="call_1", name="get_weather", arguments='{"city":"Paris"}')],
        [text_delta("It's 18°C "), text_delta("and sunny in Paris.")],
    )

    response = await client.post(
        "/chat/stream",
        json={"agent_id": weather_agent.id, "content": "What's the weather in Paris?"},
    )

    assert response.status_code == 200
    events = parse_sse(response.text)
    messages = [data for event, data in events if event == "message"]
    assert [m["object"] for m in messages] == ["chat.completion.chunk"] * 2
    assert "".join(m["choices"][0]["delta"]["content"] for m in messages) == (
        "It's 18°C and sunny in Paris."
    )
    assert len({m["id"] for m in messages}) == 1

    event, done = events[-1]
    assert event == "done"
    assert done["session_id"]
    assert isinstance(done["message_id"], int)

    history = await client.get(f"/sessions/{done['session_id']}/messages")
    assert history.status_code == 200
    stored = history.json()["messages"]
    assert [m["role"] for m in stored] == ["user", "assistant"]
    assert stored[1]["tool_results"][0]["tool_name"] == "get_weather"
    assert stored[1]["tool_results"][0]["result"] == "18C, sunny"


@pytest.mark.asyncio
async def test_stream_validation_error_is_in_band(client: AsyncClient, fake_model):
    """Test that validation failures are streamed as content, not HTTP errors."""
    response = await client.post("/chat/stream", json={"content": "Hello"})

    assert response.status_code == 200
    events = parse_sse(response.text)
    assert events[0][1]["choices"][0]["delta"]["content"] == (
        "Error: Agent ID is required"
    )
    assert events[-1] == ("done", {"session_id": None, "message_id": None})
    assert fake_model.calls == []


@pytest.mark.asyncio
async def test_stream_reports_model_failure_as_error_event(
    client: AsyncClient, fake_model, weather_agent
):
    """Test that a failing model produces an SSE error event."""

    async def broken_stream(messages, tools=None, llm_config=None):
        raise RuntimeError("upstream down")
        yield  # pragma: no cover

    fake_model.stream_chat_completion = broken_stream

    response = await client.post(
        "/chat/stream",
        json={"agent_id": weather_agent.id, "content": "Hi", "session_id": "s-err"},
    )

    event, data = parse_sse(response.text)[-1]
    assert event == "error"
    assert data == {"error": "upstream down", "session_id": "s-err"}


@pytest.mark.asyncio
async def test_send_message_returns_full_response(
    client: AsyncClient, fake_model, weather_agent
):
    """Test the non-streaming chat endpoint."""
    fake_model.script(
        [tool_delta(0, id="call_1", name="get_weather", arguments="{}")],
        [text_delta("Sunny"), text_delta(" today.")],
    )

    response = await client.post(
        "/chat",
        json={
            "agent_id": weather_agent.id,
            "content": "Weather?",
            "session_id": "chat-1",
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["session_id"] == "chat-1"
    assert data["content"] == "Sunny today."
    assert isinstance(data["message_id"], int)
    assert [r["tool_name"] for r in data["tool_results"]] == ["get_weather"]


@pytest.mark.asyncio
async def test_send_message_unknown_agent(client: AsyncClient):
    """Test that an unknown agent is reported in the response content."""
    response = await client.post(
        "/chat", json={"agent_id": "missing", "content": "Hello"}
    )

    assert response.status_code == 200
    assert response.json()["content"] == "Error: Agent not found"
    assert response.json()["session_id"] is None


@pytest.mark.asyncio
async def test_send_message_model_failure_returns_500(
    client: AsyncClient, fake_model, weather_agent
):
    """Test that propagated faults become a 500 response."""

    async def broken_stream(messages, tools=None, llm_config=None):
        raise RuntimeError("upstream down")
        yield  # pragma: no cover

    fake_model.stream_chat_completion = broken_stream

    response = await client.post(
        "/chat", json={"agent_id": weather_agent.id, "content": "Hi"}
    )

    assert response.status_code == 500


@pytest.mark.asyncio
async def test_tool_executions_endpoint(client: AsyncClient, fake_model, weather_agent):
    """Test that executed tools show up in the execution log."""
    fake_model.script(
        [tool_delta(0, id="call_1", name="get_weather", arguments='{"city":"Oslo"}')],
        [text_delta("Cold.")],
    )
    chat = await client.post(
        "/chat", json={"agent_id": weather_agent.id, "content": "Oslo?"}
    )
    session_id = chat.json()["session_id"]

    response = await client.get(
        "/tool-executions", params={"session_id": session_id}
    )

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 1
    execution = data["executions"][0]
    assert execution["tool_name"] == "get_weather"
    assert execution["parameters"] == {"city": "Oslo"}
    assert execution["success"] is True
    assert execution["agent_id"] == weather_agent.id


@pytest.mark.asyncio
async def test_tool_execution_by_id(client: AsyncClient, fake_model, weather_agent):
    """Test fetching one logged execution and a missing one."""
    fake_model.script(
        [tool_delta(0, id="call_1", name="get_weather", arguments='{"city":"Rome"}')],
        [text_delta("Warm.")],
    )
    await client.post("/chat", json={"agent_id": weather_agent.id, "content": "Rome?"})
    listed = (await client.get("/tool-executions")).json()["executions"][0]

    response = await client.get(f"/tool-executions/{listed['id']}")
    missing = await client.get("/tool-executions/9999")

    assert response.status_code == 200
    assert response.json()["tool_name"] == "get_weather"
    assert response.json()["parameters"] == {"city": "Rome"}
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_search_messages(
    client: AsyncClient, fake_model, weather_agent, create_agent
):
    """Test case-insensitive message search with an agent filter."""
    other = await create_agent(name="Other")
    fake_model.script([text_delta("Paris is sunny")], [text_delta("Nothing in paris")])
    await client.post(
        "/chat", json={"agent_id": weather_agent.id, "content": "Weather in Paris?"}
    )
    await client.post("/chat", json={"agent_id": other.id, "content": "Hello"})

    everything = await client.get("/chat/search", params={"query": "PARIS"})
    filtered = await client.get(
        "/chat/search", params={"query": "paris", "agent_id": weather_agent.id}
    )

    assert everything.status_code == 200
    assert everything.json()["total"] == 3
    assert [m["content"] for m in filtered.json()["messages"]] == [
        "Paris is sunny",
        "Weather in Paris?",
    ]


@pytest.mark.asyncio
async def test_search_requires_query(client: AsyncClient):
    response = await client.get("/chat/search", params={"query": ""})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_chat_summary(client: AsyncClient, fake_model, weather_agent):
    """Test message and token totals for an agent."""
    fake_model.script([text_delta("Hi there")], [text_delta("Bye")])
    for content, session_id in (("Hello", "a"), ("Later", "b")):
        await client.post(
            "/chat",
            json={
                "agent_id": weather_agent.id,
                "content": content,
                "session_id": session_id,
            },
        )

    response = await client.get(f"/chat/summary/{weather_agent.id}")

    assert response.status_code == 200
    data = response.json()
    assert data["total_sessions"] == 2
    assert data["total_messages"] == 4
    assert data["total_tokens"] == len("Hello" "Hi there" "Later" "Bye")
    assert data["messages_by_role"] == {"user": 2, "assistant": 2}
    assert data["oldest_message"] <= data["newest_message"]


@pytest.mark.asyncio
async def test_chat_summary_unknown_agent(client: AsyncClient):
    response = await client.get("/chat/summary/missing")

    assert response.status_code == 404
