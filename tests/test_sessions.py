"""Tests for session management endpoints."""

import pytest
from httpx import AsyncClient

from conftest import text_delta


@pytest.mark.asyncio
async def test_create_session(client: AsyncClient, weather_agent):
    """Test creating a new chat session."""
    response = await client.post(
        "/sessions", json={"agent_id": weather_agent.id, "user_id": "u1"}
    )

    assert response.status_code == 201
    data = response.json()
    assert isinstance(data["id"], str)
    assert len(data["id"]) == 36
    assert data["agent_id"] == weather_agent.id
    assert data["user_id"] == "u1"
    assert data["title"].startswith("Chat ")
    assert "created_at" in data
    assert "updated_at" in data


@pytest.mark.asyncio
async def test_create_session_for_unknown_agent(client: AsyncClient):
    """Test that sessions can only be created for existing agents."""
    response = await client.post("/sessions", json={"agent_id": "missing"})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_create_session_requires_agent(client: AsyncClient):
    """Test that agent_id is mandatory when creating a session explicitly."""
    response = await client.post("/sessions", json={})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_sessions_filtered_by_agent(
    client: AsyncClient, weather_agent, create_agent
):
    """Test listing sessions with and without an agent filter."""
    other = await create_agent(name="Other")
    await client.post("/sessions", json={"agent_id": weather_agent.id})
    await client.post("/sessions", json={"agent_id": weather_agent.id})
    await client.post("/sessions", json={"agent_id": other.id})

    everything = await client.get("/sessions")
    filtered = await client.get("/sessions", params={"agent_id": weather_agent.id})

    assert everything.status_code == 200
    assert everything.json()["total"] == 3
    assert filtered.json()["total"] == 2
    assert {s["agent_id"] for s in filtered.json()["sessions"]} == {weather_agent.id}


@pytest.mark.asyncio
async def test_get_session(client: AsyncClient, weather_agent):
    """Test retrieving a specific session."""
    create_response = await client.post(
        "/sessions", json={"agent_id": weather_agent.id, "title": "Trip planning"}
    )
    session_id = create_response.json()["id"]

    response = await client.get(f"/sessions/{session_id}")

    assert response.status_code == 200
    assert response.json()["id"] == session_id
    assert response.json()["title"] == "Trip planning"


@pytest.mark.asyncio
async def test_get_nonexistent_session(client: AsyncClient):
    """Test retrieving a session that doesn't exist."""
    fake_id = "00000000-0000-0000-0000-000000000000"
    response = await client.get(f"/sessions/{fake_id}")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_session(client: AsyncClient, weather_agent):
    """Test renaming a session."""
    create_response = await client.post(
        "/sessions", json={"agent_id": weather_agent.id}
    )
    session_id = create_response.json()["id"]

    response = await client.patch(
        f"/sessions/{session_id}", json={"title": "Renamed"}
    )

    assert response.status_code == 200
    assert response.json()["title"] == "Renamed"


@pytest.mark.asyncio
async def test_update_nonexistent_session(client: AsyncClient):
    """Test renaming a session that doesn't exist."""
    response = await client.patch("/sessions/missing", json={"title": "Renamed"})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_session_removes_messages(
    client: AsyncClient, fake_model, weather_agent
):
    """Test deleting a session together with its messages."""
    fake_model.script([text_delta("Hi")])
    chat = await client.post(
        "/chat",
        json={"agent_id": weather_agent.id, "content": "Hello", "session_id": "gone"},
    )
    assert chat.status_code == 200

    response = await client.delete("/sessions/gone")

    assert response.status_code == 204
    assert (await client.get("/sessions/gone")).status_code == 404
    assert (await client.get("/sessions/gone/messages")).status_code == 404


@pytest.mark.asyncio
async def test_message_history(client: AsyncClient, fake_model, weather_agent):
    """Test the message history of a session after two turns."""
    fake_model.script([text_delta("One")], [text_delta("Two")])
    for content in ("First", "Second"):
        await client.post(
            "/chat",
            json={
                "agent_id": weather_agent.id,
                "content": content,
                "session_id": "history",
            },
        )

    response = await client.get("/sessions/history/messages")

    assert response.status_code == 200
    data = response.json()
    assert data["session_id"] == "history"
    assert data["total"] == 4
    assert [(m["role"], m["content"]) for m in data["messages"]] == [
        ("user", "First"),
        ("assistant", "One"),
        ("user", "Second"),
        ("assistant", "Two"),
    ]

    page = await client.get(
        "/sessions/history/messages", params={"limit": 2, "offset": 2}
    )
    assert [m["content"] for m in page.json()["messages"]] == ["Second", "Two"]


@pytest.mark.asyncio
async def test_close_session(client: AsyncClient, fake_model, weather_agent):
    """Test that a closed session keeps its history and rejects new turns."""
    fake_model.script([text_delta("Hi")])
    await client.post(
        "/chat",
        json={"agent_id": weather_agent.id, "content": "Hello", "session_id": "done"},
    )

    response = await client.put("/sessions/done/close")

    assert response.status_code == 200
    data = response.json()
    assert data["is_active"] is False
    assert data["closed_at"] is not None

    again = await client.put("/sessions/done/close")
    assert again.json()["closed_at"] == data["closed_at"]

    chat = await client.post(
        "/chat",
        json={"agent_id": weather_agent.id, "content": "More?", "session_id": "done"},
    )
    assert chat.json()["content"] == "Error: Session is closed"
    assert (await client.get("/sessions/done/messages")).json()["total"] == 2


@pytest.mark.asyncio
async def test_close_nonexistent_session(client: AsyncClient):
    response = await client.put("/sessions/missing/close")

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_new_session_is_active(client: AsyncClient, weather_agent):
    response = await client.post("/sessions", json={"agent_id": weather_agent.id})

    assert response.json()["is_active"] is True
    assert response.json()["closed_at"] is None
