"""Tests for the OpenAI client wrapper."""

import pytest
from openai.types.chat import ChatCompletionChunk

from domain.entities import LlmConfig
from infrastructure.openai_client import OpenAIClient


@pytest.fixture
def openai_client() -> OpenAIClient:
    return OpenAIClient(
        api_key="test-key", base_url="https://llm.test/v1", model="default-model"
    )


def make_chunk(delta: dict) -> ChatCompletionChunk:
    return ChatCompletionChunk.model_validate(
        {
            "id": "chunk-1",
            "object": "chat.completion.chunk",
            "created": 0,
            "model": "m",
            "choices": [{"index": 0, "delta": delta, "finish_reason": None}],
        }
    )


def test_chunk_with_content_and_tool_calls_is_split():
    """Test conversion of a provider chunk into deltas."""
    chunk = make_chunk(
        {
            "content": "Checking",
            "tool_calls": [
                {
                    "index": 0,
                    "id": "call_1",
                    "type": "function",
                    "function": {"name": "get_weather", "arguments": '{"ci'},
                },
                {"index": 1, "function": {"arguments": "{}"}},
            ],
        }
    )

    deltas = OpenAIClient._to_deltas(chunk)

    assert deltas[0].content == "Checking"
    assert deltas[1].tool_call.model_dump() == {
        "index": 0,
        "id": "call_1",
        "name": "get_weather",
        "arguments": '{"ci',
    }
    assert deltas[2].tool_call.index == 1
    assert deltas[2].tool_call.name is None


def test_chunk_without_choices_yields_nothing():
    chunk = ChatCompletionChunk.model_validate(
        {
            "id": "chunk-1",
            "object": "chat.completion.chunk",
            "created": 0,
            "model": "m",
            "choices": [],
        }
    )

    assert OpenAIClient._to_deltas(chunk) == []


def test_request_uses_defaults_without_llm_config(openai_client):
    """Test the request built for agents without their own model binding."""
    request = openai_client._build_request(
        [{"role": "user", "content": "hi"}], None, None
    )

    assert request == {
        "model": "default-model",
        "messages": [{"role": "user", "content": "hi"}],
        "stream": True,
    }


def test_request_applies_llm_config_and_tools(openai_client):
    """Test that agent sampling parameters and tools are forwarded."""
    config = LlmConfig(id="cfg", model="agent-model", temperature=0.2, max_tokens=256)
    tools = [{"type": "function", "function": {"name": "t", "parameters": {}}}]

    request = openai_client._build_request([], tools, config)

    assert request["model"] == "agent-model"
    assert request["temperature"] == 0.2
    assert request["max_tokens"] == 256
    assert "top_p" not in request
    assert request["tools"] == tools
    assert request["tool_choice"] == "auto"


def test_client_is_reused_per_binding(openai_client):
    """Test that agents with their own endpoint share one client per endpoint."""
    config = LlmConfig(id="cfg", model="m", base_url="https://other.test/v1")

    first = openai_client._client_for(config)
    second = openai_client._client_for(config.model_copy(update={"id": "cfg-2"}))

    assert first is second
    assert first is not openai_client.client
    assert openai_client._client_for(LlmConfig(id="x", model="m")) is openai_client.client
