"""OpenAI client wrapper with streamed tool-calling support."""

import logging
from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI
from openai.types.chat import (
    ChatCompletionChunk,
    ChatCompletionMessageParam,
    ChatCompletionToolParam,
)

from domain.entities import LlmConfig, StreamDelta, ToolCallFragment

logger = logging.getLogger(__name__)


class OpenAIClient:
    """Wrapper for OpenAI async clients with streaming tool-calling capabilities.

    The client built from settings is the default binding. Agents that carry
    their own LLM config get a dedicated client per (base_url, api_key) pair,
    created lazily and reused.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        timeout: int = 60,
        max_retries: int = 3,
    ) -> None:
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key
            base_url: Base URL for API (supports OpenRouter, Ollama)
            model: Model name to use
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts
        """
        self.model = model
        self.api_key = api_key
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max_retries
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
        )
        self._bound_clients: dict[tuple[str, str], AsyncOpenAI] = {}
        logger.info(
            f"OpenAI client initialized with model: {model}, base_url: {base_url}"
        )

    def _client_for(self, llm_config: LlmConfig | None) -> AsyncOpenAI:
        if llm_config is None or not (llm_config.base_url or llm_config.api_key):
            return self.client

        key = (
            llm_config.base_url or self.base_url,
            llm_config.api_key or self.api_key,
        )
        if key not in self._bound_clients:
            self._bound_clients[key] = AsyncOpenAI(
                base_url=key[0],
                api_key=key[1],
                timeout=self.timeout,
                max_retries=self.max_retries,
            )
            logger.info(f"Created OpenAI client for base_url: {key[0]}")
        return self._bound_clients[key]

    def _build_request(
        self,
        messages: list[ChatCompletionMessageParam],
        tools: list[ChatCompletionToolParam] | None,
        llm_config: LlmConfig | None,
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "model": llm_config.model if llm_config else self.model,
            "messages": messages,
            "stream": True,
        }

        if llm_config is not None:
            optional = {
                "temperature": llm_config.temperature,
                "top_p": llm_config.top_p,
                "max_tokens": llm_config.max_tokens,
                "frequency_penalty": llm_config.frequency_penalty,
                "presence_penalty": llm_config.presence_penalty,
            }
            kwargs.update({k: v for k, v in optional.items() if v is not None})

        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"
            logger.debug(f"Tool calling enabled with {len(tools)} tools")

        return kwargs

    async def stream_chat_completion(
        self,
        messages: list[ChatCompletionMessageParam],
        tools: list[ChatCompletionToolParam] | None = None,
        llm_config: LlmConfig | None = None,
    ) -> AsyncIterator[StreamDelta]:
        """Stream a chat completion as provider-agnostic deltas.

        Each chunk is split into at most one content delta followed by one
        delta per tool-call fragment it carries.

        Args:
            messages: List of chat messages
            tools: Optional list of tool definitions
            llm_config: Agent model binding overriding the defaults

        Yields:
            StreamDelta: Content or tool-call fragments in arrival order
        """
        logger.debug(f"Streaming chat completion with {len(messages)} messages")

        client = self._client_for(llm_config)
        stream = await client.chat.completions.create(
            **self._build_request(messages, tools, llm_config)
        )

        async with stream:
            async for chunk in stream:
                for delta in self._to_deltas(chunk):
                    yield delta

    @staticmethod
    def _to_deltas(chunk: ChatCompletionChunk) -> list[StreamDelta]:
        if not chunk.choices:
            return []

        delta = chunk.choices[0].delta
        deltas: list[StreamDelta] = []

        if delta.content:
            deltas.append(StreamDelta(content=delta.content))

        for tool_call in delta.tool_calls or []:
            function = tool_call.function
            deltas.append(
                StreamDelta(
                    tool_call=ToolCallFragment(
                        index=tool_call.index,
                        id=tool_call.id,
                        name=function.name if function else None,
                        arguments=function.arguments if function else None,
                    )
                )
            )

        return deltas

    async def close(self) -> None:
        """Close the OpenAI clients."""
        await self.client.close()
        for client in self._bound_clients.values():
            await client.close()
        logger.info("OpenAI client closed")
