"""Utility functions for API routers.

This module contains reusable helpers shared by the routers.
"""

import json
import logging
import time
from typing import Any

from fastapi import HTTPException, status

from domain.entities import Message, ToolExecutionRecord
from domain.schemas import MessageResponse, ToolExecutionResponse

logger = logging.getLogger(__name__)


def handle_router_error(
    operation: str, identifier: str, error: Exception
) -> HTTPException:
    """Handle router errors with consistent logging and HTTP responses.

    Args:
        operation: Description of the operation (e.g., "creating session")
        identifier: Resource identifier (e.g., session_id)
        error: The exception that occurred

    Returns:
        HTTPException: Formatted HTTP exception
    """
    logger.error(f"Error {operation} {identifier}: {error}", exc_info=True)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed {operation}",
    )


def convert_record_to_response(record: ToolExecutionRecord) -> ToolExecutionResponse:
    """Convert a tool execution record to its API schema."""
    return ToolExecutionResponse.model_validate(record.model_dump(mode="json"))


def convert_message_to_response(message: Message) -> MessageResponse:
    """Convert domain Message entity to API MessageResponse schema.

    Args:
        message: Domain message entity

    Returns:
        MessageResponse: API response schema
    """
    return MessageResponse(
        id=message.id or 0,
        session_id=message.session_id,
        role=message.role,
        content=message.content,
        token_count=message.token_count,
        tool_results=[
            convert_record_to_response(record) for record in message.tool_results
        ],
        created_at=message.created_at,
    )


def convert_messages_to_responses(messages: list[Message]) -> list[MessageResponse]:
    return [convert_message_to_response(msg) for msg in messages]


def create_sse_event(event: str, data: dict[str, Any]) -> dict[str, str]:
    """Create a Server-Sent Event (SSE) formatted event.

    Args:
        event: Event type (e.g., "message", "done", "error")
        data: Event data to be JSON serialized

    Returns:
        dict: SSE event dictionary with 'event' and 'data' keys
    """
    return {
        "event": event,
        "data": json.dumps(data, ensure_ascii=False),
    }


def create_chunk_event(completion_id: str, model: str, content: str) -> dict[str, str]:
    """Create an SSE event carrying one content chunk.

    The payload follows the OpenAI ``chat.completion.chunk`` shape so clients
    written against streaming chat completions can consume it unchanged.

    Args:
        completion_id: Identifier shared by every chunk of one turn
        model: Model name reported to the client
        content: Content chunk

    Returns:
        dict: SSE message event
    """
    return create_sse_event(
        event="message",
        data={
            "id": completion_id,
            "object": "chat.completion.chunk",
            "created": int(time.time()),
            "model": model,
            "choices": [
                {
                    "index": 0,
                    "delta": {"role": "assistant", "content": content},
                    "finish_reason": None,
                }
            ],
        },
    )


def create_error_event(error: str, session_id: str | None) -> dict[str, str]:
    """Create an SSE error event.

    Args:
        error: Error message
        session_id: Session identifier, if one was resolved

    Returns:
        dict: SSE error event
    """
    return create_sse_event(
        event="error",
        data={"error": error, "session_id": session_id},
    )
