"""Chat API endpoints with SSE streaming support."""

import logging
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sse_starlette.sse import EventSourceResponse

from api.dependencies import get_chat_service, get_session_service, get_settings
from api.routers.utils import (
    convert_messages_to_responses,
    convert_record_to_response,
    create_chunk_event,
    create_error_event,
    create_sse_event,
    handle_router_error,
)
from config import Settings
from domain.schemas import (
    ChatResponse,
    ChatSummaryResponse,
    MessageSearchResponse,
    SendMessageRequest,
)
from logic.chat import ChatService, TurnContext
from logic.sessions import AgentNotFoundError, SessionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])


@router.post(
    "/stream",
    summary="Send a message with SSE streaming",
    description="Run one agent turn and stream the response via Server-Sent Events",
)
async def send_message_stream(
    request: SendMessageRequest,
    chat_service: Annotated[ChatService, Depends(get_chat_service)],
    settings: Annotated[Settings, Depends(get_settings)],
) -> EventSourceResponse:
    """Send a message and stream the agent response via SSE."""
    completion_id = f"chatcmpl-{uuid.uuid4().hex}"

    async def event_generator():
        """Generate SSE events for the chat response."""
        context = TurnContext(session_id=request.session_id)
        try:
            async for chunk in chat_service.send_message_stream(request, context):
                yield create_chunk_event(completion_id, settings.openai_model, chunk)

            yield create_sse_event(
                "done",
                {
                    "session_id": context.session_id,
                    "message_id": context.assistant_message_id,
                },
            )

        except Exception as e:
            logger.error(
                f"Error in SSE stream for session {context.session_id}: {e}",
                exc_info=True,
            )
            yield create_error_event(str(e), context.session_id)

    return EventSourceResponse(event_generator())


@router.post(
    "",
    response_model=ChatResponse,
    status_code=status.HTTP_200_OK,
    summary="Send a message and get the full response",
    description="Run one agent turn and return the concatenated response",
)
async def send_message(
    request: SendMessageRequest,
    chat_service: Annotated[ChatService, Depends(get_chat_service)],
) -> ChatResponse:
    """Send a message and wait for the complete agent response."""
    context = TurnContext(session_id=request.session_id)
    try:
        chunks = [
            chunk async for chunk in chat_service.send_message_stream(request, context)
        ]
    except Exception as e:
        raise handle_router_error("processing message for session", str(context.session_id), e)

    return ChatResponse(
        session_id=context.session_id,
        message_id=context.assistant_message_id,
        content="".join(chunks),
        tool_results=[
            convert_record_to_response(record) for record in context.tool_results
        ],
    )


@router.get(
    "/search",
    response_model=MessageSearchResponse,
    summary="Search chat messages",
    description="Find messages containing the query text, optionally for a single agent",
)
async def search_messages(
    session_service: Annotated[SessionService, Depends(get_session_service)],
    query: Annotated[str, Query(min_length=1)],
    agent_id: str | None = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
) -> MessageSearchResponse:
    """Search message content across sessions."""
    try:
        messages = await session_service.search_messages(
            query, agent_id=agent_id, limit=limit
        )
        return MessageSearchResponse(
            query=query,
            messages=convert_messages_to_responses(messages),
            total=len(messages),
        )
    except Exception as e:
        raise handle_router_error("searching messages for", query, e)


@router.get(
    "/summary/{agent_id}",
    response_model=ChatSummaryResponse,
    summary="Get chat summary for an agent",
    description="Message counts and token usage across every session of an agent",
)
async def get_chat_summary(
    agent_id: str,
    session_service: Annotated[SessionService, Depends(get_session_service)],
) -> ChatSummaryResponse:
    """Summarize an agent's conversations."""
    try:
        summary = await session_service.get_chat_summary(agent_id)
        return ChatSummaryResponse.model_validate(summary.model_dump())
    except AgentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except Exception as e:
        raise handle_router_error("summarizing chats of agent", agent_id, e)
