"""Session management API endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status

from api.dependencies import get_session_service
from api.routers.utils import convert_messages_to_responses, handle_router_error
from api.routers.verifications import verify_session_exists
from domain.entities import ChatSession
from domain.schemas import (
    CreateSessionRequest,
    MessageHistoryResponse,
    SessionListResponse,
    SessionResponse,
    UpdateSessionRequest,
)
from logic.sessions import AgentNotFoundError, SessionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


def to_session_response(session: ChatSession) -> SessionResponse:
    return SessionResponse(
        id=session.id,
        agent_id=session.agent_id,
        user_id=session.user_id,
        title=session.title,
        created_at=session.created_at,
        updated_at=session.updated_at,
        closed_at=session.closed_at,
        is_active=not session.is_closed,
    )


@router.post(
    "",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new chat session",
    description="Creates a new chat session for an agent with a unique ID",
)
async def create_session(
    request: CreateSessionRequest,
    session_service: Annotated[SessionService, Depends(get_session_service)],
) -> SessionResponse:
    """Create a new chat session."""
    try:
        session = await session_service.create_session(
            agent_id=request.agent_id, title=request.title, user_id=request.user_id
        )
        return to_session_response(session)
    except AgentNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except Exception as e:
        raise handle_router_error("creating session", "new", e)


@router.get(
    "",
    response_model=SessionListResponse,
    summary="List chat sessions",
    description="Retrieve chat sessions, optionally for a single agent, with pagination",
)
async def list_sessions(
    session_service: Annotated[SessionService, Depends(get_session_service)],
    agent_id: str | None = None,
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> SessionListResponse:
    """List chat sessions with pagination."""
    try:
        sessions, total = await session_service.list_sessions(
            agent_id=agent_id, limit=limit, offset=offset
        )
        return SessionListResponse(
            sessions=[to_session_response(session) for session in sessions],
            total=total,
        )
    except Exception as e:
        raise handle_router_error("listing sessions", agent_id or "all", e)


@router.get(
    "/{session_id}",
    response_model=SessionResponse,
    summary="Get a chat session",
    description="Retrieve details of a specific chat session by ID",
)
async def get_session(
    session: Annotated[ChatSession, Depends(verify_session_exists)],
) -> SessionResponse:
    """Get a specific chat session by ID."""
    return to_session_response(session)


@router.patch(
    "/{session_id}",
    response_model=SessionResponse,
    summary="Update a chat session",
    description="Update a chat session's title",
)
async def update_session(
    session_id: str,
    request: UpdateSessionRequest,
    session_service: Annotated[SessionService, Depends(get_session_service)],
) -> SessionResponse:
    """Update a chat session's title."""
    try:
        updated_session = await session_service.update_session(
            session_id, request.title
        )
        if updated_session is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Session not found: {session_id}",
            )
        return to_session_response(updated_session)
    except HTTPException:
        raise
    except Exception as e:
        raise handle_router_error("updating session", session_id, e)


@router.put(
    "/{session_id}/close",
    response_model=SessionResponse,
    summary="Close a chat session",
    description="Close a chat session; its history is kept but new turns are rejected",
)
async def close_session(
    session_id: str,
    session_service: Annotated[SessionService, Depends(get_session_service)],
) -> SessionResponse:
    """Close a chat session."""
    try:
        closed_session = await session_service.close_session(session_id)
        if closed_session is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Session not found: {session_id}",
            )
        return to_session_response(closed_session)
    except HTTPException:
        raise
    except Exception as e:
        raise handle_router_error("closing session", session_id, e)


@router.delete(
    "/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a chat session",
    description="Delete a chat session and all its messages",
)
async def delete_session(
    session: Annotated[ChatSession, Depends(verify_session_exists)],
    session_service: Annotated[SessionService, Depends(get_session_service)],
) -> None:
    """Delete a chat session and all its messages."""
    try:
        await session_service.delete_session(session.id)
    except Exception as e:
        raise handle_router_error("deleting session", session.id, e)


@router.get(
    "/{session_id}/messages",
    response_model=MessageHistoryResponse,
    summary="Get message history",
    description="Retrieve messages of a chat session, including tool results",
)
async def get_message_history(
    session: Annotated[ChatSession, Depends(verify_session_exists)],
    session_service: Annotated[SessionService, Depends(get_session_service)],
    limit: Annotated[int | None, Query(ge=1)] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> MessageHistoryResponse:
    """Get messages for a session."""
    try:
        messages, total = await session_service.get_message_history(
            session.id, limit=limit, offset=offset
        )
        return MessageHistoryResponse(
            session_id=session.id,
            messages=convert_messages_to_responses(messages),
            total=total,
        )
    except Exception as e:
        raise handle_router_error("getting message history for session", session.id, e)
