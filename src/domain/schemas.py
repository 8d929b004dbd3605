"""API request and response schemas."""

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from domain.entities import MessageRole


# Request Schemas
class CreateSessionRequest(BaseModel):
    """Request to create a new chat session."""

    agent_id: str = Field(..., min_length=1, description="Agent the session talks to")
    title: str | None = Field(
        None, max_length=255, description="Optional title for the chat session"
    )
    user_id: str | None = Field(None, description="Optional owner of the session")


class UpdateSessionRequest(BaseModel):
    """Request to update a chat session."""

    title: str = Field(
        ..., min_length=1, max_length=255, description="New title for the chat session"
    )


class SendMessageRequest(BaseModel):
    """Request to run one conversation turn.

    Missing agent id and blank content are reported in-band by the chat
    service rather than rejected here.
    """

    agent_id: str | None = Field(None, description="Agent handling the turn")
    content: str = Field("", description="Message content")
    session_id: str | None = Field(
        None, description="Existing session; a new one is created when omitted"
    )
    user_id: str | None = Field(None, description="Optional user sending the message")


# Response Schemas
class ToolExecutionResponse(BaseModel):
    """Response containing one tool execution outcome."""

    id: int | None = Field(None, description="Log entry id once the call is logged")
    tool_id: str | None
    tool_name: str
    parameters: dict[str, Any]
    result: Any = None
    success: bool
    error_message: str | None = None
    execution_time_ms: float
    session_id: str | None = None
    agent_id: str | None = None
    executed_at: datetime


class ToolExecutionListResponse(BaseModel):
    """Response containing logged tool executions."""

    executions: list[ToolExecutionResponse]
    total: int


class MessageResponse(BaseModel):
    """Response containing a single message."""

    id: int
    session_id: str
    role: MessageRole
    content: str
    token_count: int | None = None
    tool_results: list[ToolExecutionResponse] = Field(default_factory=list)
    created_at: datetime


class SessionResponse(BaseModel):
    """Response containing session information."""

    id: str
    agent_id: str
    user_id: str | None = None
    title: str
    created_at: datetime
    updated_at: datetime
    closed_at: datetime | None = None
    is_active: bool = True


class SessionListResponse(BaseModel):
    """Response containing a list of sessions."""

    sessions: list[SessionResponse]
    total: int


class MessageHistoryResponse(BaseModel):
    """Response containing message history."""

    session_id: str
    messages: list[MessageResponse]
    total: int


class MessageSearchResponse(BaseModel):
    """Response containing messages that match a search query."""

    query: str
    messages: list[MessageResponse]
    total: int


class ChatSummaryResponse(BaseModel):
    """Response containing message statistics for one agent."""

    agent_id: str
    total_sessions: int
    total_messages: int
    total_tokens: int
    oldest_message: datetime | None = None
    newest_message: datetime | None = None
    messages_by_role: dict[str, int] = Field(default_factory=dict)


class ChatResponse(BaseModel):
    """Response of a non-streaming conversation turn."""

    session_id: str | None
    message_id: int | None = None
    content: str
    tool_results: list[ToolExecutionResponse] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["healthy", "unhealthy"]
    version: str = "0.1.0"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
